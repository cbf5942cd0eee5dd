"""
Stdio transport for MCP servers that routes the server's stderr through our logger.
"""

from contextlib import asynccontextmanager
import subprocess

import anyio
import anyio.abc
from anyio.streams.text import TextReceiveStream
from mcp.client.stdio import StdioServerParameters, get_default_environment
from mcp.shared.message import SessionMessage
import mcp.types as types

from mistral_mcp.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def stdio_client_with_rich_stderr(server: StdioServerParameters):
    """
    Spawn an MCP server process and exchange newline-delimited JSON-RPC with it.

    Unlike mcp.client.stdio.stdio_client, the process's stderr is captured and
    logged instead of being written to our own stderr.

    Args:
        server: The server parameters for the stdio connection.

    Yields:
        A tuple of (read_stream, write_stream) for communication with the server.
    """
    read_stream_writer, read_stream = anyio.create_memory_object_stream(0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream(0)

    try:
        process = await anyio.open_process(
            [server.command, *server.args],
            env=server.env if server.env is not None else get_default_environment(),
            cwd=server.cwd,
            stderr=subprocess.PIPE,
        )
    except Exception as e:
        logger.error(f"Failed to open process '{server.command}': {e}")
        await read_stream_writer.aclose()
        await write_stream_reader.aclose()
        raise

    logger.debug(f"Started process '{server.command}' with PID: {process.pid}")

    async def stdout_reader():
        assert process.stdout, "Opened process is missing stdout"
        try:
            async with read_stream_writer:
                buffer = ""
                async for chunk in TextReceiveStream(
                    process.stdout,
                    encoding=server.encoding,
                    errors=server.encoding_error_handler,
                ):
                    lines = (buffer + chunk).split("\n")
                    buffer = lines.pop()

                    for line in lines:
                        if not line.strip():
                            continue
                        try:
                            message = types.JSONRPCMessage.model_validate_json(line)
                        except Exception as exc:
                            await read_stream_writer.send(exc)
                            continue

                        await read_stream_writer.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug(f"Stdout stream closed for {server.command}")

    async def stderr_reader():
        assert process.stderr, "Opened process is missing stderr"
        try:
            async for chunk in TextReceiveStream(
                process.stderr,
                encoding=server.encoding,
                errors=server.encoding_error_handler,
            ):
                for stderr_line in chunk.splitlines():
                    if not stderr_line.strip():
                        continue
                    if "[ERROR]" in stderr_line or "Error" in stderr_line:
                        logger.error(f"MCP SERVER STDERR: {stderr_line}")
                    else:
                        logger.debug(f"MCP SERVER STDERR: {stderr_line}")
        except anyio.ClosedResourceError:
            logger.debug(f"Stderr stream closed for {server.command}")

    async def stdin_writer():
        assert process.stdin, "Opened process is missing stdin"
        try:
            async with write_stream_reader:
                async for session_message in write_stream_reader:
                    json = session_message.message.model_dump_json(
                        by_alias=True, exclude_none=True
                    )
                    await process.stdin.send(
                        (json + "\n").encode(
                            encoding=server.encoding,
                            errors=server.encoding_error_handler,
                        )
                    )
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug(f"Stdin stream closed for {server.command}")

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(stdout_reader)
            tg.start_soon(stdin_writer)
            tg.start_soon(stderr_reader)
            try:
                yield read_stream, write_stream
            finally:
                with anyio.CancelScope(shield=True):
                    await _shutdown_process(process, server.command)
                tg.cancel_scope.cancel()
    finally:
        with anyio.CancelScope(shield=True):
            await read_stream.aclose()
            await write_stream.aclose()
            await process.aclose()


async def _shutdown_process(process: anyio.abc.Process, command: str) -> None:
    """Close stdin and give the server a chance to exit before terminating it."""
    if process.stdin:
        await process.stdin.aclose()

    with anyio.move_on_after(2):
        await process.wait()

    if process.returncode is None:
        logger.debug(f"Terminating process '{command}' (PID {process.pid})")
        process.terminate()
        with anyio.move_on_after(2):
            await process.wait()

    if process.returncode is None:
        process.kill()

"""
Small MCP server used by the integration tests.

Serves over stdio by default, or over streamable HTTP with --port.
"""

import argparse

from mcp.server.fastmcp import FastMCP

app = FastMCP("test-echo-server")


@app.tool()
def echo(message: str) -> str:
    """Echo a message back."""
    return f"Echo: {message}"


@app.tool()
def add(a: int, b: int) -> int:
    """Add two numbers."""
    return a + b


@app.tool()
def fail(reason: str = "boom") -> str:
    """Always fails."""
    raise RuntimeError(reason)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, help="Serve streamable HTTP on this port")
    args = parser.parse_args()

    if args.port:
        app.settings.host = "127.0.0.1"
        app.settings.port = args.port
        app.run(transport="streamable-http")
    else:
        app.run()

import logging
import unittest

from fakes import FakeServers, text_result

from mistral_mcp.errors import (
    ConnectionFailedError,
    ManagerNotStartedError,
    UnknownServerError,
)
from mistral_mcp.mcp.client_manager import McpClientManager
from mistral_mcp.utils.logging import get_null_logger


class TestMcpClientManager(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.servers = FakeServers()
        self.manager = McpClientManager(
            logger=get_null_logger("test"), connection_factory=self.servers
        )
        self.manager.add_server("test", "stdio", {"command": "python", "args": ["server.py"]})

    async def test_server_info_before_and_after_connect(self):
        self.assertEqual(
            self.manager.get_server_info("test"),
            {"name": "test", "transport": "stdio", "connected": False},
        )
        self.assertIsNone(self.manager.get_server_info("missing"))

        async with self.manager:
            await self.manager.connect("test")
            info = self.manager.get_server_info("test")

        self.assertTrue(info["connected"])
        self.assertEqual(info["server_name"], "test-server")
        self.assertEqual(info["server_version"], "1.0.0")
        self.assertEqual(info["protocol_version"], "2025-06-18")

    async def test_connect_twice_opens_once(self):
        async with self.manager:
            await self.manager.connect("test")
            await self.manager.connect("test")

            self.assertEqual(len(self.servers.connections("test")), 1)
            self.assertEqual(self.servers.connections("test")[0].open_count, 1)
            self.assertEqual(self.manager.get_connected_servers(), {"test"})

    async def test_connect_unknown_server(self):
        async with self.manager:
            with self.assertRaises(UnknownServerError) as ctx:
                await self.manager.connect("missing")

        self.assertEqual(str(ctx.exception), "Server 'missing' not configured")
        self.assertEqual(self.servers.created, {})

    async def test_connect_outside_context(self):
        with self.assertRaises(UnknownServerError):
            await self.manager.connect("missing")
        with self.assertRaises(ManagerNotStartedError):
            await self.manager.connect("test")

    async def test_connect_failure_is_retryable(self):
        self.servers.configure("test", fail_open=OSError("spawn failed"))

        async with self.manager:
            with self.assertRaises(ConnectionFailedError) as ctx:
                await self.manager.connect("test")

            self.assertEqual(
                str(ctx.exception), "Failed to connect to MCP server 'test': spawn failed"
            )
            self.assertFalse(self.manager.is_connected("test"))

            self.servers.configure("test")
            await self.manager.connect("test")
            self.assertTrue(self.manager.is_connected("test"))

    async def test_call_tool_without_connection(self):
        result = await self.manager.call_tool("test", "echo", {"message": "hi"})

        self.assertFalse(result.success)
        self.assertEqual(result.error, "Not connected to server 'test'")
        self.assertEqual(self.servers.created, {})

        result = await self.manager.call_tool("missing", "echo", {})
        self.assertEqual(result.error, "Not connected to server 'missing'")

    async def test_call_tool(self):
        async with self.manager:
            await self.manager.connect("test")

            result = await self.manager.call_tool("test", "echo", {"message": "Hello, MCP!"})
            self.assertTrue(result.success)
            self.assertEqual(result.content, "Echo: Hello, MCP!")
            self.assertIsNone(result.error)

            result = await self.manager.call_tool("test", "add", '{"a": 5, "b": 3}')
            self.assertTrue(result.success)
            self.assertEqual(result.content, "8")

            connection = self.servers.connections("test")[0]
            self.assertEqual(connection.calls[1], ("add", {"a": 5, "b": 3}))

    async def test_call_tool_joins_text_parts(self):
        self.servers.configure(
            "test", handlers={"multi": lambda args: text_result("one", "two")}
        )
        async with self.manager:
            await self.manager.connect("test")
            result = await self.manager.call_tool("test", "multi")

        self.assertTrue(result.success)
        self.assertEqual(result.content, "onetwo")

    async def test_call_tool_empty_success(self):
        self.servers.configure("test", handlers={"noop": lambda args: text_result()})
        async with self.manager:
            await self.manager.connect("test")
            result = await self.manager.call_tool("test", "noop")

        self.assertTrue(result.success)
        self.assertEqual(result.content, "")

    async def test_call_tool_error_result(self):
        self.servers.configure(
            "test",
            handlers={
                "broken": lambda args: text_result("disk full", is_error=True),
                "silent": lambda args: text_result(is_error=True),
            },
        )
        async with self.manager:
            await self.manager.connect("test")
            broken = await self.manager.call_tool("test", "broken")
            silent = await self.manager.call_tool("test", "silent")

        self.assertFalse(broken.success)
        self.assertEqual(broken.error, "disk full")
        self.assertFalse(silent.success)
        self.assertEqual(silent.error, "Tool execution failed")

    async def test_call_tool_exception(self):
        def explode(args):
            raise TimeoutError("request timed out")

        self.servers.configure("test", handlers={"slow": explode})
        async with self.manager:
            await self.manager.connect("test")
            result = await self.manager.call_tool("test", "slow", {})

        self.assertFalse(result.success)
        self.assertEqual(result.error, "request timed out")

    async def test_call_tool_invalid_arguments(self):
        async with self.manager:
            await self.manager.connect("test")
            not_json = await self.manager.call_tool("test", "echo", "{not json")
            not_object = await self.manager.call_tool("test", "echo", "[1, 2]")

            self.assertEqual(self.servers.connections("test")[0].calls, [])

        self.assertFalse(not_json.success)
        self.assertTrue(not_json.error.startswith("Invalid tool arguments"))
        self.assertFalse(not_object.success)

    async def test_list_all_tools(self):
        self.manager.add_server("idle", "stdio", {"command": "python"})

        async with self.manager:
            self.assertEqual(await self.manager.list_all_tools(), {})

            await self.manager.connect("test")
            all_tools = await self.manager.list_all_tools()

        self.assertEqual(list(all_tools), ["test"])
        self.assertEqual([tool.name for tool in all_tools["test"]], ["echo", "add"])
        self.assertEqual(all_tools["test"][1].description, "")

    async def test_list_all_tools_partial_failure(self):
        self.manager.add_server("broken", "stdio", {"command": "python"})
        self.servers.configure("broken", fail_list=ConnectionResetError("gone"))

        async with self.manager:
            await self.manager.connect("test")
            await self.manager.connect("broken")
            all_tools = await self.manager.list_all_tools()

        self.assertEqual(all_tools["broken"], [])
        self.assertEqual(len(all_tools["test"]), 2)

    async def test_disconnect(self):
        async with self.manager:
            await self.manager.connect("test")
            await self.manager.disconnect("test")
            await self.manager.disconnect("test")

            self.assertFalse(self.manager.is_connected("test"))
            self.assertTrue(self.servers.connections("test")[0].closed)

            result = await self.manager.call_tool("test", "echo", {"message": "hi"})
            self.assertFalse(result.success)

    async def test_disconnect_all_survives_failing_close(self):
        self.manager.add_server("broken", "stdio", {"command": "python"})
        self.manager.add_server("other", "stdio", {"command": "python"})
        self.servers.configure("broken", fail_close=RuntimeError("close failed"))

        async with self.manager:
            for name in ("test", "broken", "other"):
                await self.manager.connect(name)

            await self.manager.disconnect_all()

            self.assertEqual(self.manager.get_connected_servers(), set())
            self.assertTrue(self.servers.connections("test")[0].closed)
            self.assertTrue(self.servers.connections("other")[0].closed)

    async def test_exit_disconnects_everything(self):
        async with self.manager:
            await self.manager.connect("test")

        self.assertFalse(self.manager.is_connected("test"))
        self.assertTrue(self.servers.connections("test")[0].closed)

    async def test_reconfigure_keeps_open_connection(self):
        async with self.manager:
            await self.manager.connect("test")
            self.manager.add_server("test", "http", {"url": "http://localhost/mcp"})

            self.assertTrue(self.manager.is_connected("test"))
            self.assertEqual(self.manager.get_server_info("test")["transport"], "http")
            self.assertEqual(self.servers.connections("test")[0].transport, "stdio")



class TestPlainLogger(unittest.IsolatedAsyncioTestCase):
    """Loggers that were not created through get_logger() must work too."""

    def setUp(self):
        self.servers = FakeServers()
        self.root_logger = logging.getLogger()
        self.manager = McpClientManager(logger=self.root_logger, connection_factory=self.servers)
        self.manager.add_server("test", "stdio", {"command": "python"})

    async def test_failed_call_still_returns_result(self):
        async with self.manager:
            await self.manager.connect("test")
            with self.assertLogs(self.root_logger, level="ERROR") as logs:
                result = await self.manager.call_tool("test", "missing_tool", {})

        self.assertFalse(result.success)
        self.assertEqual(result.error, "'missing_tool'")
        self.assertIn("missing_tool", logs.output[0])

    async def test_list_failure_is_isolated(self):
        self.servers.configure("test", fail_list=ConnectionResetError("gone"))

        async with self.manager:
            await self.manager.connect("test")
            with self.assertLogs(self.root_logger, level="WARNING") as logs:
                all_tools = await self.manager.list_all_tools()

        self.assertEqual(all_tools, {"test": []})
        self.assertIn("gone", logs.output[0])


if __name__ == "__main__":
    unittest.main()

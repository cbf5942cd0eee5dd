import unittest

from fakes import FakeChat, FakeServers, text_response, tool_call_response

from mistral_mcp.chat.tool_chat import ToolAugmentedChat
from mistral_mcp.chat.types import ChatRequest
from mistral_mcp.mcp.client_manager import McpClientManager
from mistral_mcp.utils.logging import get_null_logger

WEATHER_TOOL = {
    "type": "function",
    "function": {
        "name": "get_weather",
        "description": "Weather for a city",
        "parameters": {"type": "object", "properties": {"city": {"type": "string"}}},
    },
}


def user_request(**kwargs):
    return {"messages": [{"role": "user", "content": "Echo hi"}], **kwargs}


class TestToolAugmentedChat(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.servers = FakeServers()
        self.manager = McpClientManager(
            logger=get_null_logger("test"), connection_factory=self.servers
        )
        self.manager.add_server("test", "stdio", {"command": "python", "args": ["server.py"]})

    def make_chat(self, *responses):
        fake = FakeChat(*responses)
        return fake, ToolAugmentedChat(fake, self.manager, logger=get_null_logger("test"))

    async def test_mcp_tool_round_trip(self):
        fake, chat = self.make_chat(
            tool_call_response(("call_1", "mcp_test_echo", {"message": "hi"})),
            text_response("The server said: Echo: hi"),
        )

        async with self.manager:
            await self.manager.connect("test")
            response = await chat.create(user_request())

        self.assertEqual(response.first_message.content, "The server said: Echo: hi")
        self.assertEqual(len(fake.requests), 2)

        first, follow_up = fake.requests
        self.assertEqual(first.tool_choice, "auto")
        self.assertEqual(
            [tool["function"]["name"] for tool in first.tools], ["mcp_test_echo", "mcp_test_add"]
        )

        self.assertEqual(follow_up.tool_choice, "none")
        self.assertEqual([m.role for m in follow_up.messages], ["user", "assistant", "tool"])
        tool_message = follow_up.messages[2]
        self.assertEqual(tool_message.tool_call_id, "call_1")
        self.assertEqual(tool_message.name, "mcp_test_echo")
        self.assertEqual(tool_message.content, "Echo: hi")
        self.assertEqual(follow_up.messages[1].tool_calls[0].id, "call_1")

    async def test_no_tool_calls_returns_first_response(self):
        answer = text_response("Hello!")
        fake, chat = self.make_chat(answer)

        async with self.manager:
            await self.manager.connect("test")
            response = await chat.create(user_request())

        self.assertIs(response, answer)
        self.assertEqual(len(fake.requests), 1)

    async def test_no_tools_leaves_request_alone(self):
        fake, chat = self.make_chat(text_response("Hello!"))

        async with self.manager:
            await chat.create(user_request())

        request = fake.requests[0]
        self.assertIsNone(request.tools)
        self.assertIsNone(request.tool_choice)
        self.assertNotIn("tools", request.to_payload())

    async def test_caller_tools_and_tool_choice_are_kept(self):
        fake, chat = self.make_chat(text_response("ok"))

        async with self.manager:
            await self.manager.connect("test")
            await chat.create(
                ChatRequest.model_validate(user_request(tools=[WEATHER_TOOL], tool_choice="any"))
            )

        request = fake.requests[0]
        self.assertEqual(request.tool_choice, "any")
        self.assertEqual(
            [tool["function"]["name"] for tool in request.tools],
            ["get_weather", "mcp_test_echo", "mcp_test_add"],
        )

    async def test_only_foreign_tool_calls_are_returned_untouched(self):
        foreign = tool_call_response(("call_1", "get_weather", {"city": "Paris"}))
        fake, chat = self.make_chat(foreign)

        async with self.manager:
            await self.manager.connect("test")
            response = await chat.create(user_request(tools=[WEATHER_TOOL]))

        self.assertIs(response, foreign)
        self.assertEqual(len(fake.requests), 1)
        self.assertEqual(self.servers.connections("test")[0].calls, [])

    async def test_mixed_tool_calls(self):
        fake, chat = self.make_chat(
            tool_call_response(
                ("call_1", "get_weather", {"city": "Paris"}),
                ("call_2", "mcp_test_add", '{"a": 5, "b": 3}'),
                ("call_3", "mcp_foo", {}),
                ("call_4", "mcp_test_echo", {"message": "hi"}),
            ),
            text_response("done"),
        )

        async with self.manager:
            await self.manager.connect("test")
            await chat.create(user_request(tools=[WEATHER_TOOL]))

        tool_messages = fake.requests[1].messages[2:]
        self.assertEqual(
            [(m.tool_call_id, m.content) for m in tool_messages],
            [
                ("call_2", "8"),
                ("call_3", "Invalid MCP tool name format: mcp_foo"),
                ("call_4", "Echo: hi"),
            ],
        )
        # Called in the order the model asked
        self.assertEqual(
            [name for name, _ in self.servers.connections("test")[0].calls], ["add", "echo"]
        )

    async def test_connects_on_demand(self):
        fake, chat = self.make_chat(
            tool_call_response(("call_1", "mcp_test_echo", {"message": "hi"})),
            text_response("done"),
        )

        async with self.manager:
            self.assertFalse(self.manager.is_connected("test"))
            await chat.create(user_request())
            self.assertTrue(self.manager.is_connected("test"))

        self.assertEqual(fake.requests[1].messages[2].content, "Echo: hi")

    async def test_connect_failure_becomes_tool_message(self):
        self.servers.configure("test", fail_open=OSError("spawn failed"))
        fake, chat = self.make_chat(
            tool_call_response(("call_1", "mcp_test_echo", {"message": "hi"})),
            text_response("sorry"),
        )

        async with self.manager:
            response = await chat.create(user_request())

        self.assertEqual(response.first_message.content, "sorry")
        self.assertEqual(
            fake.requests[1].messages[2].content,
            "Failed to connect to MCP server 'test': spawn failed",
        )

    async def test_unknown_server_becomes_tool_message(self):
        fake, chat = self.make_chat(
            tool_call_response(("call_1", "mcp_missing_echo", {})),
            text_response("sorry"),
        )

        async with self.manager:
            await chat.create(user_request())

        content = fake.requests[1].messages[2].content
        self.assertTrue(content.startswith("Failed to connect to MCP server 'missing'"))

    async def test_tool_error_becomes_tool_message(self):
        fake, chat = self.make_chat(
            tool_call_response(("call_1", "mcp_test_missing_tool", {})),
            text_response("sorry"),
        )

        async with self.manager:
            await self.manager.connect("test")
            await chat.create(user_request())

        # FakeConnection raises KeyError for tools it does not know
        self.assertEqual(fake.requests[1].messages[2].content, "'missing_tool'")

    async def test_registry_passthrough(self):
        fake, chat = self.make_chat()
        chat.add_server("remote", "HTTP", {"url": "http://localhost/mcp"})

        self.assertEqual(self.manager.get_config("remote").transport, "http")
        self.assertIs(chat.manager, self.manager)

        async with self.manager:
            await chat.connect_server("test")
            tools = await chat.get_available_tools()

        self.assertEqual([tool.name for tool in tools["test"]], ["echo", "add"])


    async def test_manager_not_started_becomes_tool_message(self):
        fake, chat = self.make_chat(
            tool_call_response(("call_1", "mcp_test_echo", {"message": "hi"})),
            text_response("sorry"),
        )

        response = await chat.create(user_request())

        self.assertEqual(response.first_message.content, "sorry")
        content = fake.requests[1].messages[2].content
        self.assertTrue(content.startswith("Failed to connect to MCP server 'test'"))
        self.assertIn("async with", content)
        self.assertEqual(self.servers.created, {})


if __name__ == "__main__":
    unittest.main()

"""
Chat with a Mistral model that can use tools from local MCP servers.

Set MISTRAL_API_KEY in the environment or in a .env file, then run:

    python examples/mcp_chat/main.py
"""

import asyncio
import os
import sys
from pathlib import Path

from mistral_mcp import McpClientManager, MistralChat, ToolAugmentedChat, load_config
from mistral_mcp.utils.logging import configure_logging

CONFIG_PATH = Path(__file__).parent / "mistral_mcp.config.yaml"
ECHO_SERVER = Path(__file__).parents[2] / "tests" / "fixtures" / "echo_server.py"

if not os.environ.get("MISTRAL_API_KEY"):
    print("Warning: MISTRAL_API_KEY is not set. Requests will be rejected by the API.")


async def main():
    """Main entry point for the MCP chat example."""
    settings = load_config(str(CONFIG_PATH))
    configure_logging(settings.logging.level, settings.logging.file_path)

    chat = MistralChat.from_settings(settings.mistral)

    async with McpClientManager.from_settings(settings) as manager:
        # Servers can also be added at runtime
        manager.add_server("echo", "stdio", {"command": sys.executable, "args": [str(ECHO_SERVER)]})

        for server_name in manager.registry.list_servers():
            try:
                await manager.connect(server_name)
            except Exception as e:
                print(f"Skipping {server_name}: {e}")

        tool_chat = ToolAugmentedChat(chat, manager)

        tools = await tool_chat.get_available_tools()
        for server_name, server_tools in tools.items():
            print(f"{server_name}: {', '.join(tool.name for tool in server_tools)}")

        print("\nType a message, or 'exit' to quit.")
        messages = []
        while True:
            user_input = input("\nYou: ")
            if user_input.lower() in ("exit", "quit"):
                break

            messages.append({"role": "user", "content": user_input})
            response = await tool_chat.create({"messages": messages})

            reply = response.first_message
            content = reply.content if reply and isinstance(reply.content, str) else ""
            messages.append({"role": "assistant", "content": content})
            print(f"\nMistral: {content}")


if __name__ == "__main__":
    asyncio.run(main())

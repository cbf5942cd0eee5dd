"""
Client session used for every MCP server connection.

Extends the base MCP client session with protocol-level debug logging.
"""

from mcp import ClientSession
from mcp.shared.session import ReceiveResultT, SendNotificationT, SendRequestT

from mistral_mcp.utils.logging import get_logger

logger = get_logger(__name__)


class MistralMCPClientSession(ClientSession):
    """
    ClientSession that logs the JSON-RPC traffic it exchanges with a server.
    """

    async def send_request(
        self,
        request: SendRequestT,
        result_type: type[ReceiveResultT],
        *args,
        **kwargs,
    ) -> ReceiveResultT:
        logger.debug("send_request: request=", data=request.model_dump())
        try:
            result = await super().send_request(request, result_type, *args, **kwargs)
            logger.debug("send_request: response=", data=result.model_dump())
            return result
        except Exception as e:
            logger.error(f"send_request failed: {e}")
            raise

    async def send_notification(self, notification: SendNotificationT, *args, **kwargs) -> None:
        logger.debug("send_notification:", data=notification.model_dump())
        try:
            return await super().send_notification(notification, *args, **kwargs)
        except Exception as e:
            logger.error("send_notification failed", data=e)
            raise

"""
LINE Messaging API client.
Verifies webhook signatures and sends replies.
"""

import base64
import hashlib
import hmac
import logging

import httpx

from leave_intake.config import settings
from leave_intake.observability import trace_span
from leave_intake.replies import Reply

logger = logging.getLogger(__name__)

# LINE accepts at most five messages per reply token
MAX_REPLY_MESSAGES = 5


class LineApiError(Exception):
    """LINE API specific error"""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def verify_signature(body: bytes, signature: str | None, channel_secret: str) -> bool:
    """Check X-Line-Signature: base64(HMAC-SHA256(channel secret, raw body))."""
    if not signature:
        return False
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, signature)


class LineMessagingClient:
    """Reply sender for the LINE Messaging API."""

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.line.me",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=10.0,
            transport=transport,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )

    async def reply(self, reply_token: str, replies: list[Reply]) -> None:
        """
        Send replies for one event.

        Without an access token (local development) the replies are only logged.

        Raises:
            LineApiError: If the API rejects the request or cannot be reached
        """
        messages = [r.to_line_message() for r in replies[:MAX_REPLY_MESSAGES]]
        if len(replies) > MAX_REPLY_MESSAGES:
            logger.warning(f"Dropping {len(replies) - MAX_REPLY_MESSAGES} replies over the limit")

        if not self.access_token:
            for message in messages:
                logger.info(f"[dry-run reply] {message['text']!r}")
            return

        with trace_span("line.reply", messages=len(messages)):
            try:
                response = await self.client.post(
                    "/v2/bot/message/reply",
                    headers={"Authorization": f"Bearer {self.access_token}"},
                    json={"replyToken": reply_token, "messages": messages},
                )
            except httpx.RequestError as e:
                logger.error(f"LINE reply request failed: {e}")
                raise LineApiError(f"LINE reply request failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"LINE reply rejected: status={response.status_code}, body={response.text}"
            )
            raise LineApiError("LINE reply rejected", status_code=response.status_code)

    async def close(self) -> None:
        await self.client.aclose()


# Global LINE client instance
line_client = LineMessagingClient(
    access_token=settings.line_channel_access_token, base_url=settings.line_api_base_url
)

"""
Tests for the LINE Messaging API client.
"""

import asyncio
import base64
import hashlib
import hmac
import json

import httpx
import pytest

from leave_intake.line_client import LineApiError, LineMessagingClient, verify_signature
from leave_intake.replies import quick_reply, text_reply

SECRET = "channel-secret"


def sign(body: bytes, secret: str = SECRET) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


class TestVerifySignature:
    def test_valid_signature(self):
        body = b'{"events": []}'
        assert verify_signature(body, sign(body), SECRET) is True

    def test_tampered_body(self):
        signature = sign(b'{"events": []}')
        assert verify_signature(b'{"events": [1]}', signature, SECRET) is False

    def test_wrong_secret(self):
        body = b'{"events": []}'
        assert verify_signature(body, sign(body, "other"), SECRET) is False

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature(self, signature):
        assert verify_signature(b"{}", signature, SECRET) is False


def run_reply(client, replies, token="reply-token"):
    async def run():
        try:
            await client.reply(token, replies)
        finally:
            await client.close()

    asyncio.run(run())


class TestReply:
    def test_posts_reply_payload(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={})

        client = LineMessagingClient("token", transport=httpx.MockTransport(handler))
        run_reply(client, [text_reply("Hello"), quick_reply("Pick one", ["A", "B"])])

        assert len(requests) == 1
        request = requests[0]
        assert request.url.path == "/v2/bot/message/reply"
        assert request.headers["Authorization"] == "Bearer token"

        payload = json.loads(request.content)
        assert payload["replyToken"] == "reply-token"
        assert payload["messages"][0] == {"type": "text", "text": "Hello"}
        items = payload["messages"][1]["quickReply"]["items"]
        assert [item["action"]["text"] for item in items] == ["A", "B"]

    def test_caps_messages_per_reply(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={})

        client = LineMessagingClient("token", transport=httpx.MockTransport(handler))
        run_reply(client, [text_reply(f"message {i}") for i in range(7)])

        assert len(seen[0]["messages"]) == 5

    def test_rejected_reply_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "Invalid reply token"})

        client = LineMessagingClient("token", transport=httpx.MockTransport(handler))

        with pytest.raises(LineApiError) as exc:
            run_reply(client, [text_reply("Hello")])

        assert exc.value.status_code == 400

    def test_unreachable_api_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = LineMessagingClient("token", transport=httpx.MockTransport(handler))

        with pytest.raises(LineApiError):
            run_reply(client, [text_reply("Hello")])

    def test_without_token_only_logs(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        client = LineMessagingClient("", transport=httpx.MockTransport(handler))
        run_reply(client, [text_reply("Hello")])

        assert calls == []

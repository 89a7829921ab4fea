"""
FastAPI application serving the LINE leave request bot.
Receives LINE webhooks and exposes health and monitoring endpoints.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from leave_intake.config import settings
from leave_intake.dialogue import EventKind, InboundEvent, get_engine
from leave_intake.line_client import line_client, verify_signature
from leave_intake.sheets_client import sheets_client
from leave_intake.utils.caller_lock import caller_locks

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Pydantic models for the LINE webhook payload
class LineSource(BaseModel):
    """Who sent the event."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = "user"
    user_id: str | None = Field(default=None, alias="userId")


class LineMessage(BaseModel):
    """Message content of a message event."""

    type: str
    text: str | None = None


class LineEvent(BaseModel):
    """One webhook event."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    reply_token: str | None = Field(default=None, alias="replyToken")
    source: LineSource = Field(default_factory=LineSource)
    message: LineMessage | None = None

    def to_inbound(self) -> InboundEvent | None:
        """Map to the dialogue's event, or None when there is no caller to answer."""
        if not self.source.user_id:
            return None

        if self.type == "follow":
            kind = EventKind.FOLLOW
        elif self.type == "message" and self.message and self.message.type == "text":
            kind = EventKind.TEXT
        else:
            kind = EventKind.OTHER

        text = (self.message.text or "") if kind == EventKind.TEXT else ""
        return InboundEvent(
            caller_id=self.source.user_id, kind=kind, text=text, reply_token=self.reply_token
        )


class WebhookPayload(BaseModel):
    """Body of a LINE webhook delivery."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "destination": "Uxxxxxxxx",
                "events": [
                    {
                        "type": "message",
                        "replyToken": "nHuyWiB7yP5Zw52FIkcQobQuGDXCTA",
                        "source": {"type": "user", "userId": "U4af4980629"},
                        "message": {"type": "text", "text": "leave"},
                    }
                ],
            }
        }
    )

    destination: str | None = None
    events: list[LineEvent] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    environment: str
    sheets_backend: str
    sheets_circuit_breaker: dict | None


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the idle-session sweeper and release clients on shutdown."""
    logger.info("Starting Leave Request Bot")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Sheets backend: {sheets_client.backend}")

    engine = get_engine()
    sweeper = asyncio.create_task(
        engine.store.run_sweeper(settings.session_sweep_interval_seconds)
    )

    yield

    logger.info("Shutting down Leave Request Bot")
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await line_client.close()


# Create FastAPI app
app = FastAPI(
    title="Leave Request Bot",
    description="LINE bot that records single-day student leave into the class attendance sheets",
    version="1.0.0",
    lifespan=lifespan,
)


# API Endpoints


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {"message": "Leave Request Bot", "version": "1.0.0", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    Returns service status, the sheets backend in use and its circuit breaker state.
    """
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        sheets_backend=sheets_client.backend,
        sheets_circuit_breaker=sheets_client.get_circuit_breaker_state(),
    )


@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    """
    Monitoring counters.

    Returns:
    - Active conversations
    - Sheets circuit breaker state
    """
    engine = get_engine()

    return {
        "active_conversations": len(engine.store),
        "circuit_breaker": sheets_client.get_circuit_breaker_state(),
        "environment": settings.environment,
    }


@app.post("/webhook", tags=["Webhook"])
async def webhook(request: Request, x_line_signature: str | None = Header(default=None)):
    """
    LINE webhook.

    Events are handled in the order they arrive in the payload. Each turn
    runs in the threadpool while holding its caller's lock, so two messages
    from the same parent are never processed at the same time.
    """
    body = await request.body()

    if settings.line_channel_secret and not verify_signature(
        body, x_line_signature, settings.line_channel_secret
    ):
        logger.warning("Rejected webhook with an invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = WebhookPayload.model_validate_json(body)
    except ValidationError as e:
        logger.warning(f"Malformed webhook payload: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed webhook payload"
        ) from e

    logger.info(f"Webhook received: {len(payload.events)} events")
    engine = get_engine()

    try:
        for event in payload.events:
            inbound = event.to_inbound()
            if inbound is None:
                continue

            async with caller_locks.hold(inbound.caller_id):
                replies = await run_in_threadpool(engine.handle_event, inbound)
                if replies and inbound.reply_token:
                    await line_client.reply(inbound.reply_token, replies)

    except Exception as e:
        logger.error(f"Error in /webhook endpoint: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred processing the webhook.",
        ) from e

    return {"success": True}


if __name__ == "__main__":
    uvicorn.run(
        "leave_intake.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )

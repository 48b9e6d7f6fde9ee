"""
Webhook listener - turns Buildkite notifications into early polls.

The listener only authenticates the request and calls back into the
scheduler; it never looks at job data itself.
"""

from __future__ import annotations

import hmac
import logging
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Header, HTTPException

logger = logging.getLogger(__name__)

# Sent by Buildkite when a webhook is first saved
PING_EVENT = "ping"


def token_matches(expected: Optional[str], provided: Optional[str]) -> bool:
    """Constant-time token comparison. No expected token means no auth."""
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())


def create_app(on_notify: Callable[[], None], token: Optional[str] = None) -> FastAPI:
    """
    Build the listener app.

    Args:
        on_notify: Zero-argument callback invoked for each authenticated event.
        token: Expected X-Buildkite-Token value, or None to accept any request.
    """
    app = FastAPI(title="agent-spawner webhook", docs_url=None, redoc_url=None)

    async def receive(
        x_buildkite_token: Optional[str] = Header(None, alias="X-Buildkite-Token"),
        x_buildkite_event: Optional[str] = Header(None, alias="X-Buildkite-Event"),
    ) -> dict:
        if not token_matches(token, x_buildkite_token):
            logger.warning("Rejected webhook with invalid token (event=%s)", x_buildkite_event)
            raise HTTPException(status_code=401, detail="Invalid webhook token")

        event = x_buildkite_event or ""
        if event == PING_EVENT:
            logger.info("Webhook ping received")
            return {"status": "ok", "event": event}

        logger.debug("Webhook event %s, requesting poll", event)
        on_notify()
        return {"status": "ok", "event": event}

    app.add_api_route("/", receive, methods=["POST"])
    app.add_api_route("/webhook", receive, methods=["POST"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def build_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    """Wrap the app in a uvicorn server that runs on the caller's event loop."""
    config = uvicorn.Config(app, host=host, port=port, log_config=None, access_log=False)
    return uvicorn.Server(config)

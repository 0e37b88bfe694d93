"""Queue for "please add materials about X" requests.

Requests are acknowledged immediately with an identifier.  Delivery to the
maintainers (a Discord webhook) happens on a background thread, at most
once: a failed delivery is logged and dropped, never retried, and the chat
turn that queued it never waits for it.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from webbrain.config import DISCORD_WEBHOOK_URL

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
EMBED_COLOR = 0x5865F2

Notifier = Callable[[dict[str, Any]], None]


def new_request_id() -> str:
    """``req_<epoch-ms>_<8 hex>``: sortable by time, unique across workers."""
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def material_request_embed(request_id: str, args: dict[str, Any]) -> dict[str, Any]:
    """Discord embed describing one material request."""
    fields = [{"name": "Topic", "value": str(args.get("topic", ""))[:1024]}]
    user_context = args.get("user_context")
    if user_context:
        fields.append({"name": "User context", "value": str(user_context)[:1024]})
    return {
        "title": "New material request",
        "color": EMBED_COLOR,
        "fields": fields,
        "footer": {"text": request_id},
        "timestamp": datetime.now(UTC).isoformat(),
    }


class DiscordWebhookNotifier:
    """Posts embeds to a Discord channel webhook."""

    def __init__(self, webhook_url: str, *, client: httpx.Client | None = None):
        self._webhook_url = webhook_url
        self._client = client or httpx.Client(timeout=REQUEST_TIMEOUT_SECONDS)

    def __call__(self, embed: dict[str, Any]) -> None:
        response = self._client.post(self._webhook_url, json={"embeds": [embed]})
        response.raise_for_status()


class MaterialRequestQueue:
    """Acknowledges requests synchronously and notifies in the background."""

    def __init__(self, notifier: Notifier | None = None, *, background: bool = True):
        self._notifier = notifier
        self._background = background

    def record(self, args: dict[str, Any]) -> str:
        """Queue a request built from tool arguments; returns its identifier."""
        request_id = new_request_id()
        logger.info(
            "[Material Request] %s topic=%r user_context=%r",
            request_id, args.get("topic"), args.get("user_context"),
        )
        self._dispatch(material_request_embed(request_id, args))
        return request_id

    def forward(self, embed: dict[str, Any]) -> None:
        """Relay a client-built embed unchanged."""
        logger.info("[Material Request] forwarding client embed %r", embed.get("title"))
        self._dispatch(embed)

    def _dispatch(self, embed: dict[str, Any]) -> None:
        if self._notifier is None:
            return
        if not self._background:
            self._deliver(embed)
            return
        threading.Thread(
            target=self._deliver, args=(embed,), daemon=True, name="material-request",
        ).start()

    def _deliver(self, embed: dict[str, Any]) -> None:
        try:
            self._notifier(embed)
        except Exception:
            logger.exception("Material request notification failed (not retried)")


def create_material_request_queue() -> MaterialRequestQueue:
    """Queue wired to Discord when ``DISCORD_WEBHOOK_URL`` is set, log-only otherwise."""
    if DISCORD_WEBHOOK_URL:
        return MaterialRequestQueue(DiscordWebhookNotifier(DISCORD_WEBHOOK_URL))
    logger.info("DISCORD_WEBHOOK_URL not set; material requests will only be logged")
    return MaterialRequestQueue()

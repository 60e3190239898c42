"""
Best-effort delivery of risk results to the downstream consumer.

Notifications are dispatched after the response is sent (FastAPI background
task). A failing sink is logged and dropped; it never fails the request.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import Dict, List, Optional, Protocol

import httpx

from pcf.config import Settings
from pcf.errors import UpstreamLookupFailure
from pcf.schemas.pcf import NotificationOut

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def send(self, payload: NotificationOut) -> None: ...


class LogSink:
    async def send(self, payload: NotificationOut) -> None:
        logger.info(f"[notify] {json.dumps(payload.model_dump(mode='json'), ensure_ascii=False)}")


class WebhookSink:
    """POST the notification as JSON, retrying with linear backoff."""

    def __init__(
        self,
        url: str,
        timeout_sec: float = 3.0,
        retry_max: int = 3,
        backoff_ms: int = 250,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout_sec
        self.retry_max = max(1, retry_max)
        self.backoff_ms = max(0, backoff_ms)
        self.headers = headers or {"Content-Type": "application/json"}
        self._transport = transport

    async def send(self, payload: NotificationOut) -> None:
        body = payload.model_dump(mode="json")
        last_error: Optional[Exception] = None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(1, self.retry_max + 1):
                try:
                    resp = await client.post(self.url, headers=self.headers, json=body)
                    resp.raise_for_status()
                    return
                except httpx.HTTPError as e:
                    last_error = e
                    logger.warning(
                        f"Notification {payload.login_event_id} attempt {attempt}/{self.retry_max} failed: {e}"
                    )
                    if attempt < self.retry_max and self.backoff_ms:
                        await asyncio.sleep(self.backoff_ms * attempt / 1000.0)
        raise UpstreamLookupFailure(f"webhook {self.url} unreachable: {last_error}")


class Notifier:
    def __init__(self, sinks: Optional[List[NotificationSink]] = None, keep_recent: int = 50):
        self.sinks: List[NotificationSink] = list(sinks or [])
        self._recent: Optional[deque] = deque(maxlen=keep_recent) if keep_recent > 0 else None

    def register(self, sink: NotificationSink) -> None:
        self.sinks.append(sink)

    async def notify(self, payload: NotificationOut) -> None:
        if self._recent is not None:
            self._recent.append(payload)
        await asyncio.gather(*(self._send_one(s, payload) for s in self.sinks))

    async def _send_one(self, sink: NotificationSink, payload: NotificationOut) -> None:
        try:
            await sink.send(payload)
        except UpstreamLookupFailure as e:
            logger.error(f"Dropping notification {payload.login_event_id}: {e.message}")
        except Exception:
            logger.exception(f"Sink {sink.__class__.__name__} crashed; dropping notification {payload.login_event_id}")

    def recent(self, limit: Optional[int] = None) -> List[NotificationOut]:
        if self._recent is None:
            return []
        items = list(self._recent)
        if not limit or limit <= 0:
            return items
        return items[-int(limit):]


def build_notifier(current: Settings) -> Notifier:
    notifier = Notifier(keep_recent=current.notify_keep_recent)
    notifier.register(LogSink())
    if current.notify_webhook_url:
        notifier.register(
            WebhookSink(
                current.notify_webhook_url,
                timeout_sec=current.notify_timeout_sec,
                retry_max=current.notify_retry_max,
                backoff_ms=current.notify_retry_backoff_ms,
            )
        )
    return notifier

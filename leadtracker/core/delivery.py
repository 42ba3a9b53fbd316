"""
Delivery Channel: fire-and-forget event submission that survives page teardown.

Transports, picked by availability (never by branching at call sites):
  1. BeaconTransport     → host-supplied one-shot primitive (sendBeacon-style).
                           Returns True if the host queued the payload.
  2. KeepAliveTransport  → httpx.AsyncClient POST scheduled as an un-awaited task
                           on the running loop, or on a daemon thread with its own
                           loop when the host is synchronous. Keep-alive connection, no cookies;
                           auth is the page nonce inside the form body.

Best effort: no retry, no offline queue, no acknowledgment to the user.
Failures are logged, never raised. Missing endpoint/nonce → no-op + diagnostic.
"""

import asyncio
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import httpx
import structlog

from leadtracker.config import get_settings
from leadtracker.core.events import TrackedEvent

logger = structlog.get_logger()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"


@dataclass(frozen=True)
class TrackerConfig:
    """Injected by the page-rendering side before the tracker runs."""

    ajax_url: str = ""
    nonce: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.ajax_url and self.nonce)

    @classmethod
    def from_mapping(cls, data: Mapping | None) -> "TrackerConfig | None":
        if not data:
            return None
        return cls(ajax_url=str(data.get("ajax_url") or ""), nonce=str(data.get("nonce") or ""))


class Transport(Protocol):
    name: str

    def send(self, url: str, body: bytes, content_type: str) -> bool: ...


class BeaconTransport:
    name = "beacon"

    def __init__(self, beacon: Callable[[str, bytes, str], bool]):
        self._beacon = beacon

    def send(self, url: str, body: bytes, content_type: str) -> bool:
        try:
            return bool(self._beacon(url, body, content_type))
        except Exception as e:
            logger.warning("beacon_failed", url=url, error=str(e))
            return False


class KeepAliveTransport:
    name = "keepalive"

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self._client = client
        self._timeout = timeout if timeout is not None else get_settings().delivery_timeout_seconds
        self._pending: set[asyncio.Task] = set()
        self._threads: set[threading.Thread] = set()

    def send(self, url: str, body: bytes, content_type: str) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous host: post from a daemon thread running its own loop.
            thread = threading.Thread(
                target=self._post_in_thread,
                args=(url, body, content_type),
                name="leadtracker-keepalive",
                daemon=True,
            )
            self._threads.add(thread)
            thread.start()
            return True

        task = loop.create_task(self._post(url, body, content_type))
        # Hold a reference until done, otherwise the task can be collected mid-flight.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    def _post_in_thread(self, url: str, body: bytes, content_type: str) -> None:
        try:
            asyncio.run(self._post(url, body, content_type))
        finally:
            self._threads.discard(threading.current_thread())

    async def _post(self, url: str, body: bytes, content_type: str) -> None:
        headers = {"Content-Type": content_type}
        try:
            if self._client is not None:
                response = await self._client.post(url, content=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, content=body, headers=headers)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("keepalive_failed", url=url, error=str(e))
            return
        logger.debug("keepalive_delivered", url=url, status=response.status_code)

    @property
    def pending(self) -> int:
        return len(self._pending) + len(self._threads)

    def join(self, timeout: float | None = None) -> None:
        """Wait for posts sent from a synchronous host. Shutdown and tests only."""
        for thread in list(self._threads):
            thread.join(timeout)

    async def drain(self) -> None:
        """Wait for in-flight posts. For shutdown and tests; dispatch never calls this."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._client is not None:
            await self._client.aclose()


class FallbackTransport:
    """Try each transport in order until one accepts the payload."""

    name = "fallback"

    def __init__(self, transports: list[Transport]):
        self.transports = transports

    def send(self, url: str, body: bytes, content_type: str) -> bool:
        for transport in self.transports:
            if transport.send(url, body, content_type):
                return True
            logger.info("transport_declined", transport=transport.name)
        logger.error("delivery_failed", url=url, tried=[t.name for t in self.transports])
        return False


def select_transport(
    beacon: Callable[[str, bytes, str], bool] | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> Transport:
    """Beacon first when the host has one, keep-alive POST as fallback."""
    keepalive = KeepAliveTransport(client, timeout=timeout)
    if beacon is None:
        return keepalive
    return FallbackTransport([BeaconTransport(beacon), keepalive])


class DeliveryChannel:
    def __init__(self, config: TrackerConfig | None, transport: Transport):
        self.config = config
        self.transport = transport

    def dispatch(self, event: TrackedEvent) -> bool:
        """Hand the event to the transport. Returns whether it was handed off."""
        if self.config is None or not self.config.is_complete:
            logger.warning("delivery_not_configured", event_type=event.event_type)
            return False

        body = urlencode(event.to_form(self.config.nonce)).encode()
        sent = self.transport.send(self.config.ajax_url, body, FORM_CONTENT_TYPE)
        logger.info("lead_event_dispatched", event_type=event.event_type, transport=self.transport.name, sent=sent)
        return sent

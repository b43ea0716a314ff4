from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import nats
from nats.aio.client import Client as NATS

from ngschat.config import RECONNECT_TOTAL_S, RECONNECT_WAIT_S

log = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None]]


class Bus(Protocol):
    async def publish(self, subject: str, data: bytes) -> None: ...

    async def subscribe(self, subject: str, cb: Handler) -> None: ...


def normalize_server(addr: str) -> str:
    addr = addr.strip()
    if "://" not in addr:
        return f"tls://{addr}"
    return addr


class NatsBus:
    """``Bus`` backed by a nats-py connection."""

    def __init__(self, nc: NATS) -> None:
        self.nc = nc

    async def publish(self, subject: str, data: bytes) -> None:
        await self.nc.publish(subject, data)

    async def subscribe(self, subject: str, cb: Handler) -> None:
        await self.nc.subscribe(subject, cb=cb)

    async def close(self) -> None:
        if not self.nc.is_closed:
            await self.nc.close()


async def connect_bus(
    server: str,
    creds: str,
    on_closed: Optional[Callable[[], None]] = None,
) -> NatsBus:
    async def _closed_cb() -> None:
        log.error("[nats] connection closed: %s", nc.last_error)
        if on_closed is not None:
            on_closed()

    async def _disconnected_cb() -> None:
        log.info("[nats] disconnected, reconnecting")

    async def _reconnected_cb() -> None:
        log.info("[nats] reconnected to %s", nc.connected_url.netloc if nc.connected_url else "?")

    async def _error_cb(e: Exception) -> None:
        log.warning("[nats] %s: %s", type(e).__name__, e)

    log.info("Connecting to NATS system")
    nc = await nats.connect(
        servers=[normalize_server(server)],
        name="NGS-Chat",
        user_credentials=creds,
        # We do not want to hear ourselves.
        no_echo=True,
        reconnect_time_wait=RECONNECT_WAIT_S,
        max_reconnect_attempts=RECONNECT_TOTAL_S // RECONNECT_WAIT_S,
        closed_cb=_closed_cb,
        disconnected_cb=_disconnected_cb,
        reconnected_cb=_reconnected_cb,
        error_cb=_error_cb,
    )
    return NatsBus(nc)

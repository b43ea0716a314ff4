from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from ngschat.claims import Claims, encode
from ngschat.config import NEW_TAG, ONLINE_INTERVAL_S, ONLINE_SUB, ONLINE_TYPE
from ngschat.crypto import KeyPair
from ngschat.models import now_ts

log = logging.getLogger(__name__)

Publish = Callable[[str, bytes], Awaitable[None]]


class PresenceScheduler:
    """Announces our presence: once tagged "new", then every half interval.

    The heartbeat is a timer that re-arms itself after each tick. It never
    touches the directory, so publishing never happens under its lock.
    """

    def __init__(
        self,
        key_pair: KeyPair,
        name: str,
        publish: Publish,
        interval_s: float = ONLINE_INTERVAL_S,
    ) -> None:
        self.key_pair = key_pair
        self.name = name
        self.publish = publish
        self.interval_s = interval_s
        self.phase = "idle"  # idle | new | heartbeat
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    def make_claim(self, first: bool = False) -> Claims:
        return Claims(
            subject=self.key_pair.public_key,
            issuer=self.key_pair.public_key,
            claim_type=ONLINE_TYPE,
            name=self.name,
            expires=now_ts() + max(1, int(self.interval_s)),
            tags=(NEW_TAG,) if first else (),
        )

    async def send_online_status(self, first: bool = False) -> None:
        token = encode(self.make_claim(first), self.key_pair)
        try:
            await self.publish(ONLINE_SUB, token.encode("ascii"))
        except Exception as e:
            log.warning("[presence] publish failed: %s: %s", type(e).__name__, e)

    def _spawn(self, first: bool) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.send_online_status(first))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval_s / 2, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if self.phase == "idle":
            return
        self.phase = "heartbeat"
        self._spawn(first=False)
        self._schedule()

    def start(self) -> asyncio.Task:
        """Must be called from a running event loop."""
        self.phase = "new"
        task = self._spawn(first=True)
        self._schedule()
        return task

    async def announce_now(self) -> None:
        """Publish one untagged announcement without touching the timer."""
        await self.send_online_status(first=False)

    def stop(self) -> None:
        self.phase = "idle"
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        for task in list(self._tasks):
            task.cancel()

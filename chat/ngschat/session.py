from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Optional, Protocol

from ngschat.claims import Claims, check_claim, encode, new_claim_id
from ngschat.config import (
    AUDIENCE,
    DEFAULT_CHANNELS,
    DMS_PUB,
    NEW_TAG,
    ONLINE_INTERVAL_S,
    ONLINE_SUB,
    ONLINE_TYPE,
    POST_TYPE,
    POSTS_PUB,
    POSTS_SUB,
)
from ngschat.directory import Directory
from ngschat.models import (
    CHANNEL,
    DIRECT,
    Identity,
    PostAdded,
    UserAdded,
    View,
    display_name,
    now_ts,
)
from ngschat.presence import PresenceScheduler
from ngschat.transport import Bus

log = logging.getLogger(__name__)


class ChatView(Protocol):
    def request_update(self, event: Any) -> None: ...

    def current_view(self) -> Optional[View]: ...


class ChatSession:
    """Routes bus deliveries into the directory and user actions onto the bus.

    Each ``process_*`` handler runs as its own task on the event loop. They
    synchronise only through ``directory.lock``, which is never held across a
    publish or a UI call.
    """

    def __init__(
        self,
        identity: Identity,
        bus: Bus,
        name: str = "",
        channels: Iterable[str] = DEFAULT_CHANNELS,
        ui: Optional[ChatView] = None,
        online_interval_s: float = ONLINE_INTERVAL_S,
    ) -> None:
        self.identity = identity
        self.bus = bus
        self.ui = ui
        self.name = display_name(name or identity.name)
        self.directory = Directory(channels)
        self.presence = PresenceScheduler(
            identity.key_pair, self.name, bus.publish, interval_s=online_interval_s
        )

    @property
    def subject(self) -> str:
        return self.identity.subject

    def attach_ui(self, ui: ChatView) -> None:
        self.ui = ui

    def current_view(self) -> Optional[View]:
        return self.ui.current_view() if self.ui else None

    def _notify(self, event: Any) -> None:
        if self.ui is not None:
            self.ui.request_update(event)

    async def setup(self) -> None:
        await self.bus.subscribe(POSTS_SUB, self.process_new_post)
        # Only listen for DMs addressed to us.
        await self.bus.subscribe(DMS_PUB.format(self.subject), self.process_new_dm)
        await self.bus.subscribe(ONLINE_SUB, self.process_user_update)

        self.presence.start()

        # Show ourselves on the direct list.
        async with self.directory.lock:
            me = self.directory.add_user(self.name, self.subject)
            me.last_seen = time.time()
        self._notify(UserAdded(self.subject, self.name))

    def stop(self) -> None:
        self.presence.stop()

    # ── Inbound ───────────────────────────────────────────────────────────────

    async def process_user_update(self, msg: Any) -> None:
        claim = check_claim(msg.data, ONLINE_TYPE)
        if claim is None:
            return
        if claim.subject != claim.issuer:
            log.warning("-ERR Presence for %s was signed by %s", claim.subject, claim.issuer)
            return

        added: Optional[UserAdded] = None
        async with self.directory.lock:
            user = self.directory.user(claim.subject)
            if user is None:
                user = self.directory.add_user(display_name(claim.name), claim.subject)
                added = UserAdded(user.subject, user.name)
            user.last_seen = time.time()

        if added is not None:
            self._notify(added)

        # Answer a newcomer right away so they need not wait for our next heartbeat.
        if claim.has_tag(NEW_TAG) and claim.subject != self.subject:
            await self.presence.announce_now()

    async def process_new_post(self, msg: Any) -> None:
        post = check_claim(msg.data, POST_TYPE)
        if post is None or not post.id:
            return

        async with self.directory.lock:
            if not self.directory.is_channel(post.subject):
                log.debug("[post] dropping post for unknown channel %r", post.subject)
                return
            if self.directory.post_is_dupe(post.id):
                return
            self.directory.record_channel_post(post)

        view = View(CHANNEL, post.subject)
        if self.current_view() == view:
            self._notify(PostAdded(view, post))

    async def process_new_dm(self, msg: Any) -> None:
        post = check_claim(msg.data, POST_TYPE)
        if post is None or not post.id:
            return
        if post.subject != self.subject:
            log.warning("-ERR Direct message addressed to %s, not us", post.subject)
            return

        async with self.directory.lock:
            # DMs are only accepted from users we have already seen.
            if not self.directory.has_user(post.issuer):
                log.debug("[dm] dropping message from unknown user %s", post.issuer)
                return
            if self.directory.post_is_dupe(post.id):
                return
            self.directory.record_direct_post(post.issuer, post)

        view = View(DIRECT, post.issuer)
        if self.current_view() == view:
            self._notify(PostAdded(view, post))

    # ── Outbound ──────────────────────────────────────────────────────────────

    def post_subject(self, view: View) -> Optional[str]:
        if view.kind == DIRECT:
            if not self.directory.has_user(view.name):
                return None
            return DMS_PUB.format(view.name)
        if view.kind == CHANNEL and self.directory.is_channel(view.name):
            return POSTS_PUB.format(view.name)
        return None

    def new_post(self, view: View, text: str) -> Claims:
        return Claims(
            subject=view.name,
            issuer=self.subject,
            claim_type=POST_TYPE,
            name=self.name,
            id=new_claim_id(self.subject),
            issued_at=now_ts(),
            audience=AUDIENCE,
            data={"msg": text},
        )

    async def send_post(self, text: str, view: Optional[View] = None) -> Optional[Claims]:
        view = view or self.current_view()
        if view is None:
            return None

        async with self.directory.lock:
            subject = self.post_subject(view)
            if subject is None:
                return None
            post = self.new_post(view, text)
            # Our own echo, if the bus ever delivers one, must be a dupe.
            self.directory.mark_seen(post.id)

        token = encode(post, self.identity.key_pair)
        await self.bus.publish(subject, token.encode("ascii"))

        # Only posts that made it onto the bus enter local history.
        async with self.directory.lock:
            if view.kind == CHANNEL:
                self.directory.record_channel_post(post)
            else:
                self.directory.record_direct_post(view.name, post)
        self._notify(PostAdded(view, post))
        return post

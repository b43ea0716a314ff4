from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Set

from ngschat.claims import Claims
from ngschat.models import CHANNEL, DIRECT, User, View


class Directory:
    """Known users, channel posts and the dedup set.

    Every mutator and plain reader expects ``lock`` to be held by the caller.
    The ``snapshot_*`` coroutines take the lock themselves and hand back
    copies, for callers such as the UI that must not alias live state.
    """

    def __init__(self, channels: Iterable[str]) -> None:
        self.lock = asyncio.Lock()
        self.users: Dict[str, User] = {}               # subject -> User
        self.posts: Dict[str, List[Claims]] = {ch: [] for ch in channels}  # channel -> posts
        self._seen: Set[str] = set()                   # post ids already applied

    # ── Dedup ─────────────────────────────────────────────────────────────────

    def seen(self, post_id: str) -> bool:
        return post_id in self._seen

    def mark_seen(self, post_id: str) -> None:
        self._seen.add(post_id)

    def post_is_dupe(self, post_id: str) -> bool:
        if post_id in self._seen:
            return True
        self._seen.add(post_id)
        return False

    # ── Users ─────────────────────────────────────────────────────────────────

    def add_user(self, name: str, subject: str) -> User:
        user = self.users.get(subject)
        if user is None:
            user = User(subject=subject, name=name)
            self.users[subject] = user
        return user

    def user(self, subject: str) -> Optional[User]:
        return self.users.get(subject)

    def has_user(self, subject: str) -> bool:
        return subject in self.users

    # ── Posts ─────────────────────────────────────────────────────────────────

    def is_channel(self, name: str) -> bool:
        return name in self.posts

    def record_channel_post(self, post: Claims) -> bool:
        posts = self.posts.get(post.subject)
        if posts is None:
            return False
        posts.append(post)
        return True

    def record_direct_post(self, subject: str, post: Claims) -> Optional[User]:
        user = self.users.get(subject)
        if user is None:
            return None
        user.posts.append(post)
        return user

    def posts_for(self, view: View) -> List[Claims]:
        if view.kind == CHANNEL:
            return self.posts.get(view.name, [])
        if view.kind == DIRECT:
            user = self.users.get(view.name)
            return user.posts if user else []
        return []

    # ── Snapshots ─────────────────────────────────────────────────────────────

    async def snapshot_users(self) -> List[User]:
        async with self.lock:
            users = [
                User(subject=u.subject, name=u.name, last_seen=u.last_seen, posts=list(u.posts))
                for u in self.users.values()
            ]
        return sorted(users, key=lambda u: (u.name, u.subject))

    async def snapshot_posts(self, view: View) -> List[Claims]:
        async with self.lock:
            return list(self.posts_for(view))

    async def snapshot_channels(self) -> List[str]:
        async with self.lock:
            return sorted(self.posts.keys())

from __future__ import annotations

import dataclasses
import time
from typing import TYPE_CHECKING, List, Optional

from ngschat.config import MAX_NAME_LEN

if TYPE_CHECKING:
    from ngschat.claims import Claims
    from ngschat.crypto import KeyPair

CHANNEL = "channel"
DIRECT = "direct"


def now_ts() -> int:
    return int(time.time())


def display_name(name: str) -> str:
    """First word of *name*, lowercased and clipped to ``MAX_NAME_LEN``."""
    parts = name.strip().split(" ")
    return parts[0].lower()[:MAX_NAME_LEN]


def normalize_channel(raw: str) -> Optional[str]:
    """Lowercase channel name usable as one bus subject token, or None."""
    channel = raw.strip().lower()
    if channel.startswith("#"):
        channel = channel[1:]
    if not channel or len(channel) > 32:
        return None
    if not all(c.isalnum() or c in {"-", "_"} for c in channel):
        return None
    return channel


@dataclasses.dataclass(frozen=True)
class Identity:
    subject: str          # user public nkey
    name: str
    user_claims: Claims
    key_pair: KeyPair


@dataclasses.dataclass(frozen=True)
class View:
    kind: str  # channel | direct
    name: str  # channel name, or the peer's subject for direct views


@dataclasses.dataclass
class User:
    subject: str
    name: str
    last_seen: float = 0.0
    posts: List[Claims] = dataclasses.field(default_factory=list)  # direct messages, arrival order


# ── UI events ─────────────────────────────────────────────────────────────────

@dataclasses.dataclass(frozen=True)
class UserAdded:
    subject: str
    name: str


@dataclasses.dataclass(frozen=True)
class PostAdded:
    view: View
    post: Claims

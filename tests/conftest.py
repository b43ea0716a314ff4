from __future__ import annotations

import dataclasses
import itertools
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import pytest

from ngschat.claims import Claims, encode
from ngschat.crypto import KeyPair
from ngschat.identity import format_creds, load_user
from ngschat.keys import PREFIX_BYTE_ACCOUNT, PREFIX_BYTE_USER
from ngschat.models import View


def make_user_jwt(user_kp: KeyPair, account_kp: KeyPair, name: str, claim_type: str = "user") -> str:
    claims = Claims(
        subject=user_kp.public_key,
        name=name,
        nats={"type": claim_type, "version": 2},
    )
    return encode(claims, account_kp)


@dataclasses.dataclass
class Msg:
    subject: str
    data: bytes


class FakeBus:
    """Records publishes and subscriptions instead of talking to NATS."""

    def __init__(self) -> None:
        self.published: List[Tuple[str, bytes]] = []
        self.subscriptions: Dict[str, Callable[[Any], Awaitable[None]]] = {}

    async def publish(self, subject: str, data: bytes) -> None:
        self.published.append((subject, data))

    async def subscribe(self, subject: str, cb: Callable[[Any], Awaitable[None]]) -> None:
        self.subscriptions[subject] = cb

    def published_on(self, subject: str) -> List[bytes]:
        return [data for subj, data in self.published if subj == subject]


class FakeView:
    def __init__(self, view: Optional[View] = None) -> None:
        self.view = view
        self.events: List[Any] = []

    def request_update(self, event: Any) -> None:
        self.events.append(event)

    def current_view(self) -> Optional[View]:
        return self.view


@pytest.fixture
def account_kp() -> KeyPair:
    return KeyPair.generate(PREFIX_BYTE_ACCOUNT)


@pytest.fixture
def make_creds(tmp_path: Path, account_kp: KeyPair):
    counter = itertools.count()

    def _make(name: str = "Alice Example", user_kp: Optional[KeyPair] = None) -> Path:
        user_kp = user_kp or KeyPair.generate(PREFIX_BYTE_USER)
        path = tmp_path / f"user{next(counter)}.creds"
        path.write_text(format_creds(make_user_jwt(user_kp, account_kp, name), user_kp.seed()))
        return path

    return _make


@pytest.fixture
def make_identity(make_creds):
    def _make(name: str = "Alice Example"):
        return load_user(make_creds(name))

    return _make


@pytest.fixture
def make_msg():
    return Msg


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def view() -> FakeView:
    return FakeView()

from __future__ import annotations

import asyncio

from ngschat.claims import Claims
from ngschat.directory import Directory
from ngschat.models import CHANNEL, DIRECT, View


def _post(post_id: str, subject: str = "general") -> Claims:
    return Claims(subject=subject, issuer="UISSUER", id=post_id, data={"msg": post_id})


def test_add_user_is_idempotent_by_subject():
    d = Directory(["general"])
    first = d.add_user("alice", "UALICE")
    first.last_seen = 42.0
    again = d.add_user("someone-else", "UALICE")
    assert again is first
    assert again.name == "alice"
    assert again.last_seen == 42.0
    assert len(d.users) == 1


def test_post_is_dupe_checks_and_marks():
    d = Directory(["general"])
    assert not d.seen("p1")
    assert d.post_is_dupe("p1") is False
    assert d.seen("p1")
    assert d.post_is_dupe("p1") is True


def test_mark_seen():
    d = Directory([])
    d.mark_seen("p1")
    assert d.post_is_dupe("p1")


def test_channel_posts_keep_arrival_order():
    d = Directory(["general", "random"])
    later = Claims(subject="general", issuer="U1", id="b", issued_at=200)
    earlier = Claims(subject="general", issuer="U1", id="a", issued_at=100)
    assert d.record_channel_post(later)
    assert d.record_channel_post(earlier)
    assert [p.id for p in d.posts_for(View(CHANNEL, "general"))] == ["b", "a"]
    assert d.posts_for(View(CHANNEL, "random")) == []


def test_unknown_channel_is_not_recorded():
    d = Directory(["general"])
    assert d.record_channel_post(_post("p1", subject="secret")) is False
    assert not d.is_channel("secret")
    assert "secret" not in d.posts


def test_direct_post_from_unknown_subject_is_a_noop():
    d = Directory(["general"])
    assert d.record_direct_post("UNOBODY", _post("p1", subject="UME")) is None
    assert d.users == {}


def test_direct_post_for_known_user():
    d = Directory(["general"])
    d.add_user("bob", "UBOB")
    user = d.record_direct_post("UBOB", _post("p1", subject="UME"))
    assert user is not None
    assert [p.id for p in d.posts_for(View(DIRECT, "UBOB"))] == ["p1"]


def test_snapshots_are_copies():
    async def scenario():
        d = Directory(["general"])
        async with d.lock:
            d.add_user("bob", "UBOB")
            d.record_channel_post(_post("p1"))
            d.record_direct_post("UBOB", _post("d1", subject="UME"))

        posts = await d.snapshot_posts(View(CHANNEL, "general"))
        users = await d.snapshot_users()
        posts.append(_post("p2"))
        users[0].posts.clear()
        users[0].name = "changed"

        async with d.lock:
            assert len(d.posts["general"]) == 1
            assert d.users["UBOB"].name == "bob"
            assert len(d.users["UBOB"].posts) == 1
        assert await d.snapshot_channels() == ["general"]
        assert not d.lock.locked()

    asyncio.run(scenario())

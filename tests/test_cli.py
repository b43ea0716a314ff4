from __future__ import annotations

import asyncio

import pytest

from ngschat import cli
from ngschat.config import DEFAULT_CHANNELS


def test_missing_creds_exits_nonzero(caplog):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--creds", ""])
    assert exc.value.code == 1
    assert "requires user credentials" in caplog.text


def test_bad_creds_exit_nonzero(tmp_path):
    path = tmp_path / "broken.creds"
    path.write_text("no delimiters here\n")
    with pytest.raises(SystemExit) as exc:
        cli.main(["-creds", str(path)])
    assert exc.value.code == 1


def test_invalid_channel_exits_nonzero(make_creds):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--creds", str(make_creds()), "--channel", "bad.name"])
    assert exc.value.code == 1


def test_channel_list_adds_extras_once():
    channels = cli.channel_list(["#Random", "random", "general"])
    assert channels == list(DEFAULT_CHANNELS) + ["random"]


def test_parser_defaults():
    args = cli.build_parser().parse_args(["-n", "Jane Doe", "-s", "nats://localhost:4222"])
    assert args.name == "Jane Doe"
    assert args.server == "nats://localhost:4222"
    assert args.channel == []


def test_connect_failure_is_fatal(monkeypatch, make_identity):
    async def refuse(*args, **kwargs):
        raise ConnectionRefusedError("nobody home")

    monkeypatch.setattr(cli, "connect_bus", refuse)
    args = cli.build_parser().parse_args(["--creds", "unused"])
    rc = asyncio.run(cli.run_chat(args, make_identity(), list(DEFAULT_CHANNELS)))
    assert rc == 1

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ngschat.config import DEFAULT_CHANNELS, DEFAULT_CREDS, DEFAULT_SERVER, LOG_FILE
from ngschat.identity import CredentialsError, load_user
from ngschat.models import Identity, normalize_channel
from ngschat.session import ChatSession
from ngschat.transport import connect_bus

log = logging.getLogger("ngschat")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ngschat",
        description="Presence and chat over NATS, authenticated with signed claims",
    )
    p.add_argument("-s", "--server", default=DEFAULT_SERVER, help="NATS system (default: %(default)s)")
    p.add_argument("-n", "--name", default="", help="Chat name (default: name in the user JWT)")
    p.add_argument("-creds", "--creds", default=DEFAULT_CREDS, help="User credentials file")
    p.add_argument(
        "--channel", action="append", default=[],
        help="Extra channel to follow (repeatable)",
    )
    p.add_argument("--log-file", default=LOG_FILE, help="Write logs to this file instead of stderr")
    p.add_argument("--debug", action="store_true", help="Debug logging")
    return p


def configure_logging(debug: bool = False, log_file: str = "") -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        filename=log_file or None,
    )


def channel_list(extra: List[str]) -> List[str]:
    channels = list(DEFAULT_CHANNELS)
    for raw in extra:
        channel = normalize_channel(raw)
        if channel is None:
            raise ValueError(f"Invalid channel name {raw!r}")
        if channel not in channels:
            channels.append(channel)
    return channels


async def run_chat(args: argparse.Namespace, identity: Identity, channels: List[str]) -> int:
    from ngschat.tui import ChatApp

    app: Optional[ChatApp] = None

    def _closed() -> None:
        if app is not None:
            app.exit(return_code=1, message="Connection to NATS closed")

    try:
        bus = await connect_bus(args.server, args.creds, on_closed=_closed)
    except Exception as e:
        log.error("Could not connect to %s: %s: %s", args.server, type(e).__name__, e)
        return 1

    session = ChatSession(identity, bus, name=args.name, channels=channels)
    app = ChatApp(session)
    try:
        await app.run_async()
    finally:
        session.stop()
        await bus.close()
    return app.return_code or 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug, args.log_file)

    if not args.creds:
        log.error("NGS Chat requires user credentials file")
        sys.exit(1)

    try:
        channels = channel_list(args.channel)
    except ValueError as e:
        log.error("%s", e)
        sys.exit(1)

    try:
        identity = load_user(args.creds)
    except CredentialsError as e:
        log.error("%s", e)
        sys.exit(1)

    try:
        rc = asyncio.run(run_chat(args, identity, channels))
    except KeyboardInterrupt:
        rc = 0
    sys.exit(rc)


if __name__ == "__main__":
    main()

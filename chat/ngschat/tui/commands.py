"""Slash-command mixin for ChatScreen.

Methods rely on attributes and helpers defined in ChatScreen.
"""
from __future__ import annotations

import time

from ngschat.models import CHANNEL, View, normalize_channel

from ._utils import direct_label

HELP_LINES = [
    "[bold]ngs-chat: slash commands[/bold]",
    "  [bold]/help[/bold]                   This list",
    "  [bold]/who[/bold]                    Known users and when they were last seen",
    "  [bold]/join[/bold] [dim]<channel>[/dim]        Switch to a channel",
    "  [bold]/quit[/bold]                   Exit ngs-chat",
    "",
    "Select a channel or a user in the sidebar to switch conversation.",
]


class CommandsMixin:

    async def _handle_command(self, text: str) -> None:
        parts = text[1:].split()
        if not parts:
            return
        cmd, args = parts[0].lower(), parts[1:]

        if cmd in {"quit", "exit"}:
            self.app.exit()
        elif cmd == "help":
            for line in HELP_LINES:
                self.query_one("#message-log").write(line)
        elif cmd == "who":
            await self._cmd_who()
        elif cmd == "join" and args:
            await self._cmd_join(args[0])
        else:
            self._log_system(f"Unknown command '{text}'. Try /help.")

    async def _cmd_who(self) -> None:
        users = await self.session.directory.snapshot_users()
        now = time.time()
        self._log_system(f"{len(users)} known user(s):")
        for u in users:
            ago = int(now - u.last_seen) if u.last_seen else -1
            seen = f"seen {ago}s ago" if ago >= 0 else "never seen"
            self._log_system(f"{direct_label(u.name, u.subject == self.session.subject)}  {seen}")

    async def _cmd_join(self, name: str) -> None:
        channel = normalize_channel(name)
        if channel is None or channel not in await self.session.directory.snapshot_channels():
            self._log_system(f"Unknown channel {name}.")
            return
        view = View(CHANNEL, channel)
        if view != self._current:
            self._current = view
            await self._load_history()

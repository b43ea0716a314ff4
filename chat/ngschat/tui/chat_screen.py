"""Main panel-based chat screen."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Set

from rich.markup import escape as markup_escape
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import Footer, Header, Input, RichLog, Tree
from textual.widgets.tree import TreeNode

from ngschat.config import HISTORY_LIMIT
from ngschat.models import CHANNEL, DIRECT, PostAdded, UserAdded, View
from ngschat.session import ChatSession

from ._utils import direct_label, post_entry
from .commands import CommandsMixin

log = logging.getLogger(__name__)


class ChatScreen(CommandsMixin, Screen):
    """Sidebar of conversations, message log and input line.

    Implements the two calls the session makes into the UI: ``request_update``
    queues an event onto this screen's own message loop, and ``current_view``
    reports the selected conversation.
    """

    BINDINGS = [
        Binding("ctrl+q", "app.quit", "Quit"),
        Binding("escape", "focus_input", "Focus input"),
    ]

    DEFAULT_CSS = """
    ChatScreen {
        layout: vertical;
    }
    #chat-body {
        height: 1fr;
    }
    #sidebar {
        width: 22;
        border-right: solid $primary-darken-2;
        padding: 0 1;
    }
    #message-log {
        width: 1fr;
        padding: 0 1;
    }
    #message-input {
        dock: bottom;
        height: 3;
        border-top: solid $primary-darken-2;
    }
    """

    def __init__(self, session: ChatSession, **kwargs) -> None:
        super().__init__(**kwargs)
        self.session = session
        self._current: Optional[View] = None
        self._shown: Set[str] = set()
        self._channels_node: Optional[TreeNode] = None
        self._direct_node: Optional[TreeNode] = None
        self._direct_leaves: Dict[str, TreeNode] = {}

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="chat-body"):
            yield Tree("ngs-chat", id="sidebar")
            yield RichLog(id="message-log", markup=True, auto_scroll=True, wrap=True)
        yield Input(placeholder="Type a message... (/help for commands)", id="message-input")
        yield Footer()

    async def on_mount(self) -> None:
        tree = self.query_one("#sidebar", Tree)
        tree.show_root = False
        self._channels_node = tree.root.add("Channels", expand=True)
        self._direct_node = tree.root.add("Direct", expand=True)

        channels = await self.session.directory.snapshot_channels()
        for ch in channels:
            self._channels_node.add_leaf(f"#{ch}", data=View(CHANNEL, ch))
        if channels:
            self._current = View(CHANNEL, channels[0])

        self.session.attach_ui(self)
        await self.session.setup()
        await self._load_history()
        self.query_one("#message-input", Input).focus()

    async def on_unmount(self) -> None:
        self.session.stop()

    # ── Session boundary ──────────────────────────────────────────────────────

    def current_view(self) -> Optional[View]:
        return self._current

    def request_update(self, event: Any) -> None:
        self.call_later(self._apply_update, event)

    def _apply_update(self, event: Any) -> None:
        if isinstance(event, UserAdded):
            self._add_direct(event.subject, event.name)
        elif isinstance(event, PostAdded):
            if event.view == self._current:
                self._write_post(event.post)

    # ── Sidebar ───────────────────────────────────────────────────────────────

    def _add_direct(self, subject: str, name: str) -> None:
        if self._direct_node is None or subject in self._direct_leaves:
            return
        is_me = subject == self.session.subject
        leaf = self._direct_node.add_leaf(direct_label(name, is_me), data=View(DIRECT, subject))
        self._direct_leaves[subject] = leaf
        self._update_title()

    def _view_label(self, view: Optional[View]) -> str:
        if view is None:
            return "none"
        if view.kind == CHANNEL:
            return f"#{view.name}"
        leaf = self._direct_leaves.get(view.name)
        return str(leaf.label) if leaf else f"@{view.name[:8]}"

    def _update_title(self) -> None:
        users = len(self._direct_leaves)
        user_word = "user" if users == 1 else "users"
        self.title = f"ngs-chat  {self.session.name} | {self._view_label(self._current)} | {users} {user_word}"

    async def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        view = event.node.data
        if not isinstance(view, View):
            return
        if view != self._current:
            self._current = view
            await self._load_history()
        self.query_one("#message-input", Input).focus()

    # ── Message log ───────────────────────────────────────────────────────────

    async def _load_history(self) -> None:
        self.query_one("#message-log", RichLog).clear()
        self._shown = set()
        self._update_title()
        if self._current is None:
            return
        for post in (await self.session.directory.snapshot_posts(self._current))[-HISTORY_LIMIT:]:
            self._write_post(post)

    def _write_post(self, post) -> None:
        if post.id in self._shown:
            return
        self._shown.add(post.id)
        self.query_one("#message-log", RichLog).write(post_entry(post, self.session.subject))

    def _log_system(self, msg: str) -> None:
        self.query_one("#message-log", RichLog).write(f"[dim italic]  {markup_escape(msg)}[/dim italic]")

    # ── Input handling ────────────────────────────────────────────────────────

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        self.query_one("#message-input", Input).value = ""
        if not text:
            return
        if text.startswith("/"):
            await self._handle_command(text)
            return
        try:
            await self.session.send_post(text)
        except Exception as e:
            log.warning("[send] %s: %s", type(e).__name__, e)
            self._log_system(f"Send failed: {e}")

    def action_focus_input(self) -> None:
        self.query_one("#message-input", Input).focus()

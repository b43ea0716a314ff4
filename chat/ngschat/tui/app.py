"""Top-level Textual application."""
from __future__ import annotations

from textual.app import App
from textual.binding import Binding

from ngschat.session import ChatSession

from .chat_screen import ChatScreen


class ChatApp(App):
    """ngschat terminal UI application."""

    TITLE = "ngs-chat"
    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit"),
        Binding("ctrl+c", "quit", "Quit", show=False),
    ]

    def __init__(self, session: ChatSession, **kwargs) -> None:
        super().__init__(**kwargs)
        self.session = session

    def on_mount(self) -> None:
        self.push_screen(ChatScreen(self.session))

"""Shared helpers: peer-color palette and safe message rendering."""
from __future__ import annotations

import time

from rich.markup import escape as markup_escape

from ngschat.claims import Claims

_PEER_COLORS = [
    "cyan", "yellow", "magenta", "bright_cyan",
    "bright_yellow", "bright_magenta", "orange1", "hot_pink",
    "chartreuse3", "cornflower_blue", "salmon1", "sky_blue2",
]


def _peer_color(subject: str) -> str:
    """Return a deterministic Rich color name for a given subject."""
    return _PEER_COLORS[sum(subject.encode("ascii", "replace")) % len(_PEER_COLORS)]


def direct_label(name: str, is_me: bool = False) -> str:
    return f"@{name} (me)" if is_me else f"@{name}"


def post_entry(post: Claims, my_subject: str) -> str:
    """One message-log row as Rich markup. Peer-supplied text is escaped."""
    ts = time.strftime("%H:%M", time.localtime(post.issued_at))
    author = markup_escape(post.name or post.issuer[:8])
    body = markup_escape(post.text)
    if post.issuer == my_subject:
        return f"[dim]{ts}[/dim] [bold green]{author}[/bold green]: {body}"
    color = _peer_color(post.issuer)
    return f"[dim]{ts}[/dim] [bold {color}]{author}[/bold {color}]: {body}"

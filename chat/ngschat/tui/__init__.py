"""ngschat TUI package.

Public surface: ``ChatApp``.
"""
from .app import ChatApp

__all__ = ["ChatApp"]

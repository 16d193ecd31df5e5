"""
IdleScreen — shown when every surface is closed but the process stays alive.

Keybindings:
  l — reopen the launcher
"""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.screen import Screen
from textual.widgets import Footer, Label


class IdleScreen(Screen):  # type: ignore[type-arg]
    BINDINGS = [
        Binding("l", "activate", "Launcher", show=True),
    ]

    def compose(self) -> ComposeResult:
        with Container(id="idle-root"):
            yield Label("No windows open. Press L to reopen the launcher.", id="idle-text")
        yield Footer()

    def action_activate(self) -> None:
        self.app.run_worker(self.app.activate(), group="surfaces")  # type: ignore[attr-defined]

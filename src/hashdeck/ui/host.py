"""
ScreenSurfaceHost — realises surfaces as installed Textual screens.

Each live surface is one screen installed under its kind's name.  Opening a
surface shows its screen; focusing switches to it; destroying it switches to
the remaining surface (or the idle screen on keep-alive platforms) before
uninstalling it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

import structlog
from textual.app import App
from textual.screen import Screen

from hashdeck.core.models import SurfaceKind
from hashdeck.ui.screens.surface import SurfaceScreen

logger = structlog.get_logger()


class ScreenSurfaceHost:
    def __init__(
        self,
        app: App,  # type: ignore[type-arg]
        factories: Mapping[SurfaceKind, Callable[[], SurfaceScreen]],
        *,
        idle_factory: Callable[[], Screen] | None = None,  # type: ignore[type-arg]
    ) -> None:
        self._app = app
        self._factories = dict(factories)
        self._idle_factory = idle_factory
        self._screens: dict[SurfaceKind, SurfaceScreen] = {}

    @property
    def live(self) -> frozenset[SurfaceKind]:
        return frozenset(self._screens)

    async def create(self, kind: SurfaceKind) -> None:
        screen = self._factories[kind]()
        self._app.install_screen(screen, name=kind.value)
        self._screens[kind] = screen
        await self._show(screen)
        logger.debug("screen_created", kind=kind.value)

    async def focus(self, kind: SurfaceKind) -> None:
        screen = self._screens.get(kind)
        if screen is not None and self._app.screen is not screen:
            await self._app.switch_screen(screen)

    async def destroy(self, kind: SurfaceKind) -> None:
        screen = self._screens.pop(kind, None)
        if screen is None:
            return
        screen.release()
        if self._app.screen is screen:
            if self._screens:
                await self._app.switch_screen(next(iter(self._screens.values())))
            elif self._idle_factory is not None:
                await self._app.switch_screen(self._idle_factory())
            else:
                # Last surface: the orchestrator terminates and the app exits
                return
        if screen not in self._app.screen_stack:
            self._app.uninstall_screen(screen)
            await screen.remove()
        logger.debug("screen_destroyed", kind=kind.value)

    async def _show(self, screen: Screen) -> None:  # type: ignore[type-arg]
        # Only the default screen on the stack: push; otherwise replace the top
        if len(self._app.screen_stack) <= 1:
            await self._app.push_screen(screen)
        else:
            await self._app.switch_screen(screen)

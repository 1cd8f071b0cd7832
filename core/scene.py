"""
core/scene.py — Scene interface

The app holds a stack of scenes; only the top one receives events,
updates and draws.  The network view is a scene:

    class NetworkScene(Scene):
        def on_enter(self, app): ...
        def handle_event(self, event, app): ...
        def update(self, dt, app): ...        # dt is real seconds
        def draw(self, surface, app): ...
"""

from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pygame
    from core.app import App


class Scene:
    def on_enter(self, app: App):
        """Called when this scene becomes the top of the stack."""
        pass

    def on_exit(self, app: App):
        """Called when this scene is popped or covered."""
        pass

    def handle_event(self, event: pygame.event.Event, app: App):
        pass

    def update(self, dt: float, app: App):
        pass

    def draw(self, surface: pygame.Surface, app: App):
        pass

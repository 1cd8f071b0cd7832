"""
core/app.py — Pygame window and scene stack

Owns the window, the frame clock and a stack of scenes.  Everything is
drawn to a fixed 960x640 surface which is scaled to the window, so
scenes work in one coordinate space whatever the window size.

    app = App(title="Transit", width=960, height=640)
    app.push_scene(NetworkScene(sim))
    app.run()
"""

from __future__ import annotations
import pygame
from core.scene import Scene


class App:
    def __init__(self, title: str = "Transit", width: int = 960, height: int = 640):
        pygame.init()
        self._windowed_size = (width, height)
        self.size = (width, height)
        self._canvas = pygame.Surface((width, height))
        self.screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)
        pygame.display.set_caption(title)
        self.clock = pygame.time.Clock()
        self.running = True
        self.fullscreen = False
        self.fps = 60
        self.dt = 0.0

        # Only the top scene is active
        self._scenes: list[Scene] = []

        self.font = pygame.font.SysFont("monospace", 14)
        self.font_sm = pygame.font.SysFont("monospace", 11)
        self.font_lg = pygame.font.SysFont("monospace", 18, bold=True)

    # -- Scene management --

    @property
    def scene(self) -> Scene | None:
        return self._scenes[-1] if self._scenes else None

    def push_scene(self, scene: Scene):
        if self._scenes:
            self._scenes[-1].on_exit(self)
        self._scenes.append(scene)
        scene.on_enter(self)

    def pop_scene(self):
        if self._scenes:
            self._scenes[-1].on_exit(self)
            self._scenes.pop()
        if self._scenes:
            self._scenes[-1].on_enter(self)
        else:
            self.running = False

    # -- Coordinates --

    def to_canvas(self, pos: tuple[int, int]) -> tuple[int, int]:
        """Map a window pixel to canvas coordinates."""
        sw, sh = self.screen.get_size()
        cw, ch = self.size
        return int(pos[0] * cw / sw), int(pos[1] * ch / sh)

    def mouse_pos(self) -> tuple[int, int]:
        return self.to_canvas(pygame.mouse.get_pos())

    # -- Main loop --

    def run(self):
        while self.running:
            self.dt = self.clock.tick(self.fps) / 1000.0

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.running = False
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_F11:
                    self.toggle_fullscreen()
                elif event.type == pygame.VIDEORESIZE and not self.fullscreen:
                    self._windowed_size = (event.w, event.h)
                    self.screen = pygame.display.set_mode(
                        (event.w, event.h), pygame.RESIZABLE)
                elif self.scene:
                    self.scene.handle_event(event, self)

            if self.scene:
                self.scene.update(self.dt, self)
                self.scene.draw(self._canvas, self)

            pygame.transform.scale(self._canvas, self.screen.get_size(), self.screen)
            pygame.display.flip()

        pygame.quit()

    def toggle_fullscreen(self):
        self.fullscreen = not self.fullscreen
        if self.fullscreen:
            self.screen = pygame.display.set_mode((0, 0), pygame.FULLSCREEN)
        else:
            self.screen = pygame.display.set_mode(
                self._windowed_size, pygame.RESIZABLE)

    # -- Convenience --

    def draw_text(self, surface: pygame.Surface, text: str, x: int, y: int,
                  color=(255, 255, 255), font=None) -> pygame.Rect:
        """Quick text draw. Returns the rect for layout chaining."""
        img = (font or self.font).render(text, True, color)
        return surface.blit(img, (x, y))

    def draw_text_bg(self, surface: pygame.Surface, text: str, x: int, y: int,
                     color=(255, 255, 255), bg=(0, 0, 0, 170), font=None,
                     pad: int = 3) -> pygame.Rect:
        """Text over a translucent box (tooltips, banners)."""
        img = (font or self.font).render(text, True, color)
        w, h = img.get_size()
        box = pygame.Surface((w + pad * 2, h + pad * 2), pygame.SRCALPHA)
        box.fill(bg)
        surface.blit(box, (x - pad, y - pad))
        return surface.blit(img, (x, y))

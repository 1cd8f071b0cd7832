"""
scenes/network_scene.py — Live network view and dashboard

Left: the map.  Lines are drawn as closed loops in their colour,
stations as circles coloured by status with an occupancy ring, trains
as small oriented boxes.  Right: the dashboard (clock, totals, delay
counter against its limit, the selected entity, and the dev-log tail).

Controls:
  Left click   select station / train / line (click empty space to clear)
  E            act on the selection (repair station / resume train)
  S            stop the selected train (maintenance)
  F            force a random incident
  P / Space    pause / resume
  + / -        faster / slower simulation
  F5           reload data/tuning.toml
  R            restart (after game over)
  Escape       quit
"""

from __future__ import annotations
import math
from typing import Callable

import pygame
from core.scene import Scene
from core.app import App
from core import tuning
from components.network import (
    EntityKind, Line, LineStatus, Station, StationStatus, Train, TrainStatus,
)
from components.resources import AppState
from simulation.config import SimConfig
from simulation.world_sim import TransitSim

# ── UI constants ─────────────────────────────────────────────────────
_BG = (16, 20, 24)
_PANEL_BG = (24, 28, 34)
_BORDER = (50, 60, 55)
_HEADER = (0, 255, 200)
_DIM = (90, 90, 90)
_TEXT = (200, 200, 200)
_WARN = (255, 200, 80)
_BAD = (255, 80, 80)

_MAP_W = 680
_STATION_R = 12
_TRAIN_HIT = 9
_LINE_HIT = 5

_STATUS_COLORS: dict[StationStatus, tuple[int, int, int]] = {
    StationStatus.NORMAL: (90, 200, 120),
    StationStatus.DELAYED: (240, 190, 60),
    StationStatus.BROKEN: (230, 60, 60),
}

_TRAIN_COLORS: dict[TrainStatus, tuple[int, int, int]] = {
    TrainStatus.MOVING: (235, 235, 235),
    TrainStatus.STOPPED: (170, 170, 170),
    TrainStatus.MAINTENANCE: (255, 120, 40),
}

_CAT_COLORS: dict[str, tuple[int, int, int]] = {
    "station":  (240, 190, 60),
    "line":     (120, 200, 255),
    "train":    (100, 255, 160),
    "incident": (255, 100, 80),
    "flow":     (200, 180, 100),
    "error":    (255, 50, 50),
    "sim":      (180, 180, 180),
    "ui":       (120, 120, 120),
}


# ─────────────────────────────────────────────────────────────────────

class NetworkScene(Scene):
    def __init__(self, make_sim: Callable[[], TransitSim]):
        self._make_sim = make_sim
        self.sim = make_sim()
        self.hover: tuple[EntityKind, str] | None = None

    def on_enter(self, app: App):
        if self.sim.state == AppState.INITIALIZING:
            self.sim.start()

    # ── input ────────────────────────────────────────────────────────

    def handle_event(self, event: pygame.event.Event, app: App):
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            self._click(app.to_canvas(event.pos))
            return
        if event.type != pygame.KEYDOWN:
            return

        sim = self.sim
        sel = sim.interaction.selected
        if event.key == pygame.K_ESCAPE:
            app.pop_scene()
        elif event.key in (pygame.K_p, pygame.K_SPACE):
            sim.toggle_pause()
        elif event.key == pygame.K_e:
            sim.interaction.on_action()
        elif event.key == pygame.K_s and sel and sel.kind == EntityKind.TRAIN:
            sim.stop_train(sel.id)
        elif event.key == pygame.K_f:
            sim.force_incident()
        elif event.key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
            sim.set_time_scale(sim.cfg.time_scale * 2)
        elif event.key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            sim.set_time_scale(sim.cfg.time_scale / 2)
        elif event.key == pygame.K_F5:
            tuning.reload()
            scale = sim.cfg.time_scale
            cfg = SimConfig.from_tuning()
            cfg.time_scale = scale
            sim.apply_config(cfg)
        elif event.key == pygame.K_r and sim.state == AppState.GAME_OVER:
            self.sim = self._make_sim()
            self.sim.start()

    def _click(self, pos: tuple[int, int]):
        if pos[0] >= _MAP_W:
            return
        hit = self._pick(pos)
        if hit is None:
            self.sim.interaction.on_deselect()
        else:
            self.sim.interaction.on_select(*hit)

    def _pick(self, pos: tuple[int, int]) -> tuple[EntityKind, str] | None:
        """Topmost entity under *pos*: trains, then stations, then lines."""
        px, py = pos
        reg = self.sim.reg
        for tid, train in reg.all_of(Train):
            if not train.fault and math.hypot(train.x - px, train.y - py) <= _TRAIN_HIT:
                return EntityKind.TRAIN, tid
        for sid, st in reg.all_of(Station):
            if math.hypot(st.x - px, st.y - py) <= _STATION_R:
                return EntityKind.STATION, sid
        for lid, line in reg.all_of(Line):
            for a, b in _segments(reg, line):
                if _dist_to_segment(px, py, a, b) <= _LINE_HIT:
                    return EntityKind.LINE, lid
        return None

    # ── update ───────────────────────────────────────────────────────

    def update(self, dt: float, app: App):
        self.sim.update(dt)
        self.hover = self._pick(app.mouse_pos())

    # ── draw ─────────────────────────────────────────────────────────

    def draw(self, surface: pygame.Surface, app: App):
        surface.fill(_BG)
        self._draw_lines(surface)
        self._draw_stations(surface, app)
        self._draw_trains(surface)
        self._draw_panel(surface, app)
        if self.hover:
            kind, eid = self.hover
            mx, my = app.mouse_pos()
            app.draw_text_bg(surface, f"{kind.value}: {eid}", mx + 12, my + 12,
                             font=app.font_sm)
        state = self.sim.state
        if state == AppState.PAUSED:
            app.draw_text_bg(surface, "PAUSED  [P] resume", _MAP_W // 2 - 80, 12,
                             color=_WARN, font=app.font_lg)
        elif state == AppState.GAME_OVER:
            reason = self.sim.metrics.game_over_reason
            app.draw_text_bg(surface, f"GAME OVER — {reason}", 20, 12,
                             color=_BAD, font=app.font_lg)
            app.draw_text_bg(surface, "[R] restart  [Esc] quit", 20, 40,
                             font=app.font)

    def _draw_lines(self, surface: pygame.Surface):
        reg = self.sim.reg
        sel = self.sim.interaction.selected
        for lid, line in reg.all_of(Line):
            width = 6 if sel and sel.kind == EntityKind.LINE and sel.id == lid else 3
            color = line.color if line.status == LineStatus.ACTIVE \
                else tuple(c // 2 for c in line.color)
            for a, b in _segments(reg, line):
                pygame.draw.line(surface, color, a, b, width)

    def _draw_stations(self, surface: pygame.Surface, app: App):
        sel = self.sim.interaction.selected
        for sid, st in self.sim.reg.all_of(Station):
            center = (int(st.x), int(st.y))
            color = _STATUS_COLORS[st.status]
            pygame.draw.circle(surface, _PANEL_BG, center, _STATION_R)
            pygame.draw.circle(surface, color, center, _STATION_R, 3)
            # Occupancy arc
            if st.occupancy > 0:
                rect = pygame.Rect(0, 0, _STATION_R * 2 + 8, _STATION_R * 2 + 8)
                rect.center = center
                end = math.pi / 2
                start = end - 2 * math.pi * min(1.0, st.occupancy)
                pygame.draw.arc(surface, _TEXT, rect, start, end, 2)
            if sel and sel.kind == EntityKind.STATION and sel.id == sid:
                pygame.draw.circle(surface, _HEADER, center, _STATION_R + 8, 1)
            app.draw_text(surface, st.name or sid, center[0] + 16, center[1] - 6,
                          color=_DIM, font=app.font_sm)

    def _draw_trains(self, surface: pygame.Surface):
        sel = self.sim.interaction.selected
        for tid, train in self.sim.reg.all_of(Train):
            if train.fault:
                continue
            color = _TRAIN_COLORS[train.status]
            if train.stalled:
                color = _BAD
            h = math.radians(train.heading)
            fx, fy = math.cos(h) * 8, math.sin(h) * 8
            sx, sy = -fy * 0.5, fx * 0.5
            pts = [
                (train.x + fx + sx, train.y + fy + sy),
                (train.x + fx - sx, train.y + fy - sy),
                (train.x - fx - sx, train.y - fy - sy),
                (train.x - fx + sx, train.y - fy + sy),
            ]
            pygame.draw.polygon(surface, color, pts)
            if sel and sel.kind == EntityKind.TRAIN and sel.id == tid:
                pygame.draw.circle(surface, _HEADER, (int(train.x), int(train.y)), 12, 1)

    def _draw_panel(self, surface: pygame.Surface, app: App):
        sim = self.sim
        m = sim.metrics
        limits = sim.cfg.thresholds
        x0 = _MAP_W
        pygame.draw.rect(surface, _PANEL_BG, (x0, 0, surface.get_width() - x0,
                                              surface.get_height()))
        pygame.draw.line(surface, _BORDER, (x0, 0), (x0, surface.get_height()))
        x = x0 + 12
        y = 10

        app.draw_text(surface, "TRANSIT CONTROL", x, y, _HEADER, app.font_lg)
        y += 28
        remaining = max(0.0, limits.duration - m.game_time)
        app.draw_text(surface, f"Time {m.game_time:5.0f}s  left {remaining:4.0f}s"
                               f"  x{sim.cfg.time_scale:g}", x, y, _TEXT)
        y += 18
        app.draw_text(surface, f"State: {m.state.value}", x, y, _TEXT)
        y += 24

        delay_color = _BAD if m.delay_count >= limits.max_delays - 1 else \
            _WARN if m.delay_count else _TEXT
        app.draw_text(surface, f"Delays      {m.delay_count} / {limits.max_delays}",
                      x, y, delay_color)
        y += 18
        pax_color = _WARN if m.total_passengers >= limits.max_passengers * 0.8 else _TEXT
        app.draw_text(surface, f"Passengers  {m.total_passengers} / {limits.max_passengers}",
                      x, y, pax_color)
        y += 18
        app.draw_text(surface, f"  waiting {m.station_passengers}  aboard {m.train_passengers}",
                      x, y, _DIM, app.font_sm)
        y += 16
        app.draw_text(surface, f"  crowded {m.overcrowded_stations}  full {m.full_trains}"
                               f"  stalled {m.stalled_trains}", x, y, _DIM, app.font_sm)
        y += 24

        pygame.draw.line(surface, _BORDER, (x0, y), (surface.get_width(), y))
        y += 8
        app.draw_text(surface, "SELECTION", x, y, _HEADER)
        y += 18
        desc = sim.interaction.describe()
        if not desc:
            app.draw_text(surface, "click a station, train or line", x, y, _DIM, app.font_sm)
            y += 16
        for i, text in enumerate(desc):
            app.draw_text(surface, text, x, y, _TEXT if i else _WARN, app.font_sm)
            y += 15
        y += 10

        pygame.draw.line(surface, _BORDER, (x0, y), (surface.get_width(), y))
        y += 8
        app.draw_text(surface, "LOG", x, y, _HEADER)
        y += 18
        rows = max(0, (surface.get_height() - y - 24) // 14)
        for entry in sim.log.recent(rows):
            color = _CAT_COLORS.get(entry["cat"], _TEXT)
            app.draw_text(surface, f"{entry['t']:5.0f} {entry['target'][:10]:<10} "
                                   f"{entry['msg'][:22]}", x, y, color, app.font_sm)
            y += 14

        app.draw_text(surface, "E act  S stop  F incident  P pause  +/- speed",
                      x, surface.get_height() - 18, _DIM, app.font_sm)


# ── geometry helpers ─────────────────────────────────────────────────

def _segments(reg, line: Line) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    pts = []
    for sid in line.station_ids:
        st = reg.get(Station, sid)
        if st is not None:
            pts.append((st.x, st.y))
    if len(pts) < 2:
        return []
    return [(pts[i], pts[(i + 1) % len(pts)]) for i in range(len(pts))]


def _dist_to_segment(px: float, py: float, a: tuple[float, float],
                     b: tuple[float, float]) -> float:
    ax, ay = a
    bx, by = b
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / length_sq))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))

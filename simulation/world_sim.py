"""simulation/world_sim.py — Top-level transit simulation.

Provides the ``TransitSim`` class that owns the registry, wires every
subsystem together and exposes a single ``update(dt)`` for the game
loop plus the query / command surface used by the UI.

Usage in network_scene.py::

    # In on_enter():
    self.sim = TransitSim(SimConfig.from_tuning())
    self.sim.load_network("data/network.toml")
    self.sim.start()

    # In update():
    self.sim.update(dt)

Real frame time is accumulated (scaled by ``time_scale``) and consumed
in fixed ticks of ``tick_seconds``.  One tick runs, in order:

    1. advance game time
    2. fire due deferred actions (dwell departures, incident timers)
    3. passenger growth (+ upward station re-evaluation)
    4. incident check
    5. train motion and arrivals
    6. aggregate metrics
    7. game-over check

The event bus is drained at the end of every ``update`` whether or not
a tick ran, so commands issued while paused still notify.
"""

from __future__ import annotations
import random
from pathlib import Path
from typing import Callable

from core.data import NetworkLoader
from core.events import ConfigError, EventBus, IncidentResolved
from core.registry import Registry
from components.dev_log import DevLog
from components.network import Line, Station, StationStatus, Train
from components.resources import AppState, GameClock, NetworkMetrics
from simulation import incidents, router
from simulation.config import SimConfig
from simulation.incident_kinds import IncidentKind
from simulation.interaction import InteractionManager
from simulation.metrics import aggregate, check_game_over, set_state
from simulation.notify import emit, record
from simulation.passenger_flow import evacuate, flow_stats, growth_system, surge
from simulation.scheduler import ActionScheduler
from simulation.stations import repair_station


def new_registry() -> Registry:
    """A registry with every resource the simulation systems expect."""
    reg = Registry()
    reg.set_res(GameClock())
    reg.set_res(NetworkMetrics())
    reg.set_res(EventBus())
    reg.set_res(DevLog())
    reg.set_res(ActionScheduler())
    return reg


class TransitSim:
    """Orchestrates the network simulation for one session."""

    def __init__(self, cfg: SimConfig | None = None,
                 rng: random.Random | None = None) -> None:
        self.cfg = cfg or SimConfig()
        self.rng = rng or random.Random(self.cfg.seed)
        self.reg = new_registry()
        self.config_errors: list[ConfigError] = []
        self._register_handlers()
        self.interaction = InteractionManager(
            self.reg, repair=self.repair_station, resume=self.resume_train)

    # ── Resources ────────────────────────────────────────────────────

    @property
    def clock(self) -> GameClock:
        return self.reg.res(GameClock)

    @property
    def metrics(self) -> NetworkMetrics:
        return self.reg.res(NetworkMetrics)

    @property
    def bus(self) -> EventBus:
        return self.reg.res(EventBus)

    @property
    def log(self) -> DevLog:
        return self.reg.res(DevLog)

    @property
    def scheduler(self) -> ActionScheduler:
        return self.reg.res(ActionScheduler)

    @property
    def state(self) -> AppState:
        return self.metrics.state

    # ── Setup ────────────────────────────────────────────────────────

    def _register_handlers(self) -> None:
        self.scheduler.register_handler(router.DEPART, router.on_depart_action(self.cfg))
        incidents.register_handlers(self.scheduler, self.cfg)

    def apply_config(self, cfg: SimConfig) -> None:
        """Swap in new tuning (hot reload).  Running state is kept."""
        self.cfg = cfg
        self._register_handlers()
        print(f"[SIM] config applied (tick={cfg.tick_seconds}s, "
              f"check_interval={cfg.incidents.check_interval}s)")

    def load_network(self, path: str | Path) -> list[ConfigError]:
        loader = NetworkLoader(self.reg, train_capacity=self.cfg.flow.train_capacity)
        errors = loader.load(path)
        self.config_errors.extend(errors)
        return errors

    def load_data(self, data: dict) -> list[ConfigError]:
        loader = NetworkLoader(self.reg, train_capacity=self.cfg.flow.train_capacity)
        errors = loader.load_data(data)
        self.config_errors.extend(errors)
        return errors

    def subscribe(self, event_type: str, handler: Callable) -> None:
        self.bus.subscribe(event_type, handler)

    def start(self) -> bool:
        """INITIALIZING → RUNNING.  Docks every train and posts its start."""
        if self.state != AppState.INITIALIZING:
            return False
        started = 0
        for tid in self.reg.ids(Train):
            if router.init_train(self.reg, tid, self.cfg, self.rng):
                started += 1
        aggregate(self.reg)
        set_state(self.reg, AppState.RUNNING)
        print(f"[SIM] Started: {self.reg.count(Station)} stations, "
              f"{self.reg.count(Line)} lines, {started}/{self.reg.count(Train)} trains")
        return True

    # ── Per-frame update ─────────────────────────────────────────────

    def update(self, dt: float) -> int:
        """Feed real frame time in; run as many whole ticks as it covers.

        Returns the number of ticks run.
        """
        ticks = 0
        if self.state == AppState.RUNNING:
            clock = self.clock
            clock.accumulator += dt * self.cfg.time_scale
            while clock.accumulator >= self.cfg.tick_seconds \
                    and self.state == AppState.RUNNING:
                clock.accumulator -= self.cfg.tick_seconds
                self.step()
                ticks += 1
        self.bus.drain()
        return ticks

    def step(self) -> bool:
        """Run exactly one tick.  Does nothing unless RUNNING."""
        if self.state != AppState.RUNNING:
            return False
        dt = self.cfg.tick_seconds
        clock = self.clock
        clock.time += dt
        clock.ticks += 1

        self.scheduler.tick(self.reg, clock.time)
        growth_system(self.reg, self.cfg.flow, self.rng, dt)
        incidents.incident_system(self.reg, self.cfg, self.rng, dt)
        router.train_system(self.reg, self.cfg, dt)
        aggregate(self.reg)
        check_game_over(self.reg, self.cfg.thresholds)
        return True

    def run_for(self, seconds: float) -> int:
        """Step through *seconds* of simulated time (headless runs)."""
        ticks = 0
        while ticks * self.cfg.tick_seconds < seconds and self.step():
            ticks += 1
        self.bus.drain()
        return ticks

    # ── App state ────────────────────────────────────────────────────

    def pause(self) -> bool:
        if self.state != AppState.RUNNING:
            return False
        return set_state(self.reg, AppState.PAUSED)

    def resume(self) -> bool:
        if self.state != AppState.PAUSED:
            return False
        return set_state(self.reg, AppState.RUNNING)

    def toggle_pause(self) -> bool:
        if self.state == AppState.RUNNING:
            return self.pause()
        return self.resume()

    def set_time_scale(self, scale: float) -> float:
        self.cfg.time_scale = max(0.25, min(16.0, scale))
        return self.cfg.time_scale

    # ── Queries ──────────────────────────────────────────────────────

    def get_station(self, station_id: str) -> Station | None:
        return self.reg.get(Station, station_id)

    def get_line(self, line_id: str) -> Line | None:
        return self.reg.get(Line, line_id)

    def get_train(self, train_id: str) -> Train | None:
        return self.reg.get(Train, train_id)

    def stats(self):
        return flow_stats(self.reg)

    # ── Commands ─────────────────────────────────────────────────────

    def repair_station(self, station_id: str) -> bool:
        """Send a degraded station back to NORMAL.  NORMAL is a no-op."""
        st = self.get_station(station_id)
        if st is None:
            return False
        was = st.status
        if not repair_station(self.reg, station_id, cause="manual"):
            return False
        kind = (IncidentKind.STATION_BREAKDOWN.value
                if was == StationStatus.BROKEN else "delay")
        print(f"[STATION] {st.name or station_id} repaired by hand ({was.value})")
        emit(self.reg, IncidentResolved(kind=kind, target_id=station_id, manual=True))
        return True

    def resume_train(self, train_id: str) -> bool:
        if not router.resume_train(self.reg, train_id, self.cfg):
            return False
        emit(self.reg, IncidentResolved(kind=IncidentKind.TRAIN_MALFUNCTION.value,
                                        target_id=train_id, manual=True))
        return True

    def stop_train(self, train_id: str) -> bool:
        return router.stop_train(self.reg, train_id)

    def force_incident(self, kind: IncidentKind | str | None = None) -> IncidentKind | None:
        if isinstance(kind, str):
            parsed = IncidentKind.parse(kind)
            if parsed is None:
                print(f"[INCIDENT] unknown kind '{kind}'")
                return None
            kind = parsed
        record(self.reg, "incident", "manual", f"forced {kind.value if kind else 'random'}")
        return incidents.force_incident(self.reg, self.cfg, self.rng, kind)

    def surge(self, station_id: str, amount: int) -> int:
        return surge(self.reg, station_id, amount, self.cfg.flow)

    def evacuate(self, station_id: str) -> int:
        return evacuate(self.reg, station_id, self.cfg.flow)

    # ── Debug ────────────────────────────────────────────────────────

    def debug_info(self) -> dict:
        return {
            "time": round(self.clock.time, 1),
            "ticks": self.clock.ticks,
            "state": self.state.value,
            "time_scale": self.cfg.time_scale,
            "pending_actions": self.scheduler.pending_count(),
            "actions_fired": self.scheduler.actions_fired,
            "actions_stale": self.scheduler.actions_stale,
            "events": self.bus.stats(),
            "config_errors": len(self.config_errors),
            **self.metrics.snapshot(),
        }

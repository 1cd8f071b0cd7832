"""components.resources — Registry-level singletons (not per-record)."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class AppState(Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    PAUSED = "paused"
    GAME_OVER = "game_over"


@dataclass
class GameClock:
    """Simulated time in seconds.

    ``time`` only advances on whole ticks while the simulation is running.
    ``accumulator`` holds scaled frame time not yet consumed by a tick.
    """
    time: float = 0.0
    ticks: int = 0
    accumulator: float = 0.0
    incident_timer: float = 0.0


@dataclass
class NetworkMetrics:
    """Aggregates recomputed every tick, plus the maintained delay counter.

    ``delay_count`` is adjusted by every station transition and must equal
    the number of stations currently DELAYED or BROKEN.
    """
    state: AppState = AppState.INITIALIZING
    game_time: float = 0.0
    total_passengers: int = 0
    station_passengers: int = 0
    train_passengers: int = 0
    delay_count: int = 0
    overcrowded_stations: int = 0
    full_trains: int = 0
    stalled_trains: int = 0
    game_over_reason: str = ""

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "game_time": round(self.game_time, 2),
            "total_passengers": self.total_passengers,
            "station_passengers": self.station_passengers,
            "train_passengers": self.train_passengers,
            "delay_count": self.delay_count,
            "overcrowded_stations": self.overcrowded_stations,
            "full_trains": self.full_trains,
            "stalled_trains": self.stalled_trains,
        }

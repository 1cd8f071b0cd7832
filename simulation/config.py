"""simulation/config.py — Typed simulation settings.

Built from the ``data/tuning.toml`` tables loaded by ``core.tuning``.
Every field has a default matching the shipped network, so an empty
tuning file (or none at all) still yields a playable simulation::

    from core import tuning
    tuning.load()
    cfg = SimConfig.from_tuning()
"""

from __future__ import annotations
from dataclasses import dataclass, field

from core import tuning
from simulation.incident_kinds import IncidentKind


@dataclass
class FlowConfig:
    """Passenger growth and station dwell parameters."""
    base_rate: float = 4.0            # passengers / second / station
    variation: float = 2.0            # ± uniform noise on base_rate
    min_stop_time: float = 1.0        # seconds
    time_per_ten_passengers: float = 0.5
    max_stop_time: float = 10.0
    high_threshold: float = 0.9       # NORMAL → DELAYED at or above
    low_threshold: float = 0.7        # DELAYED → NORMAL below
    train_capacity: int = 200


@dataclass
class IncidentConfig:
    check_interval: float = 30.0
    probability: float = 0.4
    # Ordered: the first entry is the fallback on rounding edge cases
    weights: list[tuple[IncidentKind, float]] = field(default_factory=lambda: [
        (IncidentKind.STATION_BREAKDOWN, 0.4),
        (IncidentKind.LINE_DELAY, 0.3),
        (IncidentKind.OVERCROWDING, 0.2),
        (IncidentKind.TRAIN_MALFUNCTION, 0.1),
    ])
    station_breakdown: float = 60.0
    line_delay: float = 30.0
    train_malfunction: float = 18.0
    surge_min: int = 150
    surge_max: int = 300              # exclusive


@dataclass
class Thresholds:
    """Game-over limits."""
    max_delays: int = 5
    max_passengers: int = 2000
    duration: float = 600.0


@dataclass
class SimConfig:
    tick_seconds: float = 1.0
    time_scale: float = 1.0
    seed: int | None = None
    arrival_epsilon: float = 0.2
    start_delay_min: float = 0.5
    start_delay_max: float = 3.0
    stall_retry: float = 2.0
    flow: FlowConfig = field(default_factory=FlowConfig)
    incidents: IncidentConfig = field(default_factory=IncidentConfig)
    thresholds: Thresholds = field(default_factory=Thresholds)

    @classmethod
    def from_tuning(cls) -> SimConfig:
        """Build a config from whatever ``core.tuning`` currently holds."""
        sim = tuning.section("simulation")
        flow = tuning.section("passengers")
        inc = tuning.section("incidents")
        durations = tuning.section("incidents.durations")
        weights = tuning.section("incidents.weights")
        limits = tuning.section("game_over")

        cfg = cls()
        _fill(cfg, sim, ("tick_seconds", "time_scale", "seed", "arrival_epsilon",
                         "start_delay_min", "start_delay_max", "stall_retry"))
        _fill(cfg.flow, flow, ("base_rate", "variation", "min_stop_time",
                               "time_per_ten_passengers", "max_stop_time",
                               "high_threshold", "low_threshold", "train_capacity"))
        _fill(cfg.incidents, inc, ("check_interval", "probability",
                                   "surge_min", "surge_max"))
        _fill(cfg.incidents, durations, ("station_breakdown", "line_delay",
                                         "train_malfunction"))
        _fill(cfg.thresholds, limits, ("max_delays", "max_passengers", "duration"))

        if weights:
            table = []
            for name, w in weights.items():
                kind = IncidentKind.parse(name)
                if kind is None:
                    print(f"[TUNING] unknown incident kind '{name}' — ignored")
                    continue
                table.append((kind, float(w)))
            if table:
                cfg.incidents.weights = table
        return cfg


def _fill(target, values: dict, keys: tuple[str, ...]) -> None:
    for key in keys:
        if key not in values:
            continue
        current = getattr(target, key)
        value = values[key]
        if isinstance(current, float) and isinstance(value, int):
            value = float(value)
        setattr(target, key, value)

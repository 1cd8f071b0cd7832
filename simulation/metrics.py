"""simulation/metrics.py — Per-tick aggregation and the game-over monitor."""

from __future__ import annotations

from core.events import GameStateChanged, MetricsUpdated
from core.registry import Registry
from components.network import Station, Train
from components.resources import AppState, NetworkMetrics
from simulation.config import Thresholds
from simulation.notify import emit, now, record


def aggregate(reg: Registry) -> NetworkMetrics | None:
    """Recompute the totals on ``NetworkMetrics`` from the registry.

    The delay counter is maintained incrementally by station transitions;
    here it is checked against a fresh recount and corrected if the two
    disagree.
    """
    metrics = reg.res(NetworkMetrics)
    if metrics is None:
        return None

    waiting = 0
    degraded = 0
    overcrowded = 0
    for _, st in reg.all_of(Station):
        waiting += st.passenger_count
        if st.degraded:
            degraded += 1
        if st.passenger_count > st.max_passengers * 0.9:
            overcrowded += 1

    aboard = 0
    full = 0
    stalled = 0
    for _, train in reg.all_of(Train):
        aboard += train.passengers
        if train.passengers > train.capacity * 0.9:
            full += 1
        if train.stalled:
            stalled += 1

    if metrics.delay_count != degraded:
        print(f"[SIM] WARNING: delay counter {metrics.delay_count} != "
              f"{degraded} degraded stations — resynced")
        record(reg, "sim", "metrics", "delay counter resynced",
               details={"counter": metrics.delay_count, "recount": degraded})
        metrics.delay_count = degraded

    metrics.game_time = now(reg)
    metrics.station_passengers = waiting
    metrics.train_passengers = aboard
    metrics.total_passengers = waiting + aboard
    metrics.overcrowded_stations = overcrowded
    metrics.full_trains = full
    metrics.stalled_trains = stalled

    emit(reg, MetricsUpdated(game_time=metrics.game_time,
                             total_passengers=metrics.total_passengers,
                             delay_count=metrics.delay_count))
    return metrics


def set_state(reg: Registry, new: AppState, reason: str = "") -> bool:
    """Change the application state.  GAME_OVER is never left."""
    metrics = reg.res(NetworkMetrics)
    if metrics is None or metrics.state == new:
        return False
    if metrics.state == AppState.GAME_OVER:
        return False
    old = metrics.state
    metrics.state = new
    if new == AppState.GAME_OVER:
        metrics.game_over_reason = reason
    emit(reg, GameStateChanged(old=old.value, new=new.value, reason=reason))
    record(reg, "sim", "state", f"{old.value} → {new.value}",
           details={"reason": reason} if reason else None)
    return True


def game_over_reason(metrics: NetworkMetrics, limits: Thresholds) -> str:
    """Return why the game should end, or "" if it should not."""
    if metrics.delay_count >= limits.max_delays:
        return f"too many delays ({metrics.delay_count})"
    if metrics.total_passengers >= limits.max_passengers:
        return f"network overloaded ({metrics.total_passengers} passengers)"
    if metrics.game_time >= limits.duration:
        return "time is up"
    return ""


def check_game_over(reg: Registry, limits: Thresholds) -> bool:
    metrics = reg.res(NetworkMetrics)
    if metrics is None or metrics.state != AppState.RUNNING:
        return False
    reason = game_over_reason(metrics, limits)
    if not reason:
        return False
    set_state(reg, AppState.GAME_OVER, reason)
    print(f"[SIM] GAME OVER at {metrics.game_time:.0f}s: {reason}")
    print(f"[SIM]   passengers={metrics.total_passengers} "
          f"delays={metrics.delay_count} "
          f"overcrowded={metrics.overcrowded_stations} full_trains={metrics.full_trains}")
    return True

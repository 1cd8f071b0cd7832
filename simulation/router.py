"""simulation/router.py — Train motion and route traversal.

A train's route is its line's ``station_ids`` read fresh from the
registry each time, walked forward and looping back to index 0 at the
end.  Lifecycle of one hop:

    STOPPED (docked) ──depart──► MOVING ──arrive──► STOPPED (dwell) ──► ...

``depart`` picks the next index with the skip rule: broken stations are
passed over, at most one full loop is searched, and when every station
is broken the train holds where it is (``stalled``) and tries again
later.  MAINTENANCE freezes all of this until ``resume_train``.

Departures are deferred actions.  Each one carries the train's ``trip``
number at the time it was posted; any stop, resume or new arrival bumps
``trip`` so an older pending departure fires stale and does nothing.
"""

from __future__ import annotations
import math
import random

from core.events import ConfigError, TrainStalled
from core.registry import Registry
from components.network import Line, Station, StationStatus, Train, TrainStatus
from simulation.config import SimConfig
from simulation.notify import emit, now, record
from simulation.passenger_flow import process_arrival
from simulation.scheduler import ActionScheduler

DEPART = "TRAIN_DEPART"


# ── Skip rule ────────────────────────────────────────────────────────

def _usable(reg: Registry, station_id: str) -> bool:
    st = reg.get(Station, station_id)
    return st is not None and st.status != StationStatus.BROKEN


def find_next_index(reg: Registry, line: Line, from_index: int,
                    *, include_start: bool = False) -> tuple[int | None, int]:
    """Return ``(index, lookups)`` of the next usable station on *line*.

    The search starts after *from_index* (or at it, with
    ``include_start``) and covers exactly one loop, so on a route of N
    stations it makes at most N lookups.  ``index`` is None when every
    station on the route is broken.
    """
    n = len(line.station_ids)
    if n == 0:
        return None, 0
    offsets = range(0, n) if include_start else range(1, n + 1)
    lookups = 0
    for off in offsets:
        idx = (from_index + off) % n
        lookups += 1
        if _usable(reg, line.station_ids[idx]):
            return idx, lookups
    return None, lookups


# ── Setup ────────────────────────────────────────────────────────────

def init_train(reg: Registry, train_id: str, cfg: SimConfig,
               rng: random.Random) -> bool:
    """Dock a train at its line's first station and post its first departure.

    A train whose line is missing (or empty) is faulted and never moves;
    other trains are unaffected.
    """
    train = reg.get(Train, train_id)
    if train is None or train.fault:
        return False
    line = reg.get(Line, train.line_id)
    if line is None or not line.station_ids:
        train.fault = f"line '{train.line_id}' not found"
        train.status = TrainStatus.STOPPED
        print(f"[CONFIG] train {train_id}: {train.fault} — train disabled")
        emit(reg, ConfigError(entity="train", entity_id=train_id, message=train.fault))
        record(reg, "error", train_id, train.fault)
        return False

    first = reg.get(Station, line.station_ids[0])
    train.route_index = 0
    train.current_station_id = line.station_ids[0]
    train.next_station_id = line.station_ids[0]
    train.status = TrainStatus.STOPPED
    if first is not None:
        train.x, train.y = first.x, first.y

    delay = rng.uniform(cfg.start_delay_min, cfg.start_delay_max)
    _post_departure(reg, train, delay)
    record(reg, "train", train_id, f"starts in {delay:.1f}s on {line.id}")
    return True


def _post_departure(reg: Registry, train: Train, delay: float) -> None:
    train.trip += 1
    sched = reg.res(ActionScheduler)
    if sched is not None:
        sched.post_delta(now(reg), delay, train.id, DEPART, {"trip": train.trip})


# ── Departure / arrival ──────────────────────────────────────────────

def depart(reg: Registry, train_id: str, cfg: SimConfig) -> bool:
    """Leave the current position for the next usable station.

    Only a STOPPED, non-faulted train departs.  Returns True if the train
    is now MOVING.
    """
    train = reg.get(Train, train_id)
    if train is None or train.fault or train.status != TrainStatus.STOPPED:
        return False
    line = reg.get(Line, train.line_id)
    if line is None or not line.station_ids:
        return False

    if train.docked:
        idx, _ = find_next_index(reg, line, train.route_index)
    else:
        # Stopped between stations: re-check the pending target first
        idx, _ = find_next_index(reg, line, train.route_index, include_start=True)

    if idx is None:
        _stall(reg, train, cfg)
        return False

    train.stalled = False
    train.route_index = idx
    train.next_station_id = line.station_ids[idx]
    train.status = TrainStatus.MOVING
    target = reg.get(Station, train.next_station_id)
    if target is not None:
        train.heading = _heading(train.x, train.y, target.x, target.y, train.heading)
    record(reg, "train", train_id, f"→ {train.next_station_id}")
    return True


def _stall(reg: Registry, train: Train, cfg: SimConfig) -> None:
    if not train.stalled:
        train.stalled = True
        at = train.current_station_id
        print(f"[TRAIN] {train.id} stalled: every station on {train.line_id} is broken")
        emit(reg, TrainStalled(train_id=train.id, station_id=at))
        record(reg, "train", train.id, "stalled — all stations broken")
    _post_departure(reg, train, cfg.stall_retry)


def arrive(reg: Registry, train: Train, cfg: SimConfig) -> float:
    """Dock at ``next_station_id``, exchange passengers, post the departure."""
    train.status = TrainStatus.STOPPED
    train.current_station_id = train.next_station_id
    dwell = process_arrival(reg, train.id, train.current_station_id, cfg.flow)
    _post_departure(reg, train, dwell)
    return dwell


def on_depart_action(cfg: SimConfig):
    """Build the scheduler handler for deferred departures."""
    def handler(reg: Registry, train_id: str, data: dict, _now: float) -> bool:
        train = reg.get(Train, train_id)
        if train is None or data.get("trip") != train.trip:
            return False
        return depart(reg, train_id, cfg) or train.stalled
    return handler


# ── Maintenance ──────────────────────────────────────────────────────

def stop_train(reg: Registry, train_id: str) -> bool:
    """Put a train into MAINTENANCE where it stands."""
    train = reg.get(Train, train_id)
    if train is None or train.fault or train.status == TrainStatus.MAINTENANCE:
        return False
    train.status = TrainStatus.MAINTENANCE
    train.trip += 1
    train.incident_seq += 1
    record(reg, "train", train_id, "maintenance")
    return True


def resume_train(reg: Registry, train_id: str, cfg: SimConfig) -> bool:
    """MAINTENANCE → MOVING, re-selecting the target with the skip rule.

    A train that is not in maintenance is left alone (returns False).
    """
    train = reg.get(Train, train_id)
    if train is None or train.status != TrainStatus.MAINTENANCE:
        return False
    train.status = TrainStatus.STOPPED
    train.trip += 1
    depart(reg, train_id, cfg)
    record(reg, "train", train_id, "resumed")
    return True


# ── Motion ───────────────────────────────────────────────────────────

def _heading(x0: float, y0: float, x1: float, y1: float, fallback: float) -> float:
    if x0 == x1 and y0 == y1:
        return fallback
    return math.degrees(math.atan2(y1 - y0, x1 - x0))


def train_system(reg: Registry, cfg: SimConfig, dt: float) -> int:
    """Move every MOVING train toward its target; handle arrivals.

    Returns the number of arrivals this tick.
    """
    arrivals = 0
    for _, train in reg.all_of(Train):
        if train.fault or train.status != TrainStatus.MOVING:
            continue
        target = reg.get(Station, train.next_station_id)
        if target is None:
            continue

        dx = target.x - train.x
        dy = target.y - train.y
        dist = math.hypot(dx, dy)
        step = train.speed * dt
        if dist <= step:
            train.x, train.y = target.x, target.y
        else:
            train.x += dx / dist * step
            train.y += dy / dist * step
        train.heading = _heading(train.x, train.y, target.x, target.y, train.heading)

        if math.hypot(target.x - train.x, target.y - train.y) < cfg.arrival_epsilon:
            train.x, train.y = target.x, target.y
            arrive(reg, train, cfg)
            arrivals += 1
    return arrivals

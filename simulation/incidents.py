"""simulation/incidents.py — Random incident injection and auto-resolution.

Every ``check_interval`` seconds of simulated time the generator rolls
once against ``probability``.  On a hit it picks a kind from the
weighted table and applies it to a uniformly chosen eligible target:

    station_breakdown   NORMAL station  → BROKEN     repaired after 60 s
    line_delay          ACTIVE line     → DELAYED    restored after 30 s
    overcrowding        NORMAL station  + surge      (no timer)
    train_malfunction   MOVING train    → MAINTENANCE resumed after 18 s

An empty eligible set makes the whole check a no-op.  Timers are
deferred actions carrying the target's ``incident_seq`` at the time
they were posted.  A resolver does nothing if the state has already
moved on (repaired by hand, resumed, ...) or if a newer breakdown or
stop has bumped the sequence since.
"""

from __future__ import annotations
import random

from core.events import IncidentApplied, IncidentResolved
from core.registry import Registry
from components.network import Line, LineStatus, Station, StationStatus, Train, TrainStatus
from components.resources import GameClock
from simulation.config import IncidentConfig, SimConfig
from simulation.incident_kinds import RESERVED_KINDS, IncidentKind
from simulation.lines import delay_line, restore_line
from simulation.notify import emit, now, record
from simulation.passenger_flow import surge
from simulation.router import resume_train, stop_train
from simulation.scheduler import ActionScheduler
from simulation.stations import break_station, repair_station

REPAIR_STATION = "REPAIR_STATION"
RESTORE_LINE = "RESTORE_LINE"
RESUME_TRAIN = "RESUME_TRAIN"


# ── Selection ────────────────────────────────────────────────────────

def choose_kind(weights: list[tuple[IncidentKind, float]],
                rng: random.Random) -> IncidentKind | None:
    """Cumulative weighted draw; the first kind covers rounding leftovers."""
    if not weights:
        return None
    total = sum(w for _, w in weights)
    roll = rng.random() * total
    cumulative = 0.0
    for kind, w in weights:
        cumulative += w
        if roll <= cumulative:
            return kind
    return weights[0][0]


def incident_system(reg: Registry, cfg: SimConfig, rng: random.Random,
                    dt: float) -> IncidentKind | None:
    """Advance the check timer; roll for an incident when it elapses.

    Returns the kind applied this tick, if any.
    """
    clock = reg.res(GameClock)
    if clock is None:
        return None
    clock.incident_timer += dt
    if clock.incident_timer < cfg.incidents.check_interval:
        return None
    clock.incident_timer -= cfg.incidents.check_interval
    return roll_incident(reg, cfg, rng)


def roll_incident(reg: Registry, cfg: SimConfig,
                  rng: random.Random) -> IncidentKind | None:
    inc = cfg.incidents
    if rng.random() >= inc.probability:
        return None
    kind = choose_kind(inc.weights, rng)
    if kind is None:
        return None
    return kind if apply_incident(reg, kind, cfg, rng) else None


# ── Application ──────────────────────────────────────────────────────

def apply_incident(reg: Registry, kind: IncidentKind, cfg: SimConfig,
                   rng: random.Random) -> bool:
    """Apply *kind* to a random eligible target.  False if nothing was eligible."""
    if kind in RESERVED_KINDS:
        print(f"[INCIDENT] {kind.value} is not implemented — ignored")
        return False
    applier = _APPLIERS.get(kind)
    if applier is None:
        return False
    return applier(reg, cfg, rng)


def _post_resolve(reg: Registry, delay: float, target_id: str,
                  action_type: str, kind: IncidentKind, seq: int) -> None:
    sched = reg.res(ActionScheduler)
    if sched is not None:
        sched.post_delta(now(reg), delay, target_id, action_type,
                         {"kind": kind.value, "seq": seq})


def _applied(reg: Registry, kind: IncidentKind, target_id: str,
             duration: float, detail: str = "") -> None:
    print(f"[INCIDENT] {kind.value} on {target_id}"
          + (f" for {duration:.0f}s" if duration else "")
          + (f" ({detail})" if detail else ""))
    emit(reg, IncidentApplied(kind=kind.value, target_id=target_id,
                              duration=duration, detail=detail))
    record(reg, "incident", target_id, kind.value,
           details={"duration": duration, "detail": detail} if detail or duration else None)


def _station_breakdown(reg: Registry, cfg: SimConfig, rng: random.Random) -> bool:
    candidates = reg.query(Station, lambda s: s.status == StationStatus.NORMAL)
    if not candidates:
        return False
    st = rng.choice(candidates)
    break_station(reg, st.id)
    duration = cfg.incidents.station_breakdown
    _post_resolve(reg, duration, st.id, REPAIR_STATION, IncidentKind.STATION_BREAKDOWN,
                  st.incident_seq)
    _applied(reg, IncidentKind.STATION_BREAKDOWN, st.id, duration)
    return True


def _line_delay(reg: Registry, cfg: SimConfig, rng: random.Random) -> bool:
    candidates = reg.query(Line, lambda ln: ln.status == LineStatus.ACTIVE)
    if not candidates:
        return False
    line = rng.choice(candidates)
    taken = delay_line(reg, line.id)
    duration = cfg.incidents.line_delay
    _post_resolve(reg, duration, line.id, RESTORE_LINE, IncidentKind.LINE_DELAY,
                  line.incident_seq)
    _applied(reg, IncidentKind.LINE_DELAY, line.id, duration,
             f"{len(taken)} stations delayed")
    return True


def _overcrowding(reg: Registry, cfg: SimConfig, rng: random.Random) -> bool:
    candidates = reg.query(Station, lambda s: s.status == StationStatus.NORMAL)
    if not candidates:
        return False
    st = rng.choice(candidates)
    inc: IncidentConfig = cfg.incidents
    amount = rng.randrange(inc.surge_min, max(inc.surge_min + 1, inc.surge_max))
    added = surge(reg, st.id, amount, cfg.flow)
    _applied(reg, IncidentKind.OVERCROWDING, st.id, 0.0, f"+{added} passengers")
    return True


def _train_malfunction(reg: Registry, cfg: SimConfig, rng: random.Random) -> bool:
    candidates = reg.query(Train, lambda t: t.status == TrainStatus.MOVING and not t.fault)
    if not candidates:
        return False
    train = rng.choice(candidates)
    stop_train(reg, train.id)
    duration = cfg.incidents.train_malfunction
    _post_resolve(reg, duration, train.id, RESUME_TRAIN, IncidentKind.TRAIN_MALFUNCTION,
                  train.incident_seq)
    _applied(reg, IncidentKind.TRAIN_MALFUNCTION, train.id, duration)
    return True


_APPLIERS = {
    IncidentKind.STATION_BREAKDOWN: _station_breakdown,
    IncidentKind.LINE_DELAY: _line_delay,
    IncidentKind.OVERCROWDING: _overcrowding,
    IncidentKind.TRAIN_MALFUNCTION: _train_malfunction,
}


def force_incident(reg: Registry, cfg: SimConfig, rng: random.Random,
                   kind: IncidentKind | None = None) -> IncidentKind | None:
    """Apply an incident now, skipping the probability roll.

    With no *kind* one is drawn from the weight table.  Returns the kind
    that was applied, or None if nothing was eligible.
    """
    if kind is None:
        kind = choose_kind(cfg.incidents.weights, rng)
        if kind is None:
            return None
    if not apply_incident(reg, kind, cfg, rng):
        if kind not in RESERVED_KINDS:
            print(f"[INCIDENT] forced {kind.value}: no eligible target")
        return None
    return kind


# ── Auto-resolution handlers ─────────────────────────────────────────

def _resolved(reg: Registry, kind: str, target_id: str) -> None:
    print(f"[INCIDENT] {kind} on {target_id} resolved")
    emit(reg, IncidentResolved(kind=kind, target_id=target_id, manual=False))
    record(reg, "incident", target_id, f"{kind} resolved")


def on_repair_station(reg: Registry, station_id: str, data: dict, _now: float) -> bool:
    st = reg.get(Station, station_id)
    if st is None or st.status != StationStatus.BROKEN \
            or data.get("seq") != st.incident_seq:
        return False
    repair_station(reg, station_id, cause="incident_resolved")
    _resolved(reg, data.get("kind", IncidentKind.STATION_BREAKDOWN.value), station_id)
    return True


def on_restore_line(reg: Registry, line_id: str, data: dict, _now: float) -> bool:
    line = reg.get(Line, line_id)
    if line is None or line.status != LineStatus.DELAYED \
            or data.get("seq") != line.incident_seq:
        return False
    restore_line(reg, line_id)
    _resolved(reg, data.get("kind", IncidentKind.LINE_DELAY.value), line_id)
    return True


def on_resume_train(cfg: SimConfig):
    def handler(reg: Registry, train_id: str, data: dict, _now: float) -> bool:
        train = reg.get(Train, train_id)
        if train is None or data.get("seq") != train.incident_seq:
            return False
        if not resume_train(reg, train_id, cfg):
            return False
        _resolved(reg, data.get("kind", IncidentKind.TRAIN_MALFUNCTION.value), train_id)
        return True
    return handler


def register_handlers(sched: ActionScheduler, cfg: SimConfig) -> None:
    sched.register_handler(REPAIR_STATION, on_repair_station)
    sched.register_handler(RESTORE_LINE, on_restore_line)
    sched.register_handler(RESUME_TRAIN, on_resume_train(cfg))

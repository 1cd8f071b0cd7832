"""simulation/stations.py — Station state machine and the delay counter.

    NORMAL ──occupancy ≥ high / line delayed──► DELAYED
    DELAYED ──occupancy < low / timer──────────► NORMAL
    NORMAL|DELAYED ──incident──────────────────► BROKEN
    BROKEN ──repair (manual or timer)──────────► NORMAL

``set_station_status`` is the only place a station's status is written,
so the delay counter on ``NetworkMetrics`` always moves with it:
+1 when a NORMAL station degrades, −1 when a degraded one returns to
NORMAL, never below zero.
"""

from __future__ import annotations

from core.events import StationStatusChanged
from core.registry import Registry
from components.network import Line, Station, StationStatus
from components.resources import NetworkMetrics
from simulation.config import FlowConfig
from simulation.notify import emit, record


def set_station_status(reg: Registry, station_id: str,
                       new: StationStatus, cause: str = "") -> bool:
    """Move a station to *new*.  Returns False if unknown or unchanged."""
    st = reg.get(Station, station_id)
    if st is None or st.status == new:
        return False

    old = st.status
    st.status = new

    metrics = reg.res(NetworkMetrics)
    if metrics is not None:
        if old == StationStatus.NORMAL:
            metrics.delay_count += 1
        elif new == StationStatus.NORMAL:
            metrics.delay_count = max(0, metrics.delay_count - 1)
    delay_count = metrics.delay_count if metrics else 0

    if new == StationStatus.NORMAL:
        # No longer held by any line delay
        for line in reg.query(Line, lambda ln: station_id in ln.degraded_station_ids):
            line.degraded_station_ids.remove(station_id)

    emit(reg, StationStatusChanged(
        station_id=station_id, old=old.value, new=new.value,
        cause=cause, delay_count=delay_count,
    ))
    record(reg, "station", station_id, f"{old.value} → {new.value}",
           details={"cause": cause, "occupancy": round(st.occupancy, 2)})
    return True


def evaluate_occupancy(reg: Registry, station_id: str, flow: FlowConfig,
                       *, allow_recovery: bool = True) -> bool:
    """Apply the occupancy thresholds to one station.

    BROKEN stations are never touched.  With ``allow_recovery`` False
    only the upward NORMAL → DELAYED edge is checked.
    Returns True if the status changed.
    """
    st = reg.get(Station, station_id)
    if st is None or st.status == StationStatus.BROKEN:
        return False

    ratio = st.occupancy
    if st.status == StationStatus.NORMAL and ratio >= flow.high_threshold:
        print(f"[STATION] {st.name or st.id} overcrowded ({ratio * 100:.0f}%) — delayed")
        return set_station_status(reg, station_id, StationStatus.DELAYED, "occupancy")
    if allow_recovery and st.status == StationStatus.DELAYED \
            and ratio < flow.low_threshold:
        return set_station_status(reg, station_id, StationStatus.NORMAL, "occupancy")
    return False


def break_station(reg: Registry, station_id: str) -> bool:
    if not set_station_status(reg, station_id, StationStatus.BROKEN, "incident"):
        return False
    reg.get(Station, station_id).incident_seq += 1
    return True


def repair_station(reg: Registry, station_id: str, *, cause: str = "repair") -> bool:
    """Force a degraded station back to NORMAL.

    Repairing a NORMAL station is a no-op and leaves the counter alone.
    """
    st = reg.get(Station, station_id)
    if st is None or st.status == StationStatus.NORMAL:
        return False
    return set_station_status(reg, station_id, StationStatus.NORMAL, cause)


def count_degraded(reg: Registry) -> int:
    return len(reg.query(Station, lambda s: s.degraded))

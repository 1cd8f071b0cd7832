"""simulation/lines.py — Line state machine.

A delayed line drags every NORMAL station on it into DELAYED and
remembers which ones it took.  When the line recovers it releases only
those stations, and only if they are still DELAYED; stations that
degraded for their own reasons (overcrowding, breakdown) stay as they
are.  ``CLOSED`` is reserved and never entered.
"""

from __future__ import annotations

from core.events import LineStatusChanged
from core.registry import Registry
from components.network import Line, LineStatus, Station, StationStatus
from simulation.notify import emit, record
from simulation.stations import set_station_status


def _set_line_status(reg: Registry, line: Line, new: LineStatus) -> None:
    old = line.status
    line.status = new
    emit(reg, LineStatusChanged(line_id=line.id, old=old.value, new=new.value))
    record(reg, "line", line.id, f"{old.value} → {new.value}")


def delay_line(reg: Registry, line_id: str) -> list[str]:
    """ACTIVE → DELAYED, cascading to the line's NORMAL stations.

    Returns the ids of the stations this delay degraded.
    """
    line = reg.get(Line, line_id)
    if line is None or line.status != LineStatus.ACTIVE:
        return []

    _set_line_status(reg, line, LineStatus.DELAYED)
    line.incident_seq += 1
    taken = []
    for sid in line.station_ids:
        st = reg.get(Station, sid)
        if st is None or st.status != StationStatus.NORMAL:
            continue
        if set_station_status(reg, sid, StationStatus.DELAYED, "line"):
            taken.append(sid)
    line.degraded_station_ids = list(taken)
    return taken


def restore_line(reg: Registry, line_id: str) -> list[str]:
    """DELAYED → ACTIVE, releasing the stations the delay degraded.

    Returns the ids of the stations that went back to NORMAL.
    """
    line = reg.get(Line, line_id)
    if line is None or line.status != LineStatus.DELAYED:
        return []

    _set_line_status(reg, line, LineStatus.ACTIVE)
    released = []
    for sid in list(line.degraded_station_ids):
        st = reg.get(Station, sid)
        if st is not None and st.status == StationStatus.DELAYED:
            if set_station_status(reg, sid, StationStatus.NORMAL, "line"):
                released.append(sid)
    line.degraded_station_ids = []
    return released


def lines_serving(reg: Registry, station_id: str) -> list[Line]:
    return reg.query(Line, lambda ln: station_id in ln.station_ids)

"""simulation/interaction.py — Select / act / describe for network entities.

The presentation layer never inspects record types.  It holds a
``Selection`` (kind + id) and goes through ``InteractionManager``, which
dispatches on ``EntityKind``:

    station   action = repair if BROKEN
    train     action = resume if in MAINTENANCE
    line      no action, describe only
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable

from core.registry import Registry
from components.network import EntityKind, Line, Station, StationStatus, Train, TrainStatus
from simulation.lines import lines_serving
from simulation.notify import record


@dataclass(frozen=True)
class Selection:
    kind: EntityKind
    id: str


@dataclass
class _Handlers:
    record_type: type
    action: Callable[[str], bool]
    describe: Callable[[Registry, object], list[str]]


class InteractionManager:
    """Dispatch table over the three selectable entity kinds.

    ``repair`` and ``resume`` are the simulation's own command callables,
    so an action taken here goes through exactly the same path as one
    issued programmatically.
    """

    def __init__(self, reg: Registry, *, repair: Callable[[str], bool],
                 resume: Callable[[str], bool]):
        self.reg = reg
        self.selected: Selection | None = None
        self._table: dict[EntityKind, _Handlers] = {
            EntityKind.STATION: _Handlers(Station, self._station_action, _describe_station),
            EntityKind.LINE: _Handlers(Line, lambda _id: False, _describe_line),
            EntityKind.TRAIN: _Handlers(Train, self._train_action, _describe_train),
        }
        self._repair = repair
        self._resume = resume

    # ── Protocol ─────────────────────────────────────────────────────

    def on_select(self, kind: EntityKind, entity_id: str) -> bool:
        h = self._table[kind]
        if self.reg.get(h.record_type, entity_id) is None:
            return False
        if self.selected is not None:
            self.on_deselect()
        self.selected = Selection(kind, entity_id)
        record(self.reg, "ui", entity_id, f"selected {kind.value}")
        return True

    def on_deselect(self) -> None:
        self.selected = None

    def on_action(self) -> bool:
        """Run the selected entity's action.  False if none applied."""
        if self.selected is None:
            return False
        return self._table[self.selected.kind].action(self.selected.id)

    def describe(self, sel: Selection | None = None) -> list[str]:
        sel = sel or self.selected
        if sel is None:
            return []
        h = self._table[sel.kind]
        rec = self.reg.get(h.record_type, sel.id)
        if rec is None:
            return [f"{sel.kind.value} '{sel.id}' not found"]
        return h.describe(self.reg, rec)

    # ── Actions ──────────────────────────────────────────────────────

    def _station_action(self, station_id: str) -> bool:
        st = self.reg.get(Station, station_id)
        if st is None or st.status != StationStatus.BROKEN:
            return False
        return self._repair(station_id)

    def _train_action(self, train_id: str) -> bool:
        train = self.reg.get(Train, train_id)
        if train is None or train.status != TrainStatus.MAINTENANCE:
            return False
        return self._resume(train_id)


def _describe_station(reg: Registry, st: Station) -> list[str]:
    lines = [
        st.name or st.id,
        f"Status: {st.status.value}",
        f"Passengers: {st.passenger_count}/{st.max_passengers} "
        f"({st.occupancy * 100:.0f}%)",
        f"Connections: {', '.join(sorted(st.connected)) or '-'}",
        f"Lines: {', '.join(ln.id for ln in lines_serving(reg, st.id)) or '-'}",
    ]
    if st.status == StationStatus.BROKEN:
        lines.append("[E] repair")
    return lines


def _describe_line(_reg: Registry, line: Line) -> list[str]:
    return [
        line.name or line.id,
        f"Status: {line.status.value}",
        f"Stations: {len(line.station_ids)}",
        f"Trains: {line.train_count}  speed {line.speed:g}",
    ]


def _describe_train(_reg: Registry, train: Train) -> list[str]:
    lines = [
        train.id,
        f"Line: {train.line_id}",
        f"Status: {train.status.value}" + ("  (stalled)" if train.stalled else ""),
        f"Passengers: {train.passengers}/{train.capacity}",
        f"Next: {train.next_station_id or '-'}",
    ]
    if train.fault:
        lines.append(f"Fault: {train.fault}")
    elif train.status == TrainStatus.MAINTENANCE:
        lines.append("[E] resume")
    return lines

"""simulation/incident_kinds.py — Incident taxonomy."""

from __future__ import annotations
from enum import Enum


class IncidentKind(Enum):
    STATION_BREAKDOWN = "station_breakdown"
    TRAIN_MALFUNCTION = "train_malfunction"
    LINE_DELAY = "line_delay"
    OVERCROWDING = "overcrowding"
    # Reserved: declared for the dashboard / config, no generator applies them
    SIGNAL_FAILURE = "signal_failure"
    TRACK_MAINTENANCE = "track_maintenance"

    @classmethod
    def parse(cls, name: str) -> IncidentKind | None:
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


RESERVED_KINDS = (IncidentKind.SIGNAL_FAILURE, IncidentKind.TRACK_MAINTENANCE)

"""components — Record and resource dataclasses, organised by domain.

Submodules
----------
network        Station, Line, Train and their status enums
resources      AppState, GameClock, NetworkMetrics
dev_log        DevLog

All public names are re-exported here so code can simply do
``from components import Station``.
"""

# ── Network records ──────────────────────────────────────────────────
from components.network import (
    Station, Line, Train,
    StationStatus, LineStatus, TrainStatus, EntityKind, DEGRADED,
)

# ── World resources / singletons ─────────────────────────────────────
from components.resources import AppState, GameClock, NetworkMetrics

# ── Diagnostics ──────────────────────────────────────────────────────
from components.dev_log import DevLog

__all__ = [
    # network
    "Station", "Line", "Train",
    "StationStatus", "LineStatus", "TrainStatus", "EntityKind", "DEGRADED",
    # resources
    "AppState", "GameClock", "NetworkMetrics",
    # diagnostics
    "DevLog",
]

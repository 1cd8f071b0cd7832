"""components.network — Station, Line and Train records plus their status enums."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


class StationStatus(Enum):
    NORMAL = "normal"
    DELAYED = "delayed"
    BROKEN = "broken"


class LineStatus(Enum):
    ACTIVE = "active"
    DELAYED = "delayed"
    CLOSED = "closed"          # reserved, nothing drives it


class TrainStatus(Enum):
    MOVING = "moving"
    STOPPED = "stopped"
    MAINTENANCE = "maintenance"


class EntityKind(Enum):
    STATION = "station"
    LINE = "line"
    TRAIN = "train"


DEGRADED = (StationStatus.DELAYED, StationStatus.BROKEN)


@dataclass
class Station:
    """A network node with a waiting area of fixed capacity."""
    id: str
    name: str = ""
    x: float = 0.0
    y: float = 0.0
    status: StationStatus = StationStatus.NORMAL
    passenger_count: int = 0
    max_passengers: int = 500
    # Derived from line membership at load time (symmetric)
    connected: set[str] = field(default_factory=set)
    # Bumped on every breakdown; a repair timer for an older one goes stale
    incident_seq: int = 0

    @property
    def occupancy(self) -> float:
        if self.max_passengers <= 0:
            return 0.0
        return self.passenger_count / self.max_passengers

    @property
    def degraded(self) -> bool:
        return self.status in DEGRADED


@dataclass
class Line:
    """An ordered, loop-closed sequence of stations."""
    id: str
    name: str = ""
    station_ids: list[str] = field(default_factory=list)
    status: LineStatus = LineStatus.ACTIVE
    train_count: int = 2
    speed: float = 5.0
    color: tuple[int, int, int] = (255, 255, 255)
    # Stations this line's own delay pushed from NORMAL to DELAYED
    degraded_station_ids: list[str] = field(default_factory=list)
    incident_seq: int = 0


@dataclass
class Train:
    """A train bound to one line.

    ``route_index`` indexes the line's ``station_ids`` and points at
    ``next_station_id``.  When the train is docked, ``current_station_id``
    and ``next_station_id`` are the same station.
    """
    id: str
    line_id: str
    status: TrainStatus = TrainStatus.STOPPED
    current_station_id: str = ""
    next_station_id: str = ""
    capacity: int = 200
    passengers: int = 0
    speed: float = 5.0
    route_index: int = 0
    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0       # degrees, cosmetic
    fault: str = ""            # configuration error; a faulted train never moves
    stalled: bool = False
    trip: int = 0              # bumped whenever a pending departure must go stale
    incident_seq: int = 0      # bumped on every entry into MAINTENANCE

    @property
    def docked(self) -> bool:
        return bool(self.current_station_id) and \
            self.current_station_id == self.next_station_id

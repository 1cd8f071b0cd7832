"""core/events.py — Notification bus.

Decouples the simulation from whatever wants to *react* to it (the
network scene, tests, a dashboard).  The bus lives as a registry
resource::

    from core.events import EventBus, StationStatusChanged
    bus = reg.res(EventBus)
    bus.emit(StationStatusChanged(station_id="gare", old="normal", new="delayed"))

Consumers subscribe with a callable::

    bus.subscribe("StationStatusChanged", my_handler)

And the simulation drains once per update::

    bus.drain()          # calls all handlers for pending events

Design rules:
  - Events are plain dataclasses — no behaviour.
  - ``emit()`` is O(1) (just appends).
  - ``drain()`` processes all queued events in FIFO order.
  - Handlers may emit new events; those are processed in the same drain.
"""

from __future__ import annotations
import traceback
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable


# ═══════════════════════════════════════════════════════════════════
#  Event definitions
# ═══════════════════════════════════════════════════════════════════

@dataclass
class StationStatusChanged:
    """A station moved between NORMAL / DELAYED / BROKEN."""
    station_id: str
    old: str
    new: str
    cause: str = ""            # "occupancy", "line", "incident", "repair", ...
    delay_count: int = 0


@dataclass
class LineStatusChanged:
    line_id: str
    old: str
    new: str


@dataclass
class TrainArrived:
    """A train docked and exchanged passengers."""
    train_id: str
    station_id: str
    alighted: int = 0
    boarded: int = 0
    dwell: float = 0.0


@dataclass
class TrainStalled:
    """Every station on the train's route is broken; it holds position."""
    train_id: str
    station_id: str


@dataclass
class IncidentApplied:
    kind: str
    target_id: str
    duration: float = 0.0      # 0 for incidents without auto-resolve
    detail: str = ""


@dataclass
class IncidentResolved:
    kind: str
    target_id: str
    manual: bool = False


@dataclass
class MetricsUpdated:
    game_time: float
    total_passengers: int
    delay_count: int


@dataclass
class GameStateChanged:
    old: str
    new: str
    reason: str = ""


@dataclass
class ConfigError:
    """A configuration entry was rejected; only that entity is affected."""
    entity: str
    entity_id: str
    message: str


# ═══════════════════════════════════════════════════════════════════
#  Event Bus
# ═══════════════════════════════════════════════════════════════════

class EventBus:
    """Fire-and-forget event bus stored as a registry resource."""

    def __init__(self):
        self._queue: list[Any] = []
        self._subs: dict[str, list[Callable]] = defaultdict(list)
        self._stats: dict[str, int] = defaultdict(int)

    # ── Public API ───────────────────────────────────────────────────

    def emit(self, event) -> None:
        """Queue an event for processing on next ``drain()``."""
        self._queue.append(event)

    def subscribe(self, event_type: str, handler: Callable) -> None:
        """Register *handler* to receive events of *event_type*.

        *event_type* is the class name, e.g. ``"TrainArrived"``.
        """
        self._subs[event_type].append(handler)

    def drain(self) -> int:
        """Process all queued events.  Returns number processed.

        Handlers may emit new events — those are processed in the
        same drain pass (breadth-first).
        """
        processed = 0
        safety = 1000  # prevent infinite loops
        while self._queue and safety > 0:
            batch = self._queue[:]
            self._queue.clear()
            for event in batch:
                name = type(event).__name__
                self._stats[name] += 1
                for handler in self._subs.get(name, []):
                    try:
                        handler(event)
                    except Exception as exc:
                        print(f"[EVENT] handler error for {name}: {exc}")
                        traceback.print_exc()
            processed += len(batch)
            safety -= 1
        return processed

    def clear(self) -> None:
        """Discard all pending events."""
        self._queue.clear()

    def stats(self) -> dict[str, int]:
        """Return cumulative event counts by type."""
        return dict(self._stats)

    def pending_count(self) -> int:
        """Number of events waiting to be drained."""
        return len(self._queue)

    def __repr__(self) -> str:
        return f"EventBus(pending={len(self._queue)}, subs={len(self._subs)})"

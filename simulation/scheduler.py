"""simulation/scheduler.py — Deferred actions keyed by simulated time.

Anything that happens "N seconds later" (incident auto-resolve, train
dwell, delayed start, stall retry) is posted here instead of being
waited on.  The queue is drained once per tick by the simulation::

    scheduler = ActionScheduler()
    scheduler.register_handler("REPAIR_STATION", repair_handler)
    scheduler.post_delta(now, 60.0, "gare", "REPAIR_STATION")
    ...
    scheduler.tick(reg, current_time=now)

There is no cancellation.  A pending action that no longer applies
(station repaired by hand, train already resumed) is *stale*: its
handler re-checks the current state of its target and does nothing.
"""

from __future__ import annotations
import heapq
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(order=True)
class ScheduledAction:
    """A single pending action, ordered by ``time`` then insertion."""
    time: float
    # heapq tiebreaker (insertion order); action_type is never compared
    _seq: int = field(compare=True, repr=False)
    target_id: str = field(compare=False, default="")
    action_type: str = field(compare=False, default="")
    data: dict[str, Any] = field(compare=False, default_factory=dict)


class ActionScheduler:
    """Priority queue of deferred actions.

    Stored as a registry resource.
    Handler signature: ``handler(reg, target_id, data, now) -> bool``;
    the return value says whether the action still applied.
    """

    def __init__(self) -> None:
        self._queue: list[ScheduledAction] = []
        self._seq: int = 0
        self._handlers: dict[str, Callable] = {}
        # Stats
        self.actions_fired: int = 0
        self.actions_stale: int = 0

    # ── Posting ──────────────────────────────────────────────────────

    def post(self, time: float, target_id: str, action_type: str,
             data: dict[str, Any] | None = None) -> ScheduledAction:
        """Schedule an action at absolute simulated ``time`` (seconds)."""
        self._seq += 1
        act = ScheduledAction(
            time=time,
            _seq=self._seq,
            target_id=target_id,
            action_type=action_type,
            data=data or {},
        )
        heapq.heappush(self._queue, act)
        return act

    def post_delta(self, current_time: float, delta: float,
                   target_id: str, action_type: str,
                   data: dict[str, Any] | None = None) -> ScheduledAction:
        """Post an action ``delta`` seconds after ``current_time``."""
        return self.post(current_time + delta, target_id, action_type, data)

    # ── Handler registration ─────────────────────────────────────────

    def register_handler(self, action_type: str, handler: Callable) -> None:
        self._handlers[action_type] = handler

    # ── Tick ─────────────────────────────────────────────────────────

    def peek_time(self) -> float:
        """Return the time of the next action, or inf if empty."""
        if self._queue:
            return self._queue[0].time
        return float("inf")

    def tick(self, reg: Any, current_time: float) -> int:
        """Fire every action due at or before ``current_time``.

        Actions posted by a handler for a time already due fire in the
        same call.  Returns the number of actions that still applied.
        """
        count = 0
        while self._queue and self._queue[0].time <= current_time:
            act = heapq.heappop(self._queue)
            handler = self._handlers.get(act.action_type)
            if handler is None:
                print(f"[SCHED] no handler for {act.action_type} ({act.target_id})")
                continue
            if handler(reg, act.target_id, act.data, current_time):
                count += 1
            else:
                self.actions_stale += 1

        self.actions_fired += count
        return count

    # ── Queries ──────────────────────────────────────────────────────

    def pending_count(self) -> int:
        return len(self._queue)

    def target_pending(self, target_id: str) -> list[ScheduledAction]:
        """Return pending actions for one target, earliest first."""
        return sorted(a for a in self._queue if a.target_id == target_id)

    def has_pending(self, target_id: str, action_type: str | None = None) -> bool:
        for a in self._queue:
            if a.target_id != target_id:
                continue
            if action_type is None or a.action_type == action_type:
                return True
        return False

    # ── Debug ────────────────────────────────────────────────────────

    def debug_dump(self, limit: int = 20) -> list[str]:
        """Return a human-readable list of the next N actions."""
        actions = sorted(self._queue)[:limit]
        return [
            f"{a.time:.1f}  {a.target_id}  {a.action_type}  {a.data}"
            for a in actions
        ]

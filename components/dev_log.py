"""components.dev_log — Structured simulation event log.

A ring-buffer resource that records timestamped transitions: station
status changes, train arrivals, incidents applied and resolved,
configuration errors.  Read by the network scene to give a live feed of
what the network is doing and why.

Usage:
    log = reg.res(DevLog)
    log.record("station", "gare", "normal → delayed", t=clock.time,
               details={"occupancy": 0.92})

Each entry is a dict:
    {"t": float, "target": str, "cat": str, "msg": str,
     "details": dict | None}
"""

from __future__ import annotations
from dataclasses import dataclass, field


@dataclass
class DevLog:
    """Ring-buffer of simulation events."""

    entries: list[dict] = field(default_factory=list)
    max_entries: int = 500
    _paused: bool = False

    # ── Filters ──────────────────────────────────────────────────────
    # If non-empty, only entries whose ``cat`` is in the set are kept.
    cat_filter: set[str] = field(default_factory=set)
    # If non-empty, only entries whose ``target`` is in the set are kept.
    target_filter: set[str] = field(default_factory=set)

    def record(self, cat: str, target: str, msg: str, *,
               t: float = 0.0, details: dict | None = None) -> None:
        if self._paused:
            return
        if self.cat_filter and cat not in self.cat_filter:
            return
        if self.target_filter and target not in self.target_filter:
            return
        self.entries.append({
            "t": t,
            "target": target,
            "cat": cat,
            "msg": msg,
            "details": details,
        })
        if len(self.entries) > self.max_entries:
            self.entries = self.entries[-self.max_entries:]

    def clear(self):
        self.entries.clear()

    def pause(self):
        self._paused = True

    def resume(self):
        self._paused = False

    def recent(self, n: int = 50) -> list[dict]:
        """Return the *n* most recent entries (newest last)."""
        return self.entries[-n:]

    def for_target(self, target: str, n: int = 30) -> list[dict]:
        """Return last *n* entries about one station / line / train."""
        return [e for e in self.entries if e["target"] == target][-n:]

    def for_cat(self, cat: str, n: int = 50) -> list[dict]:
        """Return last *n* entries in a category."""
        return [e for e in self.entries if e["cat"] == cat][-n:]

"""
core/data.py — TOML → registry loader for the network layout

Reads ``data/network.toml`` and creates the Station, Line and Train
records.  The file has three arrays of tables:

    [[stations]]
    id = "gare"
    name = "Gare Centrale"
    position = [120, 200]
    capacity = 500

    [[lines]]
    id = "red"
    name = "Red Line"
    stations = ["gare", "port", "halles"]
    train_count = 2
    speed = 40.0
    color = [220, 60, 60]

    [[trains]]                # optional, on top of each line's train_count
    id = "express"
    line = "red"
    capacity = 300

Bad entries never stop the load.  Each one produces a ``ConfigError``
(returned, emitted on the bus, printed with ``[CONFIG]``) and only the
offending entity is dropped or faulted.

Usage:
    loader = NetworkLoader(reg)
    errors = loader.load("data/network.toml")
"""

from __future__ import annotations
import tomllib
from pathlib import Path

from core.events import ConfigError, EventBus
from core.registry import Registry
from components.dev_log import DevLog
from components.network import Line, Station, Train


class NetworkLoader:
    def __init__(self, reg: Registry, *, train_capacity: int = 200):
        self.reg = reg
        self.train_capacity = train_capacity
        self.errors: list[ConfigError] = []
        self._train_seq = 0

    def load(self, path: str | Path) -> list[ConfigError]:
        """Load a network file.  Returns the configuration errors found."""
        path = Path(path)
        with open(path, "rb") as f:
            data = tomllib.load(f)
        errors = self.load_data(data)
        print(f"[CONFIG] {path.name}: {self.reg.count(Station)} stations, "
              f"{self.reg.count(Line)} lines, {self.reg.count(Train)} trains"
              + (f", {len(errors)} errors" if errors else ""))
        return errors

    def load_data(self, data: dict) -> list[ConfigError]:
        """Load an already-parsed network table (same shape as the file)."""
        self.errors = []
        for entry in data.get("stations", []):
            self._load_station(entry)
        for entry in data.get("lines", []):
            self._load_line(entry)
        self._connect()
        for _, line in self.reg.all_of(Line):
            for _ in range(max(0, line.train_count)):
                self._add_train(self._next_train_id(), line.id,
                                self.train_capacity, line.speed)
        for entry in data.get("trains", []):
            self._load_train(entry)
        return list(self.errors)

    # ── Errors ───────────────────────────────────────────────────────

    def _error(self, entity: str, entity_id: str, message: str) -> None:
        err = ConfigError(entity=entity, entity_id=entity_id, message=message)
        self.errors.append(err)
        print(f"[CONFIG] {entity} '{entity_id}': {message}")
        bus = self.reg.res(EventBus)
        if bus is not None:
            bus.emit(err)
        log = self.reg.res(DevLog)
        if log is not None:
            log.record("error", entity_id, f"{entity}: {message}")

    # ── Stations ─────────────────────────────────────────────────────

    def _load_station(self, entry: dict) -> None:
        sid = str(entry.get("id", "")).strip()
        if not sid:
            self._error("station", "?", "missing id")
            return
        if self.reg.has(Station, sid):
            self._error("station", sid, "duplicate id")
            return
        capacity = entry.get("capacity", entry.get("max_passengers", 500))
        if not isinstance(capacity, int) or capacity <= 0:
            self._error("station", sid, f"capacity must be a positive integer, got {capacity!r}")
            return
        x, y = _pair(entry.get("position", (0.0, 0.0)))
        start = int(entry.get("passengers", 0))
        self.reg.add(Station(
            id=sid,
            name=entry.get("name", sid),
            x=x, y=y,
            passenger_count=max(0, min(start, capacity)),
            max_passengers=capacity,
        ))

    # ── Lines ────────────────────────────────────────────────────────

    def _load_line(self, entry: dict) -> None:
        lid = str(entry.get("id", "")).strip()
        if not lid:
            self._error("line", "?", "missing id")
            return
        if self.reg.has(Line, lid):
            self._error("line", lid, "duplicate id")
            return
        route = list(entry.get("stations", []))
        if not route:
            self._error("line", lid, "empty route")
            return
        unknown = [sid for sid in route if not self.reg.has(Station, sid)]
        if unknown:
            self._error("line", lid, f"unknown stations {unknown}")
            return
        if len(set(route)) != len(route):
            self._error("line", lid, "station listed twice in route")
            return
        speed = entry.get("speed", 5.0)
        if not isinstance(speed, (int, float)) or speed <= 0:
            self._error("line", lid, f"speed must be positive, got {speed!r}")
            return
        color = tuple(entry.get("color", (255, 255, 255)))[:3]
        self.reg.add(Line(
            id=lid,
            name=entry.get("name", lid),
            station_ids=route,
            train_count=int(entry.get("train_count", 2)),
            speed=float(speed),
            color=color,
        ))

    def _connect(self) -> None:
        """Link adjacent stations of every line, including last → first."""
        for _, line in self.reg.all_of(Line):
            route = line.station_ids
            if len(route) < 2:
                continue
            for i, sid in enumerate(route):
                other = route[(i + 1) % len(route)]
                a = self.reg.get(Station, sid)
                b = self.reg.get(Station, other)
                a.connected.add(other)
                b.connected.add(sid)

    # ── Trains ───────────────────────────────────────────────────────

    def _next_train_id(self) -> str:
        while True:
            self._train_seq += 1
            tid = f"train_{self._train_seq}"
            if not self.reg.has(Train, tid):
                return tid

    def _add_train(self, tid: str, line_id: str, capacity: int,
                   speed: float) -> Train:
        return self.reg.add(Train(id=tid, line_id=line_id,
                                  capacity=capacity, speed=speed))

    def _load_train(self, entry: dict) -> None:
        tid = str(entry.get("id", "")).strip() or self._next_train_id()
        if self.reg.has(Train, tid):
            self._error("train", tid, "duplicate id")
            return
        capacity = entry.get("capacity", self.train_capacity)
        if not isinstance(capacity, int) or capacity <= 0:
            self._error("train", tid, f"capacity must be a positive integer, got {capacity!r}")
            return
        line_id = str(entry.get("line", ""))
        line = self.reg.get(Line, line_id)
        speed = entry.get("speed", line.speed if line else 5.0)
        if not isinstance(speed, (int, float)) or speed <= 0:
            self._error("train", tid, f"speed must be positive, got {speed!r}")
            return
        train = self._add_train(tid, line_id, capacity, float(speed))
        if line is None:
            train.fault = f"line '{line_id}' not found"
            self._error("train", tid, train.fault)


def _pair(value) -> tuple[float, float]:
    try:
        x, y = value
        return float(x), float(y)
    except (TypeError, ValueError):
        return 0.0, 0.0

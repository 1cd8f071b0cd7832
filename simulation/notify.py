"""simulation/notify.py — Shared helpers for emitting notifications.

Every system reports through the same three resources on the
registry: the ``EventBus`` (subscribers), the ``DevLog`` (dashboard
feed) and the ``GameClock`` (timestamps).  A bare registry without
those resources is tolerated so systems can be unit-tested alone.
"""

from __future__ import annotations
from typing import Any

from core.events import EventBus
from core.registry import Registry
from components.dev_log import DevLog
from components.resources import GameClock


def now(reg: Registry) -> float:
    clock = reg.res(GameClock)
    return clock.time if clock else 0.0


def emit(reg: Registry, event: Any) -> None:
    bus = reg.res(EventBus)
    if bus is not None:
        bus.emit(event)


def record(reg: Registry, cat: str, target: str, msg: str,
           details: dict | None = None) -> None:
    log = reg.res(DevLog)
    if log is not None:
        log.record(cat, target, msg, t=now(reg), details=details)

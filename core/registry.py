"""
core/registry.py — Entity registry

Records are dataclasses keyed by their string ``id``, stored per type.
Nothing is ever destroyed; systems look records up by id every time
they need them and never hold on to them across ticks.

    reg = Registry()
    reg.add(Station(id="gare", name="Gare Centrale", max_passengers=500))
    st = reg.get(Station, "gare")

    for sid, st in reg.all_of(Station):
        st.passenger_count += 1

World-level singletons (metrics, scheduler, event bus, ...) are stored
as *resources*, one per type:

    reg.set_res(NetworkMetrics())
    metrics = reg.res(NetworkMetrics)
"""

from __future__ import annotations
from typing import Any, Callable, Iterator


class Registry:
    def __init__(self):
        self._stores: dict[type, dict[str, Any]] = {}
        self._resources: dict[type, Any] = {}

    # -- Records --

    def add(self, record: Any) -> Any:
        """Store *record* under its ``id``. Replaces an existing entry."""
        t = type(record)
        if t not in self._stores:
            self._stores[t] = {}
        self._stores[t][record.id] = record
        return record

    def get(self, rec_type: type, rid: str) -> Any | None:
        """Return the record or ``None`` when the id is unknown."""
        if rid is None:
            return None
        return self._stores.get(rec_type, {}).get(rid)

    def has(self, rec_type: type, rid: str) -> bool:
        return rid in self._stores.get(rec_type, {})

    def ids(self, rec_type: type) -> list[str]:
        return list(self._stores.get(rec_type, {}).keys())

    # -- Queries --

    def all_of(self, rec_type: type) -> Iterator[tuple[str, Any]]:
        """Yield (id, record) for every record of this type, in insertion order."""
        yield from list(self._stores.get(rec_type, {}).items())

    def query(self, rec_type: type,
              where: Callable[[Any], bool] | None = None) -> list[Any]:
        """Return records of *rec_type* matching the optional predicate."""
        records = self._stores.get(rec_type, {}).values()
        if where is None:
            return list(records)
        return [r for r in records if where(r)]

    def count(self, rec_type: type) -> int:
        return len(self._stores.get(rec_type, {}))

    # -- Resources (singletons, not tied to a record) --

    def set_res(self, resource: Any):
        self._resources[type(resource)] = resource

    def res(self, res_type: type) -> Any | None:
        return self._resources.get(res_type)

    # -- Debug --

    def debug_dump(self) -> dict[str, list[str]]:
        """Return {type name: [ids...]} for every store."""
        return {t.__name__: list(store.keys())
                for t, store in self._stores.items()}

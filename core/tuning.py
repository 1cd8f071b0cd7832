"""core/tuning.py — Data-driven tuning constants.

All simulation numbers live in ``data/tuning.toml`` and are loaded once
at startup.  ``simulation.config.SimConfig.from_tuning()`` turns the
loaded tables into typed values; anything else can read a raw value::

    from core.tuning import get
    interval = get("incidents", "check_interval", 30.0)

Hot-reload: call ``reload()`` to re-read the file.  In the network
scene, press F5 (takes effect on the next simulation built).
"""

from __future__ import annotations
import tomllib
from pathlib import Path


_data: dict = {}
_path: Path | None = None


def load(path: str | Path | None = None) -> dict:
    """Load (or reload) tuning constants from *path* and return them.

    If *path* is ``None``, default to ``data/tuning.toml`` relative to
    the project root (one level above ``core/``).
    """
    global _data, _path

    if path is None:
        root = Path(__file__).resolve().parent.parent
        path = root / "data" / "tuning.toml"
    else:
        path = Path(path)

    _path = path

    if not path.exists():
        print(f"[TUNING] {path} not found — using defaults")
        _data = {}
        return _data

    with open(path, "rb") as f:
        _data = tomllib.load(f)

    count = _count_leaves(_data)
    print(f"[TUNING] Loaded {count} values from {path}")
    return _data


def reload() -> dict:
    """Re-read the tuning file from disk (hot-reload)."""
    return load(_path)


def get(section: str, key: str, default=None):
    """Read a tuning value.

    *section* uses dot-notation to traverse nested tables, e.g.
    ``"incidents.durations"`` looks up ``[incidents.durations]``.

    >>> get("incidents.durations", "station_breakdown", 60.0)
    60.0
    """
    node = _data
    for part in section.split("."):
        if isinstance(node, dict):
            node = node.get(part)
        else:
            return default
        if node is None:
            return default
    if isinstance(node, dict):
        return node.get(key, default)
    return default


def section(section_path: str) -> dict:
    """Return an entire section dict (shallow copy), or empty dict."""
    node = _data
    for part in section_path.split("."):
        if isinstance(node, dict):
            node = node.get(part)
        else:
            return {}
        if node is None:
            return {}
    if isinstance(node, dict):
        return dict(node)
    return {}


def override(assignment: str) -> tuple[str, object]:
    """Apply a ``section.key=value`` override on top of the loaded file.

    The value is parsed as a TOML value, so ``seed=7``,
    ``passengers.base_rate=2.5`` and ``incidents.weights.overcrowding=0``
    all land with their natural types; anything TOML rejects is kept as
    a plain string.  Used by ``main.py --set``.
    """
    dotted, sep, raw = assignment.partition("=")
    dotted = dotted.strip()
    if not sep or not dotted:
        raise ValueError(f"expected section.key=value, got {assignment!r}")
    try:
        value = tomllib.loads(f"v = {raw.strip()}")["v"]
    except tomllib.TOMLDecodeError:
        value = raw.strip()

    *parents, key = dotted.split(".")
    node = _data
    for part in parents:
        node = node.setdefault(part, {})
        if not isinstance(node, dict):
            raise ValueError(f"{dotted}: '{part}' is not a table")
    node[key] = value
    print(f"[TUNING] override {dotted} = {value!r}")
    return dotted, value


def _count_leaves(d: dict, _n: int = 0) -> int:
    for v in d.values():
        if isinstance(v, dict):
            _n = _count_leaves(v, _n)
        else:
            _n += 1
    return _n

"""test_simulation.py — Headless verification of the full tick loop.

Tests:
1. Tick order: deferred actions fire before growth, aggregation sees the
   result of the whole tick
2. Fixed-step accumulator and time scale
3. Pause freezes the clock but not manual commands
4. Game over fires exactly at the delay limit and is terminal
5. Long run with heavy incidents keeps every invariant
6. Interaction dispatch over stations / trains / lines

Run: python test_simulation.py
"""
from __future__ import annotations
import sys, traceback
from pathlib import Path

from components.network import (
    EntityKind, Station, StationStatus, Train, TrainStatus,
)
from components.resources import AppState
from simulation.config import FlowConfig, IncidentConfig, SimConfig, Thresholds
from simulation.incident_kinds import IncidentKind
from simulation.lines import delay_line
from simulation.stations import break_station, set_station_status
from simulation.world_sim import TransitSim

ROOT = Path(__file__).resolve().parent


# ── Colorless pass/fail markers ──────────────────────────────────────

passed = 0
failed = 0

def ok(label: str):
    global passed
    passed += 1
    print(f"  [PASS] {label}")

def fail(label: str, detail: str = ""):
    global failed
    failed += 1
    print(f"  [FAIL] {label}")
    if detail:
        for line in detail.strip().splitlines():
            print(f"         {line}")


def _quiet_cfg(**thresholds) -> SimConfig:
    return SimConfig(
        seed=9,
        flow=FlowConfig(base_rate=0.0, variation=0.0),
        incidents=IncidentConfig(check_interval=1e9),
        thresholds=Thresholds(**thresholds),
    )


def _row_sim(cfg: SimConfig, n: int = 6, capacity: int = 100,
             trains: int = 0) -> TransitSim:
    """n stations in a row; line 'l' runs the first three (or fewer)."""
    sim = TransitSim(cfg)
    route = [f"s{i}" for i in range(1, min(n, 3) + 1)]
    errors = sim.load_data({
        "stations": [{"id": f"s{i}", "position": [i * 20, 0], "capacity": capacity}
                     for i in range(1, n + 1)],
        "lines": [{"id": "l", "stations": route,
                   "train_count": trains, "speed": 10.0}],
    })
    assert errors == [], errors
    return sim


# ════════════════════════════════════════════════════════════════════
#  Tick order and stepping
# ════════════════════════════════════════════════════════════════════

def test_deferred_actions_run_before_growth():
    print("\n=== Tick order ===")
    cfg = _quiet_cfg()
    cfg.flow = FlowConfig(base_rate=10.0, variation=0.0)
    sim = _row_sim(cfg, n=1, capacity=1000)
    sim.start()
    st = sim.get_station("s1")
    break_station(sim.reg, "s1")
    sim.scheduler.post(1.0, "s1", "REPAIR_STATION",
                       {"kind": "station_breakdown", "seq": st.incident_seq})

    sim.step()
    assert sim.clock.time == 1.0 and sim.clock.ticks == 1
    assert st.status == StationStatus.NORMAL
    assert st.passenger_count == 10, st.passenger_count
    ok("repaired by the t=1 action, then grew in the same tick")

    assert sim.metrics.total_passengers == 10
    assert sim.metrics.game_time == 1.0
    ok("aggregate reflects the tick")


def test_accumulator_and_time_scale():
    print("\n=== Fixed-step accumulator ===")
    sim = _row_sim(_quiet_cfg())
    sim.start()
    assert sim.update(0.4) == 0
    assert sim.update(0.7) == 1
    assert abs(sim.clock.accumulator - 0.1) < 1e-9
    ok("0.4 + 0.7 real seconds → 1 tick, 0.1 carried")

    sim.set_time_scale(2.0)
    assert sim.update(1.0) == 2
    assert sim.clock.time == 3.0
    ok("time_scale 2 → 2 ticks per real second")

    assert sim.set_time_scale(1000) == 16.0
    assert sim.set_time_scale(0.0) == 0.25
    ok("time scale clamped")


def test_nothing_ticks_before_start():
    print("\n=== INITIALIZING ===")
    sim = _row_sim(_quiet_cfg())
    assert sim.state == AppState.INITIALIZING
    assert sim.update(5.0) == 0 and not sim.step()
    assert sim.start() and not sim.start()
    assert sim.state == AppState.RUNNING
    ok("no ticks until start(); start() only once")


# ════════════════════════════════════════════════════════════════════
#  Pause
# ════════════════════════════════════════════════════════════════════

def test_pause_freezes_but_commands_work():
    print("\n=== Pause vs manual repair ===")
    cfg = _quiet_cfg()
    cfg.flow = FlowConfig(base_rate=3.0, variation=0.0)
    sim = _row_sim(cfg)
    sim.start()
    sim.run_for(2)
    resolved = []
    sim.subscribe("IncidentResolved", resolved.append)

    assert sim.pause() and sim.state == AppState.PAUSED
    assert not sim.pause()
    t0, count0 = sim.clock.time, sim.get_station("s2").passenger_count
    break_station(sim.reg, "s4")

    assert sim.update(5.0) == 0
    assert sim.clock.time == t0
    assert sim.get_station("s2").passenger_count == count0
    ok("paused: no time, no growth")

    assert sim.repair_station("s4")
    sim.update(0.016)
    assert sim.get_station("s4").status == StationStatus.NORMAL
    assert sim.metrics.delay_count == 0
    assert len(resolved) == 1 and resolved[0].manual
    ok("repair applied and notified while paused")

    assert sim.toggle_pause() and sim.state == AppState.RUNNING
    assert sim.update(1.0) == 1
    assert sim.toggle_pause() and sim.state == AppState.PAUSED
    assert sim.resume()
    ok("toggle / resume")


# ════════════════════════════════════════════════════════════════════
#  Game over
# ════════════════════════════════════════════════════════════════════

def test_game_over_exactly_at_delay_limit():
    print("\n=== Game over at 5 delays ===")
    sim = _row_sim(_quiet_cfg(max_delays=5))
    states = []
    sim.subscribe("GameStateChanged", states.append)
    sim.start()

    break_station(sim.reg, "s4")                 # incident path
    delay_line(sim.reg, "l")                     # line cascade: s1, s2, s3
    assert sim.metrics.delay_count == 4
    for _ in range(5):
        sim.step()
    assert sim.state == AppState.RUNNING
    ok("4 delays: still running")

    sim.surge("s5", 95)                          # occupancy path
    assert sim.metrics.delay_count == 5
    sim.step()
    sim.update(0.0)
    assert sim.state == AppState.GAME_OVER
    assert "delays" in sim.metrics.game_over_reason
    assert [s.new for s in states] == ["running", "game_over"]
    ok("5th delay → GAME_OVER on the next tick")


def test_game_over_is_terminal():
    print("\n=== GAME_OVER never leaves ===")
    sim = _row_sim(_quiet_cfg(duration=3.0))
    sim.start()
    sim.run_for(10)
    assert sim.state == AppState.GAME_OVER
    assert sim.clock.time == 3.0
    assert sim.metrics.game_over_reason == "time is up"
    ok("ended at t=3 on duration")

    assert not sim.resume() and not sim.pause() and not sim.toggle_pause()
    assert not sim.step() and sim.update(10.0) == 0
    assert not sim.start()
    assert sim.state == AppState.GAME_OVER and sim.clock.time == 3.0
    ok("resume / pause / step / start all refused")


def test_game_over_on_passengers():
    print("\n=== Game over on total passengers ===")
    sim = _row_sim(_quiet_cfg(max_passengers=150, max_delays=99), capacity=100)
    sim.start()
    sim.surge("s1", 80)
    sim.surge("s2", 80)
    sim.step()
    assert sim.state == AppState.GAME_OVER
    assert "overloaded" in sim.metrics.game_over_reason
    ok("160 ≥ 150 → GAME_OVER")


# ════════════════════════════════════════════════════════════════════
#  Invariants under load
# ════════════════════════════════════════════════════════════════════

def test_long_run_invariants():
    print("\n=== 600 s on the shipped network, incidents every 10 s ===")
    cfg = SimConfig(
        seed=42,
        incidents=IncidentConfig(check_interval=10.0, probability=1.0),
        thresholds=Thresholds(max_delays=100, max_passengers=10**6, duration=600.0),
    )
    sim = TransitSim(cfg)
    sim.load_network(ROOT / "data" / "network.toml")
    sim.start()
    applied = []
    sim.subscribe("IncidentApplied", applied.append)

    ticks = 0
    while sim.step():
        ticks += 1
        degraded = 0
        for _, st in sim.reg.all_of(Station):
            assert 0 <= st.passenger_count <= st.max_passengers, st
            if st.status != StationStatus.NORMAL:
                degraded += 1
        for _, train in sim.reg.all_of(Train):
            assert 0 <= train.passengers <= train.capacity, train
        assert sim.metrics.delay_count == degraded >= 0
    sim.update(0.0)

    assert ticks == 600, ticks
    assert sim.state == AppState.GAME_OVER
    assert not [e for e in sim.log.entries if e["msg"] == "delay counter resynced"]
    assert len(applied) > 20
    ok(f"{ticks} ticks, {len(applied)} incidents, bounds and counter held")


def test_counter_resync():
    print("\n=== Corrupted counter is resynced ===")
    sim = _row_sim(_quiet_cfg())
    sim.start()
    set_station_status(sim.reg, "s1", StationStatus.DELAYED)
    sim.metrics.delay_count = 7
    sim.step()
    assert sim.metrics.delay_count == 1
    assert any(e["msg"] == "delay counter resynced" for e in sim.log.for_cat("sim"))
    ok("7 → 1 with a warning")


# ════════════════════════════════════════════════════════════════════
#  Interaction / commands
# ════════════════════════════════════════════════════════════════════

def test_interaction_dispatch():
    print("\n=== Select / act / describe ===")
    sim = _row_sim(_quiet_cfg(), trains=1)
    sim.start()
    ui = sim.interaction

    assert not ui.on_select(EntityKind.STATION, "nope")
    assert ui.selected is None
    ok("unknown id cannot be selected")

    break_station(sim.reg, "s2")
    assert ui.on_select(EntityKind.STATION, "s2")
    assert "[E] repair" in ui.describe()
    assert "Lines: l" in ui.describe()
    assert ui.on_action()
    assert sim.get_station("s2").status == StationStatus.NORMAL
    assert not ui.on_action()
    ok("station: action repairs when BROKEN, then no-op")

    assert ui.on_select(EntityKind.STATION, "s5")
    assert "Lines: -" in ui.describe()
    ok("station off every route lists no lines")

    train = sim.get_train("train_1")
    sim.stop_train("train_1")
    assert ui.on_select(EntityKind.TRAIN, "train_1")
    assert ui.selected.kind == EntityKind.TRAIN
    assert "[E] resume" in ui.describe()
    assert ui.on_action()
    assert train.status in (TrainStatus.MOVING, TrainStatus.STOPPED)
    assert train.status != TrainStatus.MAINTENANCE
    ok("train: action resumes from maintenance")

    assert ui.on_select(EntityKind.LINE, "l")
    assert not ui.on_action()
    desc = ui.describe()
    assert desc[0] == "l" and "Stations: 3" in desc
    ok("line: describe only")

    ui.on_deselect()
    assert ui.selected is None and ui.describe() == [] and not ui.on_action()
    ok("deselect clears")


def test_force_incident_by_name():
    print("\n=== force_incident via the command surface ===")
    sim = _row_sim(_quiet_cfg())
    sim.start()
    assert sim.force_incident("station_breakdown") == IncidentKind.STATION_BREAKDOWN
    assert sim.metrics.delay_count == 1
    assert sim.force_incident("meteor") is None
    assert sim.force_incident(IncidentKind.TRACK_MAINTENANCE) is None
    assert sim.force_incident("line_delay") == IncidentKind.LINE_DELAY
    assert sim.get_line("l").status.value == "delayed"
    ok("named kinds apply, unknown and reserved are refused")

    info = sim.debug_info()
    for key in ("time", "state", "pending_actions", "delay_count", "total_passengers"):
        assert key in info, key
    ok("debug_info")


# ── Runner ───────────────────────────────────────────────────────────

if __name__ == "__main__":
    sections = [
        ("Tick order", test_deferred_actions_run_before_growth),
        ("Accumulator", test_accumulator_and_time_scale),
        ("Before start", test_nothing_ticks_before_start),
        ("Pause", test_pause_freezes_but_commands_work),
        ("Game over: delays", test_game_over_exactly_at_delay_limit),
        ("Game over: terminal", test_game_over_is_terminal),
        ("Game over: passengers", test_game_over_on_passengers),
        ("Long run", test_long_run_invariants),
        ("Counter resync", test_counter_resync),
        ("Interaction", test_interaction_dispatch),
        ("Force incident", test_force_incident_by_name),
    ]

    for name, fn in sections:
        try:
            fn()
        except Exception:
            fail(name, traceback.format_exc())

    total = passed + failed
    print(f"\n{'=' * 60}")
    print(f"  Simulation Tests: {passed} passed, {failed} failed  (total {total})")
    print(f"{'=' * 60}")
    sys.exit(1 if failed else 0)

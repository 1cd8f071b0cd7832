"""test_router.py — Train motion, route looping and the broken-station skip.

Routes used here are a 3-station loop laid out as a right triangle:

    a (0,0) ──── b (10,0)
                   │
                 c (10,10)

Growth and random incidents are switched off so every move is
deterministic.

Run:  python test_router.py
"""
from __future__ import annotations
import sys, random, traceback

from core.events import EventBus
from components.network import Line, Station, StationStatus, Train, TrainStatus
from simulation import router
from simulation.config import FlowConfig, IncidentConfig, SimConfig
from simulation.scheduler import ActionScheduler
from simulation.stations import set_station_status
from simulation.world_sim import TransitSim, new_registry


# ── Test harness ─────────────────────────────────────────────────────

passed = 0
failed = 0

def ok(label: str):
    global passed
    passed += 1
    print(f"  [PASS] {label}")

def fail(label: str, detail: str = ""):
    global failed
    failed += 1
    msg = f"  [FAIL] {label}"
    if detail:
        msg += f" — {detail}"
    print(msg)


def _quiet_cfg() -> SimConfig:
    return SimConfig(
        seed=5,
        flow=FlowConfig(base_rate=0.0, variation=0.0),
        incidents=IncidentConfig(check_interval=1e9),
    )


CFG = _quiet_cfg()
TRIANGLE = {"a": (0.0, 0.0), "b": (10.0, 0.0), "c": (10.0, 10.0)}


def _loop(reg, broken=()) -> Line:
    for sid, (x, y) in TRIANGLE.items():
        reg.add(Station(id=sid, x=x, y=y))
    line = reg.add(Line(id="l", station_ids=["a", "b", "c"], speed=5.0))
    for sid in broken:
        set_station_status(reg, sid, StationStatus.BROKEN)
    return line


def _docked(reg, at="a", index=0, speed=5.0, status=TrainStatus.STOPPED) -> Train:
    x, y = TRIANGLE[at]
    return reg.add(Train(id="t", line_id="l", status=status,
                         current_station_id=at, next_station_id=at,
                         route_index=index, x=x, y=y, speed=speed))


def _loop_sim(cfg: SimConfig | None = None) -> TransitSim:
    sim = TransitSim(cfg or _quiet_cfg())
    sim.load_data({
        "stations": [{"id": sid, "position": list(pos)} for sid, pos in TRIANGLE.items()],
        "lines": [{"id": "l", "stations": ["a", "b", "c"], "train_count": 1,
                   "speed": 5.0}],
    })
    return sim


# ════════════════════════════════════════════════════════════════════
#  Skip rule
# ════════════════════════════════════════════════════════════════════

def test_skip_search_is_bounded():
    print("\n=== Every station broken ===")
    reg = new_registry()
    line = _loop(reg, broken=("a", "b", "c"))

    idx, lookups = router.find_next_index(reg, line, 0)
    assert idx is None
    assert lookups == 3, lookups
    ok("3-station loop: gives up after 3 lookups")

    idx, lookups = router.find_next_index(reg, line, 1, include_start=True)
    assert idx is None and lookups == 3
    ok("same bound when re-validating a pending target")


def test_skip_finds_next_usable():
    print("\n=== Skipping broken stations ===")
    reg = new_registry()
    line = _loop(reg, broken=("b",))
    assert router.find_next_index(reg, line, 0) == (2, 2)
    ok("a → skips b → c")

    reg2 = new_registry()
    line2 = _loop(reg2, broken=("b", "c"))
    assert router.find_next_index(reg2, line2, 0) == (0, 3)
    ok("only the origin left: last lookup returns it")

    assert router.find_next_index(reg, line, 2) == (0, 1)
    ok("wraps from the last index to 0")


# ════════════════════════════════════════════════════════════════════
#  Motion / arrival / departure
# ════════════════════════════════════════════════════════════════════

def test_motion_and_arrival():
    print("\n=== Constant-speed motion, docking within epsilon ===")
    reg = new_registry()
    _loop(reg)
    train = reg.add(Train(id="t", line_id="l", status=TrainStatus.MOVING,
                          current_station_id="a", next_station_id="b",
                          route_index=1, speed=4.0))

    assert router.train_system(reg, CFG, 1.0) == 0
    assert train.x == 4.0 and train.y == 0.0 and train.heading == 0.0
    router.train_system(reg, CFG, 1.0)
    assert train.x == 8.0
    ok("4 units per tick toward b, heading 0°")

    assert router.train_system(reg, CFG, 1.0) == 1
    assert (train.x, train.y) == (10.0, 0.0)
    assert train.status == TrainStatus.STOPPED
    assert train.current_station_id == "b" and train.docked
    assert reg.res(ActionScheduler).has_pending("t", router.DEPART)
    ok("snapped to b, STOPPED, departure posted")


def test_departure_heading_and_skip():
    print("\n=== Departure picks the next usable station ===")
    reg = new_registry()
    _loop(reg)
    train = _docked(reg, at="b", index=1)
    assert router.depart(reg, "t", CFG)
    assert train.next_station_id == "c" and train.route_index == 2
    assert train.status == TrainStatus.MOVING
    assert abs(train.heading - 90.0) < 1e-9
    ok("b → c, heading 90°")

    reg = new_registry()
    _loop(reg, broken=("b",))
    train = _docked(reg, at="a", index=0)
    assert router.depart(reg, "t", CFG)
    assert train.next_station_id == "c" and train.route_index == 2
    ok("broken b skipped on departure")


def test_boarded_train_departs_full():
    print("\n=== Train leaves with what it boarded ===")
    reg = new_registry()
    reg.res(ActionScheduler).register_handler(router.DEPART, router.on_depart_action(CFG))
    _loop(reg)
    reg.get(Station, "a").passenger_count = 300
    train = reg.add(Train(id="t", line_id="l", status=TrainStatus.MOVING,
                          next_station_id="a", capacity=200))

    dwell = router.arrive(reg, train, CFG)
    assert dwell == 10.0 and train.passengers == 200
    assert reg.get(Station, "a").passenger_count == 100

    reg.res(ActionScheduler).tick(reg, 9.5)
    assert train.status == TrainStatus.STOPPED
    reg.res(ActionScheduler).tick(reg, 10.0)
    assert train.status == TrainStatus.MOVING and train.passengers == 200
    assert train.next_station_id == "b"
    ok("held for the dwell, then left with 200 aboard")


def test_train_loops_route():
    print("\n=== Looping a full route ===")
    sim = _loop_sim()
    arrivals = []
    sim.subscribe("TrainArrived", lambda e: arrivals.append(e.station_id))
    sim.start()
    sim.run_for(40)

    assert arrivals[:4] == ["b", "c", "a", "b"], arrivals
    ok(f"arrival order {' → '.join(arrivals[:4])}")


def test_delayed_start_window():
    print("\n=== Initial delayed start ===")
    sim = _loop_sim()
    sim.start()
    train = sim.get_train("train_1")
    assert train.current_station_id == "a" and train.docked
    assert train.status == TrainStatus.STOPPED
    first = sim.scheduler.target_pending("train_1")[0]
    assert first.action_type == router.DEPART
    assert 0.5 <= first.time <= 3.0, first.time
    ok(f"docked at a, departs at t={first.time:.2f}")


# ════════════════════════════════════════════════════════════════════
#  Stall / maintenance
# ════════════════════════════════════════════════════════════════════

def test_all_broken_stalls_then_recovers():
    print("\n=== Stalled train holds, then recovers ===")
    sim = _loop_sim()
    for sid in TRIANGLE:
        set_station_status(sim.reg, sid, StationStatus.BROKEN)
    stalls = []
    sim.subscribe("TrainStalled", stalls.append)
    sim.start()
    sim.run_for(8)

    train = sim.get_train("train_1")
    assert train.stalled and train.status == TrainStatus.STOPPED
    assert (train.x, train.y) == (0.0, 0.0)
    assert len(stalls) == 1, len(stalls)
    assert sim.scheduler.has_pending("train_1", router.DEPART)
    ok("held at a, one TrainStalled, retry pending")

    sim.repair_station("b")
    sim.run_for(4)
    assert not train.stalled
    assert train.next_station_id == "b"
    assert sim.metrics.stalled_trains == 0
    ok("repaired b → train heads there")


def test_maintenance_freezes_and_resume_retargets():
    print("\n=== Maintenance and resume ===")
    reg = new_registry()
    _loop(reg)
    train = reg.add(Train(id="t", line_id="l", status=TrainStatus.MOVING,
                          current_station_id="a", next_station_id="b",
                          route_index=1, x=5.0, y=0.0, speed=5.0))

    assert router.stop_train(reg, "t")
    assert not router.stop_train(reg, "t")
    router.train_system(reg, CFG, 1.0)
    assert train.x == 5.0 and train.status == TrainStatus.MAINTENANCE
    ok("no motion while in maintenance")

    set_station_status(reg, "b", StationStatus.BROKEN)
    assert router.resume_train(reg, "t", CFG)
    assert train.status == TrainStatus.MOVING
    assert train.next_station_id == "c" and train.route_index == 2
    ok("mid-segment resume re-validates b, retargets c")

    assert not router.resume_train(reg, "t", CFG)
    ok("resume outside maintenance is a no-op")

    reg = new_registry()
    _loop(reg)
    train = _docked(reg, at="a", index=0)
    router.stop_train(reg, "t")
    router.resume_train(reg, "t", CFG)
    assert train.next_station_id == "b" and train.status == TrainStatus.MOVING
    ok("docked resume advances to the next station")


def test_pending_departure_goes_stale():
    print("\n=== Departure posted before a stop is stale ===")
    reg = new_registry()
    sched = reg.res(ActionScheduler)
    sched.register_handler(router.DEPART, router.on_depart_action(CFG))
    _loop(reg)
    train = reg.add(Train(id="t", line_id="l", status=TrainStatus.MOVING,
                          current_station_id="a", next_station_id="b",
                          route_index=1, x=10.0, y=0.0))
    router.arrive(reg, train, CFG)
    router.stop_train(reg, "t")

    sched.tick(reg, 60.0)
    assert sched.actions_stale == 1
    assert train.status == TrainStatus.MAINTENANCE
    ok("departure fired stale, train still in maintenance")


def test_missing_line_faults_train():
    print("\n=== Train on a missing line ===")
    reg = new_registry()
    _loop(reg)
    errors = []
    reg.res(EventBus).subscribe("ConfigError", errors.append)
    reg.add(Train(id="lost", line_id="nowhere"))
    good = _docked(reg)

    assert not router.init_train(reg, "lost", CFG, random.Random(0))
    assert router.init_train(reg, "t", CFG, random.Random(0))
    reg.res(EventBus).drain()
    assert reg.get(Train, "lost").fault
    assert len(errors) == 1 and errors[0].entity_id == "lost"
    assert not router.depart(reg, "lost", CFG)
    assert good.fault == ""
    ok("only the lost train is faulted")


# ── Runner ───────────────────────────────────────────────────────────

if __name__ == "__main__":
    sections = [
        ("Bounded skip", test_skip_search_is_bounded),
        ("Skip next usable", test_skip_finds_next_usable),
        ("Motion", test_motion_and_arrival),
        ("Departure", test_departure_heading_and_skip),
        ("Depart full", test_boarded_train_departs_full),
        ("Looping", test_train_loops_route),
        ("Delayed start", test_delayed_start_window),
        ("Stall", test_all_broken_stalls_then_recovers),
        ("Maintenance", test_maintenance_freezes_and_resume_retargets),
        ("Stale departure", test_pending_departure_goes_stale),
        ("Missing line", test_missing_line_faults_train),
    ]

    for name, fn in sections:
        try:
            fn()
        except Exception:
            failed += 1
            print(f"\n  [CRASH] {name} — unhandled exception:")
            traceback.print_exc()

    total = passed + failed
    print(f"\n{'=' * 60}")
    print(f"  Router Tests: {passed} passed, {failed} failed  (total {total})")
    print(f"{'=' * 60}")
    sys.exit(1 if failed else 0)

"""simulation/passenger_flow.py — Boarding, alighting, growth and surges.

Arrival at a station is an all-out / fill-up exchange:

    alight   every passenger aboard leaves (train → 0)
    board    min(free seats, waiting) move from the platform to the train

The dwell time grows with the number of people moving and is capped::

    dwell = min(min_stop + (alighted + boarded) / 10 * per_ten, max_stop)

Between arrivals, every working station gains passengers each tick::

    added = round((base_rate + uniform(-variation, variation)) * dt)

clamped so the platform never goes over capacity.
"""

from __future__ import annotations
import random
from dataclasses import dataclass

from core.events import TrainArrived
from core.registry import Registry
from components.network import Station, StationStatus, Train
from simulation.config import FlowConfig
from simulation.notify import emit, record
from simulation.stations import evaluate_occupancy


@dataclass
class FlowStats:
    total_passengers: int = 0
    waiting: int = 0
    in_transit: int = 0
    overcrowded_stations: int = 0
    full_trains: int = 0

    def __str__(self) -> str:
        return (f"Total: {self.total_passengers} | Waiting: {self.waiting} | "
                f"In transit: {self.in_transit} | Overcrowded stations: "
                f"{self.overcrowded_stations} | Full trains: {self.full_trains}")


def stop_duration(total_moved: int, flow: FlowConfig) -> float:
    if total_moved <= 0:
        return flow.min_stop_time
    extra = (total_moved / 10.0) * flow.time_per_ten_passengers
    return max(flow.min_stop_time, min(flow.min_stop_time + extra, flow.max_stop_time))


def process_arrival(reg: Registry, train_id: str, station_id: str,
                    flow: FlowConfig) -> float:
    """Exchange passengers between a docked train and its station.

    Returns the dwell time in seconds.
    """
    train = reg.get(Train, train_id)
    station = reg.get(Station, station_id)
    if train is None or station is None:
        print(f"[FLOW] train {train_id} or station {station_id} not found")
        return flow.min_stop_time

    alighting = train.passengers
    train.passengers = 0

    free = train.capacity - train.passengers
    boarding = max(0, min(free, station.passenger_count))
    train.passengers += boarding
    station.passenger_count -= boarding

    dwell = stop_duration(alighting + boarding, flow)
    evaluate_occupancy(reg, station_id, flow)

    emit(reg, TrainArrived(train_id=train_id, station_id=station_id,
                           alighted=alighting, boarded=boarding, dwell=dwell))
    record(reg, "train", train_id,
           f"at {station.name or station_id}: {alighting}↓ {boarding}↑",
           details={"dwell": round(dwell, 2)})
    return dwell


def growth_system(reg: Registry, flow: FlowConfig, rng: random.Random,
                  dt: float) -> int:
    """Add waiting passengers to every non-broken station.

    Returns the total actually added after clamping.
    """
    total = 0
    for sid, st in reg.all_of(Station):
        if st.status == StationStatus.BROKEN:
            continue
        rate = flow.base_rate + rng.uniform(-flow.variation, flow.variation)
        added = max(0, round(rate * dt))
        room = st.max_passengers - st.passenger_count
        added = min(added, max(0, room))
        st.passenger_count += added
        total += added
        evaluate_occupancy(reg, sid, flow, allow_recovery=False)
    return total


def surge(reg: Registry, station_id: str, amount: int, flow: FlowConfig) -> int:
    """Dump *amount* passengers on a platform at once (clamped).

    Returns how many actually fit.
    """
    st = reg.get(Station, station_id)
    if st is None:
        print(f"[FLOW] station {station_id} not found")
        return 0
    before = st.passenger_count
    st.passenger_count = max(0, min(st.max_passengers, before + amount))
    added = st.passenger_count - before
    record(reg, "flow", station_id, f"surge {before} → {st.passenger_count} (+{amount})")
    evaluate_occupancy(reg, station_id, flow)
    return added


def evacuate(reg: Registry, station_id: str, flow: FlowConfig) -> int:
    """Empty a platform.  Returns the number of passengers removed."""
    st = reg.get(Station, station_id)
    if st is None:
        print(f"[FLOW] station {station_id} not found")
        return 0
    removed = st.passenger_count
    st.passenger_count = 0
    print(f"[FLOW] evacuated {st.name or station_id}: {removed} passengers")
    record(reg, "flow", station_id, f"evacuated {removed}")
    evaluate_occupancy(reg, station_id, flow)
    return removed


def station_occupancy(reg: Registry, station_id: str) -> float:
    st = reg.get(Station, station_id)
    if st is None or st.max_passengers <= 0:
        return 0.0
    return st.passenger_count / st.max_passengers


def train_occupancy(reg: Registry, train_id: str) -> float:
    train = reg.get(Train, train_id)
    if train is None or train.capacity <= 0:
        return 0.0
    return train.passengers / train.capacity


def flow_stats(reg: Registry) -> FlowStats:
    stats = FlowStats()
    for _, st in reg.all_of(Station):
        stats.waiting += st.passenger_count
        if st.passenger_count > st.max_passengers * 0.9:
            stats.overcrowded_stations += 1
    for _, train in reg.all_of(Train):
        stats.in_transit += train.passengers
        if train.passengers > train.capacity * 0.9:
            stats.full_trains += 1
    stats.total_passengers = stats.waiting + stats.in_transit
    return stats

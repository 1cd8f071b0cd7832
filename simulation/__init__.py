"""simulation — Tick-driven transit network simulation.

Stations fill up with passengers, trains loop their lines picking them
up, and random incidents (breakdowns, line delays, overcrowding,
malfunctions) knock the network out of shape until they resolve or the
player fixes them.  Nothing here imports pygame; the scene only reads
the registry and calls ``TransitSim`` commands.

Submodules
----------
config          SimConfig and friends, built from data/tuning.toml
scheduler       ActionScheduler — deferred actions keyed by sim time
notify          Bus / dev-log / clock helpers shared by every system
stations        Station state machine, owner of the delay counter
lines           Line state machine (delay cascade and release)
passenger_flow  Boarding, alighting, dwell, growth, surges
router          Train motion, route looping, broken-station skip
incident_kinds  IncidentKind taxonomy
incidents       Random incident injection and timed auto-resolution
metrics         Per-tick aggregation and the game-over monitor
interaction     Selection + select/act/describe dispatch
world_sim       TransitSim — wires it all together
"""

"""scenes — pygame views over a running TransitSim."""

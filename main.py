"""
main.py — Bootstrap

1. Parse the command line
2. Load data/tuning.toml (plus any --set overrides) → SimConfig
3. Build a TransitSim and load the network file into it
4. Either push the network scene and run the window,
   or (--headless) step the simulation and print a summary
"""

import argparse
import json
from pathlib import Path

from core import tuning
from core.app import App
from scenes.network_scene import NetworkScene
from simulation.config import SimConfig
from simulation.world_sim import TransitSim

ROOT = Path(__file__).resolve().parent


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the transit network simulation.")
    parser.add_argument("--network", type=str, default=str(ROOT / "data" / "network.toml"),
                        help="Network layout (stations, lines, trains)")
    parser.add_argument("--tuning", type=str, default=None,
                        help="Tuning file (default: data/tuning.toml)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for a reproducible run")
    parser.add_argument("--set", dest="overrides", action="append", default=[],
                        metavar="SECTION.KEY=VALUE",
                        help="Override one tuning value (repeatable)")
    parser.add_argument("--headless", type=float, default=None, metavar="SECONDS",
                        help="Run without a window for SECONDS of sim time")
    return parser.parse_args(argv)


def build_config(args) -> SimConfig:
    cfg = SimConfig.from_tuning()
    if args.seed is not None:
        cfg.seed = args.seed
    return cfg


def main(argv=None):
    args = parse_args(argv)
    tuning.load(args.tuning)
    for assignment in args.overrides:
        tuning.override(assignment)

    def make_sim() -> TransitSim:
        # New config each time so a restart never shares state with the last run
        sim = TransitSim(build_config(args))
        sim.load_network(args.network)
        return sim

    if args.headless is not None:
        sim = make_sim()
        sim.start()
        sim.run_for(args.headless)
        print(f"[MAIN] {sim.stats()}")
        print(json.dumps(sim.debug_info(), indent=2))
        return

    app = App(title="Transit", width=960, height=640)
    app.push_scene(NetworkScene(make_sim))
    app.run()


if __name__ == "__main__":
    main()

"""Run a scenario twice and certify that the second run replays the first.

Run as:

    $ python scripts/replay.py --config baseline.toml --n_steps 1000

The determinism tier and its tolerances are read from the ``[sim.determinism]`` section of the
config. Optionally, the reference log is written to a JSON file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import fire

from lsy_flight_sim.replay import ReplayChecker
from lsy_flight_sim.sim.sim import build_simulation
from lsy_flight_sim.utils import load_config

logger = logging.getLogger(__name__)


def replay(config: str = "baseline.toml", n_steps: int = 1000, log_file: str | None = None) -> bool:
    """Simulate a scenario twice with the same seed and compare both logs.

    Args:
        config: The path to the configuration file. Assumes the file is in `config/`.
        n_steps: The number of simulation steps per run.
        log_file: Optional path of a JSON file to store the reference log in.

    Returns:
        True if the replay check passed.
    """
    config = load_config(Path(__file__).parents[1] / "config" / config)
    reference = build_simulation(config).run(n_steps)
    candidate = build_simulation(config).run(n_steps)
    result = ReplayChecker().check(reference, candidate)

    final = reference.steps[-1].state if reference.steps else None
    logger.info(
        f"Scenario: {result.scenario_id}\nSeed: {result.seed}\nTier: {result.tier.value}\n"
        f"Passed: {result.passed}\nIssues: {list(result.issues)}\nResiduals: {result.residuals}\n"
        f"Final position: {final.pos if final else None}"
    )
    if log_file is not None:
        with open(log_file, "w") as f:
            json.dump(reference.to_dict(), f, default=str)
        logger.info(f"Reference log written to {log_file}")
    return result.passed


if __name__ == "__main__":
    logging.basicConfig()
    logging.getLogger("lsy_flight_sim").setLevel(logging.INFO)
    logger.setLevel(logging.INFO)
    fire.Fire(replay, serialize=lambda _: None)

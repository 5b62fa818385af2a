"""Simulation logs and replay certification."""

from lsy_flight_sim.replay.checker import ReplayChecker, ReplayCheckResult, ReplayResiduals
from lsy_flight_sim.replay.log import (
    DeterminismConfig,
    DeterminismTier,
    SimulationLog,
    StepRecord,
    Tier1Tolerance,
)

__all__ = [
    "DeterminismConfig",
    "DeterminismTier",
    "ReplayCheckResult",
    "ReplayChecker",
    "ReplayResiduals",
    "SimulationLog",
    "StepRecord",
    "Tier1Tolerance",
]

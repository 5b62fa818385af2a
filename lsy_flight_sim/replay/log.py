"""Structured simulation logs and their determinism tags.

A :class:`SimulationLog` records one :class:`StepRecord` per simulated tick, keyed by scenario id
and seed. The attached :class:`DeterminismConfig` declares how strictly two logs of the same
scenario must agree to count as a faithful replay.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

from lsy_flight_sim.errors import check_non_negative

if TYPE_CHECKING:
    from ml_collections import ConfigDict

    from lsy_flight_sim.signals import ActuatorValue, ChannelSample, TelemetryChannel
    from lsy_flight_sim.sim.state import DisturbanceState, StateSnapshot, TimeStep, WorldTime


class DeterminismTier(IntEnum):
    """Strictness of a replay comparison."""

    TIER0 = 0  # Bit-exact equality of both logs.
    TIER1 = 1  # Residuals bounded by per-quantity tolerances.
    TIER2 = 2  # Declared but unsupported.


@dataclass(frozen=True)
class Tier1Tolerance:
    """Max allowed residual per logged quantity of a tier-1 replay."""

    position: float
    velocity: float
    angular_velocity: float
    quaternion_residual: float
    motor_thrust: float
    sensor: float

    def __post_init__(self):
        for name, value in asdict(self).items():
            check_non_negative(value, name)

    @staticmethod
    def baseline() -> Tier1Tolerance:
        """Tolerances for replays on the same platform with identical seeds."""
        return Tier1Tolerance(
            position=1e-6,
            velocity=1e-6,
            angular_velocity=1e-6,
            quaternion_residual=1e-9,
            motor_thrust=1e-6,
            sensor=1e-6,
        )


@dataclass(frozen=True)
class DeterminismConfig:
    """Determinism tier of a log and, for tier 1, its tolerances."""

    tier: DeterminismTier
    tier1_tolerance: Tier1Tolerance | None = None

    def __post_init__(self):
        object.__setattr__(self, "tier", DeterminismTier(self.tier))

    @staticmethod
    def tier1_baseline() -> DeterminismConfig:
        return DeterminismConfig(DeterminismTier.TIER1, Tier1Tolerance.baseline())

    @staticmethod
    def from_config(config: ConfigDict | None) -> DeterminismConfig:
        """Create the config from the ``[sim.determinism]`` section.

        Defaults to the tier-1 baseline. Tolerances that are not listed in the config keep their
        baseline value.
        """
        if config is None:
            return DeterminismConfig.tier1_baseline()
        tier = DeterminismTier(config.get("tier", DeterminismTier.TIER1))
        if tier != DeterminismTier.TIER1:
            return DeterminismConfig(tier)
        tolerance = asdict(Tier1Tolerance.baseline())
        tolerance.update(dict(config.get("tolerance", {})))
        return DeterminismConfig(tier, Tier1Tolerance(**tolerance))


@dataclass(frozen=True)
class StepRecord:
    """Everything observable about one simulated tick.

    Attributes:
        time: The time of the tick.
        events: Names of the scheduled events active during the tick, in schedule order.
        state: Rigid-body state after integration.
        disturbances: Disturbance loads applied during the tick.
        actuator_values: Commands sent to the actuator engine.
        actuator_telemetry: Measured actuator outputs after the actuator update.
        sensor_samples: Samples delivered to the controller at the start of the tick.
    """

    time: WorldTime
    events: tuple[str, ...]
    state: StateSnapshot
    disturbances: DisturbanceState
    actuator_values: tuple[ActuatorValue, ...]
    actuator_telemetry: tuple[TelemetryChannel, ...]
    sensor_samples: tuple[ChannelSample, ...]


@dataclass(frozen=True)
class SimulationLog:
    """Log of one simulation run."""

    scenario_id: str
    seed: int
    time_step: TimeStep
    config_hash: str
    determinism: DeterminismConfig
    steps: tuple[StepRecord, ...] = ()

    def to_dict(self) -> dict:
        """Plain nested representation of the log, e.g. for JSON export."""
        return asdict(self)

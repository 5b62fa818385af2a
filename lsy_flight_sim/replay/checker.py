"""Replay certification of two simulation logs.

The checker compares a candidate log against a reference log of the same scenario at the
determinism tier both logs declare. Tier 0 demands exact equality. Tier 1 bounds the maximum
residual of each logged quantity by its tolerance and requires exact agreement of the simulated
time, the event order and the disturbances. Tier 2 is not supported and always fails.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.errors import LogShapeMismatchError, TierMismatchError, ToleranceMissingError
from lsy_flight_sim.replay.log import DeterminismTier

if TYPE_CHECKING:
    from lsy_flight_sim.replay.log import SimulationLog, StepRecord
    from lsy_flight_sim.signals import ActuatorValue, ChannelSample, TelemetryChannel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplayResiduals:
    """Max residual per quantity over all steps of a tier-1 comparison."""

    position: float = 0.0
    velocity: float = 0.0
    angular_velocity: float = 0.0
    quaternion_residual: float = 0.0
    motor_thrust: float = 0.0
    sensor: float = 0.0

    @staticmethod
    def zero() -> ReplayResiduals:
        return ReplayResiduals()


@dataclass(frozen=True)
class ReplayCheckResult:
    """Outcome of a replay check.

    Attributes:
        scenario_id: Scenario id of the candidate log.
        seed: Seed of the candidate log.
        tier: The determinism tier of the comparison.
        passed: True if the candidate is a faithful replay of the reference.
        issues: Issue codes in the order they were found. Empty if the check passed.
        residuals: Max residuals. Zero for tiers 0 and 2.
    """

    scenario_id: str
    seed: int
    tier: DeterminismTier
    passed: bool
    issues: tuple[str, ...]
    residuals: ReplayResiduals


def telemetry_residual(ref: tuple[TelemetryChannel, ...], cand: tuple[TelemetryChannel, ...]):
    """Max absolute difference per channel id. Infinite if the channel ids differ."""
    ref_map = {c.id: c.value for c in ref}
    cand_map = {c.id: c.value for c in cand}
    if ref_map.keys() != cand_map.keys():
        return math.inf
    return max((abs(v - cand_map[k]) for k, v in ref_map.items()), default=0.0)


def sensor_residual(ref: tuple[ChannelSample, ...], cand: tuple[ChannelSample, ...]) -> float:
    """Max absolute sample difference. Infinite if channels, timestamps or counts differ."""
    if len(ref) != len(cand):
        return math.inf
    residual = 0.0
    for a, b in zip(ref, cand):
        if a.index != b.index or a.timestamp != b.timestamp:
            return math.inf
        residual = max(residual, abs(a.value - b.value))
    return residual


def command_residual(ref: tuple[ActuatorValue, ...], cand: tuple[ActuatorValue, ...]) -> float:
    """Max absolute command difference. Infinite if indices or counts differ."""
    if len(ref) != len(cand):
        return math.inf
    residual = 0.0
    for a, b in zip(ref, cand):
        if a.index != b.index:
            return math.inf
        residual = max(residual, abs(a.value - b.value))
    return residual


def quaternion_residual(q_ref, q_cand) -> float:
    """``1 - |q_ref . q_cand|``. Zero for identical rotations regardless of the quaternion sign."""
    return 1.0 - min(1.0, abs(float(np.dot(q_ref, q_cand))))


class ReplayChecker:
    """Certifies that a candidate log replays a reference log."""

    def check(self, reference: SimulationLog, candidate: SimulationLog) -> ReplayCheckResult:
        """Compare two logs at their declared determinism tier.

        Args:
            reference: The reference log.
            candidate: The log to certify.

        Returns:
            The check result.

        Raises:
            TierMismatchError: The logs declare different tiers.
            ToleranceMissingError: A tier-1 reference log has no tolerances.
            LogShapeMismatchError: The logs of a tier-1 check have different numbers of steps.
        """
        if reference.determinism.tier != candidate.determinism.tier:
            raise TierMismatchError(
                f"Reference tier {reference.determinism.tier.value} does not match candidate tier "
                f"{candidate.determinism.tier.value}"
            )
        match reference.determinism.tier:
            case DeterminismTier.TIER0:
                issues = [] if reference == candidate else ["log-mismatch"]
                result = self._result(candidate, DeterminismTier.TIER0, issues)
            case DeterminismTier.TIER1:
                result = self._check_tier1(reference, candidate)
            case _:
                result = self._result(candidate, DeterminismTier.TIER2, ["tier2-not-supported"])
        if not result.passed:
            logger.warning(
                f"Replay of scenario '{candidate.scenario_id}' (seed {candidate.seed}) failed: "
                f"{', '.join(result.issues)}"
            )
        return result

    def _check_tier1(self, reference: SimulationLog, candidate: SimulationLog) -> ReplayCheckResult:
        tolerance = reference.determinism.tier1_tolerance
        if tolerance is None:
            raise ToleranceMissingError("Tier 1 replay requires tolerances")
        issues = []
        if reference.scenario_id != candidate.scenario_id:
            issues.append("scenario-id-mismatch")
        if reference.seed != candidate.seed:
            issues.append("seed-mismatch")
        if reference.time_step != candidate.time_step:
            issues.append("time-step-mismatch")
        if reference.config_hash != candidate.config_hash:
            issues.append("config-hash-mismatch")
        if len(reference.steps) != len(candidate.steps):
            raise LogShapeMismatchError(
                f"Reference has {len(reference.steps)} steps, candidate {len(candidate.steps)}"
            )

        max_residuals = {f.name: 0.0 for f in fields(ReplayResiduals)}
        for ref, cand in zip(reference.steps, candidate.steps):
            issues += self._exact_step_issues(ref, cand)
            for key, value in self._step_residuals(ref, cand).items():
                max_residuals[key] = max(max_residuals[key], value)
            if len(ref.actuator_values) != len(cand.actuator_values):
                issues.append("actuator-command-count-mismatch")
            elif ref.actuator_values:
                residual = command_residual(ref.actuator_values, cand.actuator_values)
                if residual > tolerance.motor_thrust:
                    issues.append("actuator-command-residual")

        residuals = ReplayResiduals(**max_residuals)
        checks = (
            ("position", "position-residual"),
            ("velocity", "velocity-residual"),
            ("angular_velocity", "angular-velocity-residual"),
            ("quaternion_residual", "quaternion-residual"),
            ("motor_thrust", "motor-thrust-residual"),
            ("sensor", "sensor-residual"),
        )
        for key, issue in checks:
            if getattr(residuals, key) > getattr(tolerance, key):
                issues.append(issue)
        return self._result(candidate, DeterminismTier.TIER1, issues, residuals)

    @staticmethod
    def _exact_step_issues(ref: StepRecord, cand: StepRecord) -> list[str]:
        issues = []
        if ref.time != cand.time:
            issues.append("time-mismatch")
        if ref.events != cand.events:
            issues.append("event-order-mismatch")
        if ref.disturbances.torque_body != cand.disturbances.torque_body:
            issues.append("disturbance-torque-mismatch")
        if ref.disturbances.force_world != cand.disturbances.force_world:
            issues.append("disturbance-force-mismatch")
        return issues

    @staticmethod
    def _step_residuals(ref: StepRecord, cand: StepRecord) -> dict[str, float]:
        a, b = ref.state, cand.state
        return {
            "position": float(np.linalg.norm(np.subtract(a.pos, b.pos))),
            "velocity": float(np.linalg.norm(np.subtract(a.vel, b.vel))),
            "angular_velocity": float(np.linalg.norm(np.subtract(a.ang_vel, b.ang_vel))),
            "quaternion_residual": quaternion_residual(a.quat, b.quat),
            "motor_thrust": telemetry_residual(ref.actuator_telemetry, cand.actuator_telemetry),
            "sensor": sensor_residual(ref.sensor_samples, cand.sensor_samples),
        }

    @staticmethod
    def _result(
        candidate: SimulationLog,
        tier: DeterminismTier,
        issues: list[str],
        residuals: ReplayResiduals | None = None,
    ) -> ReplayCheckResult:
        return ReplayCheckResult(
            scenario_id=candidate.scenario_id,
            seed=candidate.seed,
            tier=tier,
            passed=not issues,
            issues=tuple(issues),
            residuals=residuals or ReplayResiduals.zero(),
        )

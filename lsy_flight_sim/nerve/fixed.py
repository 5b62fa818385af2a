"""Motor nerves with a fixed allocation law.

:class:`FixedQuadMotorNerve` allocates throttle, roll, pitch and yaw drives to the four motors of a
"+" quad. :class:`FixedSinglePropMotorNerve` maps a single throttle drive onto one motor. Both shape
the normalized motor commands with a per-second rate limit and an exponential low-pass filter, and
zero all outputs while the failsafe is active.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from lsy_flight_sim.constants import SPIN_DIRECTIONS
from lsy_flight_sim.errors import check_finite, check_non_negative
from lsy_flight_sim.nerve.base import MotorNerve, MotorNerveTrace, apply_reflexes, drive_value
from lsy_flight_sim.signals import ActuatorValue
from lsy_flight_sim.utils import clamp

if TYPE_CHECKING:
    from ml_collections import ConfigDict

    from lsy_flight_sim.nerve.base import NerveTelemetry
    from lsy_flight_sim.signals import DriveIntent, ReflexCorrection
    from lsy_flight_sim.sim.state import MotorMaxThrusts, WorldTime

logger = logging.getLogger(__name__)


class OutputShaper:
    """Rate limiter followed by an exponential low-pass filter on a vector of normalized outputs.

    The filter uses ``alpha = exp(-dt / tau)`` with ``dt`` the time since the previous call. Both
    stages are bypassed on the first call and whenever ``dt`` is zero.
    """

    def __init__(self, n: int, rate_limit: float, smoothing_time_constant: float | None):
        self.rate_limit = rate_limit
        self.smoothing_time_constant = smoothing_time_constant
        self._last_output = [0.0] * n
        self._last_filtered = [0.0] * n
        self._last_time: float | None = None

    def dt(self, t: float) -> float:
        """Time since the previous call, zero on the first call."""
        return max(0.0, t - (t if self._last_time is None else self._last_time))

    def rate_limit_values(self, values: list[float], dt: float) -> list[float]:
        if dt <= 0 or self.rate_limit <= 0:
            return list(values)
        max_delta = self.rate_limit * dt
        return [p + clamp(v - p, -max_delta, max_delta) for v, p in zip(values, self._last_output)]

    def smooth(self, values: list[float], dt: float) -> list[float]:
        tau = self.smoothing_time_constant
        if tau is None or tau <= 0 or dt <= 0:
            return list(values)
        alpha = math.exp(-dt / tau)
        return [alpha * p + (1.0 - alpha) * v for v, p in zip(values, self._last_filtered)]

    def commit(self, t: float, output: list[float]):
        """Store the final output as the reference of the next call."""
        self._last_time = t
        self._last_output = list(output)
        self._last_filtered = list(output)


@dataclass(frozen=True)
class FixedQuadNerveConfig:
    """Configuration of the :class:`FixedQuadMotorNerve`.

    Attributes:
        max_thrusts: Per-motor thrust scaling of the normalized outputs.
        roll_scale: Gain on the roll drive.
        pitch_scale: Gain on the pitch drive.
        yaw_scale: Gain on the yaw drive.
        spin: Spin sign of each motor for the yaw allocation.
        rate_limit: Maximum change of a normalized output per second. 0 disables the limit.
        smoothing_time_constant: Low-pass time constant in seconds. None disables the filter.
    """

    max_thrusts: MotorMaxThrusts
    roll_scale: float = 1.0
    pitch_scale: float = 1.0
    yaw_scale: float = 1.0
    spin: tuple[float, float, float, float] = SPIN_DIRECTIONS
    rate_limit: float = 2.0
    smoothing_time_constant: float | None = 0.08

    def __post_init__(self):
        check_finite(self.roll_scale, "roll_scale")
        check_finite(self.pitch_scale, "pitch_scale")
        check_finite(self.yaw_scale, "yaw_scale")
        check_non_negative(self.rate_limit, "rate_limit")
        if self.smoothing_time_constant is not None:
            check_finite(self.smoothing_time_constant, "smoothing_time_constant")

    @staticmethod
    def from_config(config: ConfigDict, max_thrusts: MotorMaxThrusts) -> FixedQuadNerveConfig:
        """Create the nerve config from the ``[nerve]`` section of a scenario config."""
        return FixedQuadNerveConfig(
            max_thrusts=max_thrusts,
            roll_scale=config.get("roll_scale", 1.0),
            pitch_scale=config.get("pitch_scale", 1.0),
            yaw_scale=config.get("yaw_scale", 1.0),
            rate_limit=config.get("rate_limit", 2.0),
            smoothing_time_constant=config.get("smoothing_time_constant", 0.08),
        )


class FixedQuadMotorNerve(MotorNerve):
    """Allocates (throttle, roll, pitch, yaw) drives 0-3 to the four motors of a "+" quad."""

    def __init__(self, config: FixedQuadNerveConfig):
        super().__init__()
        self.config = config
        self._shaper = OutputShaper(4, config.rate_limit, config.smoothing_time_constant)

    def update(
        self,
        drives: list[DriveIntent],
        corrections: list[ReflexCorrection],
        telemetry: NerveTelemetry,
        time: WorldTime,
    ) -> list[ActuatorValue]:
        """Allocate the drives to motor thrust commands.

        The throttle is clamped to [0, 1] and the attitude drives to [-1, 1] before scaling. Missing
        drives count as zero.

        Args:
            drives: Throttle (0), roll (1), pitch (2) and yaw (3) drives.
            corrections: Reflex corrections applied before allocation.
            telemetry: Vehicle feedback. An active failsafe zeroes all outputs.
            time: The time of the current tick.

        Returns:
            Thrust commands for motors 0-3 in Newton.
        """
        cfg = self.config
        adjusted = apply_reflexes(drives, corrections)
        throttle = clamp(drive_value(adjusted, 0), 0.0, 1.0)
        roll = clamp(drive_value(adjusted, 1), -1.0, 1.0) * cfg.roll_scale
        pitch = clamp(drive_value(adjusted, 2), -1.0, 1.0) * cfg.pitch_scale
        yaw = clamp(drive_value(adjusted, 3), -1.0, 1.0) * cfg.yaw_scale
        s = cfg.spin
        u_raw = [
            throttle - pitch + s[0] * yaw,
            throttle + roll + s[1] * yaw,
            throttle + pitch + s[2] * yaw,
            throttle - roll + s[3] * yaw,
        ]
        u_sat = [clamp(u, 0.0, 1.0) for u in u_raw]
        dt = self._shaper.dt(time.time)
        u_rate = self._shaper.rate_limit_values(u_sat, dt)
        u_out = self._shaper.smooth(u_rate, dt)
        if telemetry.failsafe_active:
            if self._last_trace is None or not self._last_trace.failsafe_active:
                logger.debug(f"Failsafe active at t={time.time:.4f}s, zeroing motor outputs")
            u_out = [0.0] * 4
        self._shaper.commit(time.time, u_out)
        self._last_trace = MotorNerveTrace(
            tuple(u_raw), tuple(u_sat), tuple(u_rate), tuple(u_out), telemetry.failsafe_active
        )
        scaled = zip(u_out, cfg.max_thrusts.values)
        return [ActuatorValue(i, u * m) for i, (u, m) in enumerate(scaled)]


@dataclass(frozen=True)
class FixedSinglePropNerveConfig:
    """Configuration of the :class:`FixedSinglePropMotorNerve`.

    The base throttle is clamped to [0, 1] and added to the throttle drive.
    """

    max_thrust: float
    rate_limit: float = 2.0
    smoothing_time_constant: float | None = 0.08
    base_throttle: float = 0.0

    def __post_init__(self):
        check_non_negative(self.max_thrust, "max_thrust")
        check_non_negative(self.rate_limit, "rate_limit")
        object.__setattr__(self, "base_throttle", clamp(self.base_throttle, 0.0, 1.0))


class FixedSinglePropMotorNerve(MotorNerve):
    """Maps the throttle drive 0 onto the single motor of a single-rotor platform."""

    def __init__(self, config: FixedSinglePropNerveConfig):
        super().__init__()
        self.config = config
        self._shaper = OutputShaper(1, config.rate_limit, config.smoothing_time_constant)

    def update(self, drives, corrections, telemetry, time):
        adjusted = apply_reflexes(drives, corrections)
        drive = clamp(drive_value(adjusted, 0), 0.0, 1.0)
        throttle = clamp(self.config.base_throttle + drive, 0.0, 1.0)
        u_raw = [throttle]
        u_sat = [clamp(throttle, 0.0, 1.0)]
        dt = self._shaper.dt(time.time)
        u_rate = self._shaper.rate_limit_values(u_sat, dt)
        u_out = [0.0] if telemetry.failsafe_active else self._shaper.smooth(u_rate, dt)
        self._shaper.commit(time.time, u_out)
        self._last_trace = MotorNerveTrace(
            tuple(u_raw), tuple(u_sat), tuple(u_rate), tuple(u_out), telemetry.failsafe_active
        )
        return [ActuatorValue(0, u_out[0] * self.config.max_thrust)]

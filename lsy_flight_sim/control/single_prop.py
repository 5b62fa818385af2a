"""Controllers of the single-rotor platform. Both output a single throttle drive."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lsy_flight_sim.constants import ACCEL_Z, ALTITUDE_Z, VELOCITY_Z
from lsy_flight_sim.control.controller import BaseController
from lsy_flight_sim.errors import check_finite, check_positive
from lsy_flight_sim.signals import DriveIntent, DriveOutput
from lsy_flight_sim.utils import clamp

if TYPE_CHECKING:
    from lsy_flight_sim.signals import ChannelSample
    from lsy_flight_sim.sim.state import WorldTime


class SinglePropHoverCut(BaseController):
    """PD altitude hold on the altitude (6) and vertical velocity (7) channels."""

    def __init__(
        self,
        target_z: float,
        hover_thrust: float,
        max_thrust: float,
        kp: float = 6.0,
        kd: float = 4.0,
    ):
        """Initialize the controller.

        Args:
            target_z: Target altitude in meters.
            hover_thrust: Thrust that balances gravity.
            max_thrust: Max thrust of the motor.
            kp: Thrust per meter of altitude error.
            kd: Thrust per m/s of vertical velocity.
        """
        self.target_z = check_finite(target_z, "target_z")
        self.hover_thrust = check_finite(hover_thrust, "hover_thrust")
        self.max_thrust = check_positive(max_thrust, "max_thrust")
        self.kp = kp
        self.kd = kd
        self.reset()

    def reset(self):
        self.altitude = 0.0
        self.velocity = 0.0

    def update(self, samples: list[ChannelSample], time: WorldTime) -> DriveOutput:
        for sample in samples:
            if sample.index == ALTITUDE_Z:
                self.altitude = sample.value
            elif sample.index == VELOCITY_Z:
                self.velocity = sample.value
        error = self.target_z - self.altitude
        thrust = self.hover_thrust + self.kp * error - self.kd * self.velocity
        thrust = clamp(thrust, 0.0, self.max_thrust)
        throttle = clamp(thrust / self.max_thrust, 0.0, 1.0)
        return DriveOutput((DriveIntent(0, throttle),))


class SinglePropLiftCut(BaseController):
    """Open-loop hover throttle with a thrust boost when the vertical acceleration (5) drops."""

    def __init__(
        self,
        hover_thrust: float,
        max_thrust: float,
        fall_accel_threshold: float = 0.35,
        fall_thrust_boost: float = 0.15,
    ):
        self.hover_thrust = check_finite(hover_thrust, "hover_thrust")
        self.max_thrust = check_positive(max_thrust, "max_thrust")
        self.fall_accel_threshold = fall_accel_threshold
        self.fall_thrust_boost = fall_thrust_boost
        self.reset()

    def reset(self):
        self.accel_z = 0.0

    def update(self, samples: list[ChannelSample], time: WorldTime) -> DriveOutput:
        for sample in samples:
            if sample.index == ACCEL_Z:
                self.accel_z = sample.value
        accel_mag = max(1e-6, abs(self.accel_z))
        threshold = max(self.fall_accel_threshold, 1e-6)
        fall = clamp((self.fall_accel_threshold - accel_mag) / threshold, 0.0, 1.0)
        thrust = self.hover_thrust * (1.0 + fall * self.fall_thrust_boost)
        throttle = clamp(thrust / self.max_thrust, 0.0, 1.0)
        return DriveOutput((DriveIntent(0, throttle),))

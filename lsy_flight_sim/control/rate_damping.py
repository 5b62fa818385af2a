"""IMU rate-damping controllers for "+" quadrotors.

Both controllers estimate roll and pitch with a :class:`~.TiltEstimator` and apply a PD law on the
tilt and the gyro rate. Yaw is only damped proportionally to the yaw rate.
:class:`ImuRateDampingCut` inverts the torque demand into four motor thrusts, while
:class:`ImuRateDampingDriveCut` outputs normalized drive intents for a motor nerve.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.control.controller import BaseController
from lsy_flight_sim.control.estimator import TiltEstimator
from lsy_flight_sim.errors import (
    InvalidMixerParametersError,
    NonFiniteStateError,
    check_finite,
    check_non_negative,
    check_positive,
)
from lsy_flight_sim.signals import ActuatorOutput, ActuatorValue, DriveIntent, DriveOutput
from lsy_flight_sim.sim.state import MotorThrusts
from lsy_flight_sim.utils import clamp

if TYPE_CHECKING:
    from ml_collections import ConfigDict
    from numpy.typing import NDArray

    from lsy_flight_sim.signals import ChannelSample
    from lsy_flight_sim.sim.params import QuadrotorParams
    from lsy_flight_sim.sim.state import WorldTime


@dataclass(frozen=True)
class RateDampingGains:
    """Gains of the rate-damping controllers.

    Attributes:
        kp: Proportional gain on the estimated tilt.
        kd: Derivative gain on the gyro rate.
        yaw_damping: Proportional gain on the yaw rate.
        hover_thrust_scale: Scale of the per-motor hover thrust.
    """

    kp: float
    kd: float
    yaw_damping: float
    hover_thrust_scale: float = 1.0

    def __post_init__(self):
        check_non_negative(self.kp, "kp")
        check_non_negative(self.kd, "kd")
        check_non_negative(self.yaw_damping, "yaw_damping")
        check_positive(self.hover_thrust_scale, "hover_thrust_scale")

    @staticmethod
    def from_config(config: ConfigDict) -> RateDampingGains:
        """Create the gains from the ``[controller]`` section of a scenario config."""
        return RateDampingGains(
            kp=config.kp,
            kd=config.kd,
            yaw_damping=config.yaw_damping,
            hover_thrust_scale=config.get("hover_thrust_scale", 1.0),
        )


def solve_thrusts(
    total_thrust: float, torque: NDArray[np.floating], arm_length: float, yaw_coefficient: float
) -> MotorThrusts:
    """Invert the "+" mixer for a total thrust and a body torque.

    Args:
        total_thrust: Sum of the four motor thrusts.
        torque: Body torque (roll, pitch, yaw).
        arm_length: Distance of each motor from the center.
        yaw_coefficient: Reaction torque per unit thrust.

    Returns:
        The motor thrusts that produce the demand.

    Raises:
        NonFiniteStateError: The solution is not finite.
        NegativeValueError: The demand requires a negative motor thrust.
    """
    a = torque[0] / arm_length
    b = torque[1] / arm_length
    c = torque[2] / yaw_coefficient
    d = (c - b + a) / 2.0
    f4 = (total_thrust - 2.0 * d - a - b) / 4.0
    thrusts = (f4 + d, f4 + a, f4 + d + b, f4)
    if not all(math.isfinite(f) for f in thrusts):
        raise NonFiniteStateError("Thrust allocation is not finite")
    return MotorThrusts(*thrusts)


class _RateDampingBase(BaseController):
    def __init__(
        self,
        hover_thrust: float,
        gains: RateDampingGains,
        arm_length: float,
        yaw_coefficient: float,
    ):
        self.hover_thrust = check_finite(hover_thrust, "hover_thrust")
        if not (arm_length > 0 and yaw_coefficient > 0):
            raise InvalidMixerParametersError(
                f"Arm length {arm_length} and yaw coefficient {yaw_coefficient} must be positive"
            )
        self.gains = gains
        self.arm_length = arm_length
        self.yaw_coefficient = yaw_coefficient
        self.estimator = TiltEstimator()

    def _torque(self, roll: float, pitch: float) -> NDArray[np.floating]:
        gyro = self.estimator.gyro
        torque = np.array(
            [
                -self.gains.kp * roll - self.gains.kd * gyro[0],
                -self.gains.kp * pitch - self.gains.kd * gyro[1],
                -self.gains.yaw_damping * gyro[2],
            ]
        )
        if not np.all(np.isfinite(torque)):
            raise NonFiniteStateError("Commanded torque is not finite")
        return torque

    def reset(self):
        self.estimator.reset()


class ImuRateDampingCut(_RateDampingBase):
    """Commands the four motor thrusts that hold hover thrust while damping tilt and rates."""

    def __init__(
        self,
        hover_thrust: float,
        gains: RateDampingGains,
        arm_length: float,
        yaw_coefficient: float,
    ):
        """Initialize the controller.

        Args:
            hover_thrust: Per-motor hover thrust in Newton.
            gains: The controller gains.
            arm_length: Arm length of the "+" layout.
            yaw_coefficient: Reaction torque per unit thrust.

        Raises:
            NonFiniteValueError: The hover thrust is not finite.
            InvalidMixerParametersError: The arm length or yaw coefficient is not positive.
        """
        super().__init__(hover_thrust, gains, arm_length, yaw_coefficient)

    @staticmethod
    def from_params(params: QuadrotorParams, gains: RateDampingGains) -> ImuRateDampingCut:
        """Create the controller for a robot."""
        hover = params.hover_thrust * gains.hover_thrust_scale
        return ImuRateDampingCut(hover, gains, params.arm_length, params.yaw_coefficient)

    def update(self, samples: list[ChannelSample], time: WorldTime) -> ActuatorOutput:
        self.estimator.read(samples)
        roll, pitch = self.estimator.update(time)
        torque = self._torque(roll, pitch)
        thrusts = solve_thrusts(
            self.hover_thrust * 4.0, torque, self.arm_length, self.yaw_coefficient
        )
        return ActuatorOutput(tuple(ActuatorValue(i, f) for i, f in enumerate(thrusts.values)))


class ImuRateDampingDriveCut(_RateDampingBase):
    """Outputs normalized (throttle, roll, pitch, yaw) drive intents.

    The torque demand is divided by the largest torque the motors can produce about each axis, and
    the throttle by the total max thrust. A fall detector compares the accelerometer magnitude with
    a threshold: the further it drops below, the more the controller biases the tilt setpoint
    towards the measured gravity direction and boosts the thrust.
    """

    def __init__(
        self,
        hover_thrust: float,
        gains: RateDampingGains,
        arm_length: float,
        yaw_coefficient: float,
        max_thrust: float,
        roll_scale: float = 1.0,
        pitch_scale: float = 1.0,
        yaw_scale: float = 1.0,
        fall_accel_threshold: float = 0.35,
        fall_tilt_bias: float = 0.12,
        fall_thrust_boost: float = 0.15,
    ):
        """Initialize the controller.

        Args:
            hover_thrust: Per-motor hover thrust in Newton.
            gains: The controller gains.
            arm_length: Arm length of the "+" layout.
            yaw_coefficient: Reaction torque per unit thrust.
            max_thrust: Max thrust of a single motor.
            roll_scale: Roll drive scale of the downstream motor nerve.
            pitch_scale: Pitch drive scale of the downstream motor nerve.
            yaw_scale: Yaw drive scale of the downstream motor nerve.
            fall_accel_threshold: Accelerometer magnitude below which the fall response starts.
            fall_tilt_bias: Max tilt setpoint bias of the fall response in radians.
            fall_thrust_boost: Max relative thrust boost of the fall response.

        Raises:
            NonFiniteValueError: The hover thrust or max thrust is not finite.
            NonPositiveValueError: The max thrust is not positive.
            InvalidMixerParametersError: The arm length or yaw coefficient is not positive.
        """
        super().__init__(hover_thrust, gains, arm_length, yaw_coefficient)
        self.max_thrust = check_positive(max_thrust, "max_thrust")
        self.roll_scale = roll_scale
        self.pitch_scale = pitch_scale
        self.yaw_scale = yaw_scale
        self.fall_accel_threshold = fall_accel_threshold
        self.fall_tilt_bias = fall_tilt_bias
        self.fall_thrust_boost = fall_thrust_boost

    @staticmethod
    def from_params(
        params: QuadrotorParams, gains: RateDampingGains, **kwargs
    ) -> ImuRateDampingDriveCut:
        """Create the controller for a robot. ``kwargs`` override the optional arguments."""
        hover = params.hover_thrust * gains.hover_thrust_scale
        return ImuRateDampingDriveCut(
            hover, gains, params.arm_length, params.yaw_coefficient, params.max_thrust, **kwargs
        )

    def fall_factor(self) -> float:
        """Fall severity in [0, 1] from the last accelerometer reading."""
        accel_mag = max(1e-6, float(np.linalg.norm(self.estimator.accel)))
        threshold = max(self.fall_accel_threshold, 1e-6)
        return clamp((self.fall_accel_threshold - accel_mag) / threshold, 0.0, 1.0)

    def update(self, samples: list[ChannelSample], time: WorldTime) -> DriveOutput:
        self.estimator.read(samples)
        roll, pitch = self.estimator.update(time)
        accel = self.estimator.accel
        accel_mag = max(1e-6, float(np.linalg.norm(accel)))
        fall = self.fall_factor()
        roll += fall * self.fall_tilt_bias * (accel[1] / accel_mag)
        pitch += fall * self.fall_tilt_bias * (-accel[0] / accel_mag)
        torque = self._torque(roll, pitch)

        total_thrust = self.hover_thrust * 4.0 * (1.0 + fall * self.fall_thrust_boost)
        throttle = clamp(total_thrust / max(4.0 * self.max_thrust, 1e-6), 0.0, 1.0)
        roll_denom = max(2.0 * self.arm_length * self.max_thrust * self.roll_scale, 1e-6)
        pitch_denom = max(2.0 * self.arm_length * self.max_thrust * self.pitch_scale, 1e-6)
        yaw_denom = max(4.0 * self.yaw_coefficient * self.max_thrust * self.yaw_scale, 1e-6)
        drives = (
            DriveIntent(0, throttle),
            DriveIntent(1, clamp(torque[0] / roll_denom, -1.0, 1.0)),
            DriveIntent(2, clamp(torque[1] / pitch_denom, -1.0, 1.0)),
            DriveIntent(3, clamp(torque[2] / yaw_denom, -1.0, 1.0)),
        )
        return DriveOutput(drives)

"""Tilt estimation from a 6-axis IMU.

Roll and pitch are estimated twice: directly from the accelerometer's gravity direction and by
integrating the gyro rates. A complementary filter with time constant
:data:`~lsy_flight_sim.constants.ESTIMATOR_TIME_CONSTANT` fuses both estimates.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.constants import ACCEL_X, ACCEL_Z, ESTIMATOR_TIME_CONSTANT, GYRO_X, GYRO_Z

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from lsy_flight_sim.signals import ChannelSample
    from lsy_flight_sim.sim.state import WorldTime


def accel_tilt(accel: NDArray[np.floating]) -> tuple[float, float]:
    """Roll and pitch of the gravity direction measured by the accelerometer."""
    ax, ay, az = accel
    return math.atan2(ay, az), math.atan2(-ax, math.sqrt(ay * ay + az * az))


class TiltEstimator:
    """Complementary roll/pitch filter over the latest IMU readings.

    The filter keeps the last gyro (channels 0-2) and accelerometer (channels 3-5) reading. Before
    the first accelerometer sample the accelerometer reads (0, 0, 1), i.e. level.
    """

    def __init__(self, time_constant: float = ESTIMATOR_TIME_CONSTANT):
        self.time_constant = time_constant
        self.reset()

    def reset(self):
        """Forget all readings and estimates."""
        self.gyro = np.zeros(3)
        self.accel = np.array([0.0, 0.0, 1.0])
        self.roll = 0.0
        self.pitch = 0.0
        self._last_time: float | None = None

    def read(self, samples: list[ChannelSample]):
        """Store the IMU channels of ``samples``. Other channels are ignored."""
        for sample in samples:
            if GYRO_X <= sample.index <= GYRO_Z:
                self.gyro[sample.index - GYRO_X] = sample.value
            elif ACCEL_X <= sample.index <= ACCEL_Z:
                self.accel[sample.index - ACCEL_X] = sample.value

    def update(self, time: WorldTime) -> tuple[float, float]:
        """Advance the estimate to ``time``.

        The gyro rates are integrated over the time since the previous update (zero on the first
        call), then blended with the accelerometer tilt as
        ``alpha * gyro_estimate + (1 - alpha) * accel_estimate`` with ``alpha = exp(-dt / tau)``.

        Args:
            time: The time of the current tick.

        Returns:
            The estimated roll and pitch in radians.
        """
        dt = 0.0 if self._last_time is None else max(0.0, time.time - self._last_time)
        self._last_time = time.time
        self.roll += self.gyro[0] * dt
        self.pitch += self.gyro[1] * dt
        if dt > 0:
            accel_roll, accel_pitch = accel_tilt(self.accel)
            alpha = math.exp(-dt / self.time_constant)
            self.roll = alpha * self.roll + (1.0 - alpha) * accel_roll
            self.pitch = alpha * self.pitch + (1.0 - alpha) * accel_pitch
        return self.roll, self.pitch

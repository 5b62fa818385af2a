"""Stateless motor nerves without output shaping."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lsy_flight_sim.nerve.base import MotorNerve, apply_reflexes, drive_value
from lsy_flight_sim.signals import ActuatorValue
from lsy_flight_sim.utils import clamp

if TYPE_CHECKING:
    from lsy_flight_sim.sim.state import MotorMaxThrusts


class DirectMotorNerve(MotorNerve):
    """Passes each adjusted drive to the actuator with the same index."""

    def update(self, drives, corrections, telemetry, time):
        return [ActuatorValue(d.index, d.activation) for d in apply_reflexes(drives, corrections)]


class LiftMotorNerve(MotorNerve):
    """Broadcasts the throttle drive 0, clamped to [0, 1], to all motors scaled by their limits."""

    def __init__(self, max_thrusts: MotorMaxThrusts):
        super().__init__()
        self.max_thrusts = max_thrusts

    def update(self, drives, corrections, telemetry, time):
        throttle = clamp(drive_value(apply_reflexes(drives, corrections), 0), 0.0, 1.0)
        return [ActuatorValue(i, throttle * m) for i, m in enumerate(self.max_thrusts.values)]

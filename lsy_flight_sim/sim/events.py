"""Time-windowed perturbation events for actuators, sensors and dynamics.

Swap events perturb the parameters of a motor or a set of sensor channels while they are active.
High-frequency stress events inject short faults (impulses, vibration, glitches, latency spikes and
actuator saturation). An event is active at time ``t`` if ``start_time <= t <= start_time +
duration``. Overlapping events compose per channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from lsy_flight_sim.errors import InvalidRangeError, check_finite, check_non_negative

if TYPE_CHECKING:
    from ml_collections import ConfigDict


@dataclass(frozen=True)
class TimeWindow:
    """Base class of all events active during ``[start_time, start_time + duration]``."""

    start_time: float
    duration: float

    def __post_init__(self):
        check_non_negative(self.start_time, "start_time")
        check_non_negative(self.duration, "duration")

    def is_active(self, t: float) -> bool:
        """Check if the event is active at time ``t``."""
        return self.start_time <= t <= self.start_time + self.duration


@dataclass(frozen=True)
class ActuatorSwap(TimeWindow):
    """Perturbation of one motor's command path."""

    motor_index: int = 0
    gain_scale: float = 1.0
    lag_scale: float = 1.0
    max_output_scale: float = 1.0
    deadzone_shift: float = 0.0

    def __post_init__(self):
        super().__post_init__()
        if self.motor_index < 0:
            raise InvalidRangeError("motor_index")
        check_finite(self.gain_scale, "gain_scale")
        check_non_negative(self.lag_scale, "lag_scale")
        check_non_negative(self.max_output_scale, "max_output_scale")
        check_finite(self.deadzone_shift, "deadzone_shift")


@dataclass(frozen=True)
class SensorSwap(TimeWindow):
    """Perturbation of a set of sensor channels."""

    channels: tuple[int, ...] = (0,)
    gain_scale: float = 1.0
    bias_shift: float = 0.0
    noise_scale: float = 1.0
    dropout_probability: float = 0.0
    delay_shift_steps: int = 0

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "channels", tuple(int(c) for c in self.channels))
        if any(c < 0 for c in self.channels):
            raise InvalidRangeError("channels")
        check_finite(self.gain_scale, "gain_scale")
        check_finite(self.bias_shift, "bias_shift")
        check_non_negative(self.noise_scale, "noise_scale")
        check_non_negative(self.dropout_probability, "dropout_probability")
        if self.dropout_probability > 1:
            raise InvalidRangeError("dropout_probability")


SwapEvent = Union[ActuatorSwap, SensorSwap]


class HFStressKind(str, Enum):
    """Kinds of high-frequency stress events."""

    IMPULSE = "impulse"  # Constant torque about the body x axis.
    VIBRATION = "vibration"  # 120 Hz torque about the body x axis.
    SENSOR_GLITCH = "sensor_glitch"  # Signed bias on all IMU channels.
    LATENCY_SPIKE = "latency_spike"  # Extra sensor delay steps.
    ACTUATOR_SATURATION = "actuator_saturation"  # Caps the max output of all motors.


@dataclass(frozen=True)
class HFStressEvent(TimeWindow):
    """Short high-frequency fault with a kind-dependent magnitude."""

    kind: HFStressKind = HFStressKind.IMPULSE
    magnitude: float = 0.0

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "kind", HFStressKind(self.kind))
        check_finite(self.magnitude, "magnitude")


def swaps_from_config(config: ConfigDict | None) -> list[SwapEvent]:
    """Create the swap events of the ``[swaps]`` config section.

    The section holds the two lists ``actuator`` and ``sensor`` of keyword tables.
    """
    if config is None:
        return []
    events: list[SwapEvent] = [ActuatorSwap(**dict(e)) for e in config.get("actuator", [])]
    events += [SensorSwap(**dict(e)) for e in config.get("sensor", [])]
    return events


def hf_events_from_config(config: ConfigDict | list | None) -> list[HFStressEvent]:
    """Create the high-frequency stress events of the ``[[hf_events]]`` config list."""
    if config is None:
        return []
    return [HFStressEvent(**dict(e)) for e in config]

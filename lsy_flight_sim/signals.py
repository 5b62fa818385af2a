"""Per-tick values exchanged between controllers, motor nerves, actuators and sensors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple, Union

from lsy_flight_sim.errors import InvalidRangeError, check_finite


class ActuatorValue(NamedTuple):
    """Commanded or measured magnitude of one actuator channel."""

    index: int
    value: float


class ChannelSample(NamedTuple):
    """A single synthetic sensor reading."""

    index: int
    value: float
    timestamp: float


class TelemetryChannel(NamedTuple):
    """Measured output of one named actuator channel."""

    id: str
    value: float
    units: str


@dataclass(frozen=True)
class DriveIntent:
    """Normalized controller-level command axis before allocation to actuators."""

    index: int
    activation: float
    parameters: dict[str, float] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ReflexCorrection:
    """Low-level override applied to one drive intent.

    The adjusted activation is ``activation * (1 - damping) * clamp + delta``.
    """

    drive_index: int
    clamp: float = 1.0
    damping: float = 0.0
    delta: float = 0.0

    def __post_init__(self):
        check_finite(self.clamp, "clamp")
        check_finite(self.damping, "damping")
        if not 0.0 <= self.damping <= 1.0:
            raise InvalidRangeError("damping")
        check_finite(self.delta, "delta")


@dataclass(frozen=True)
class ActuatorOutput:
    """Controller output of raw actuator values."""

    values: tuple[ActuatorValue, ...]


@dataclass(frozen=True)
class DriveOutput:
    """Controller output of drive intents plus reflex corrections."""

    drives: tuple[DriveIntent, ...]
    corrections: tuple[ReflexCorrection, ...] = ()


CutOutput = Union[ActuatorOutput, DriveOutput]

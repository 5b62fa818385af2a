"""Typed robot descriptor consumed by the data-driven motor nerve chain.

The descriptor declares the named signals of a robot, its actuators and their limits, the drive
channels of the controller and the ordered stages of the motor nerve. Descriptors are usually
created from a plain mapping, e.g. a TOML table, with :meth:`RobotDescriptor.from_dict`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from lsy_flight_sim.errors import InvalidRangeError, check_finite

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True)
class Range:
    """Closed interval ``[min, max]``."""

    min: float
    max: float

    def __post_init__(self):
        check_finite(self.min, "min")
        check_finite(self.max, "max")
        if self.min > self.max:
            raise InvalidRangeError("range", f"Range min {self.min} exceeds max {self.max}")

    @staticmethod
    def parse(value: Mapping | list | tuple | None) -> Range | None:
        """Parse ``[min, max]`` or ``{min = .., max = ..}``."""
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return Range(float(value[0]), float(value[1]))
        return Range(float(value["min"]), float(value["max"]))


@dataclass(frozen=True)
class SignalDefinition:
    """A named signal of the robot."""

    id: str
    index: int
    name: str = ""
    units: str = ""
    range: Range | None = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> SignalDefinition:
        return SignalDefinition(
            id=data["id"],
            index=int(data["index"]),
            name=data.get("name", data["id"]),
            units=data.get("units", ""),
            range=Range.parse(data.get("range")),
        )


@dataclass(frozen=True)
class Signals:
    """All signals of the robot grouped by role."""

    sensor: tuple[SignalDefinition, ...] = ()
    actuator: tuple[SignalDefinition, ...] = ()
    drive: tuple[SignalDefinition, ...] = ()
    reflex: tuple[SignalDefinition, ...] = ()
    motor_nerve: tuple[SignalDefinition, ...] = ()

    def ids(self) -> set[str]:
        """Ids of all declared signals."""
        groups = (self.sensor, self.actuator, self.drive, self.reflex, self.motor_nerve)
        return {s.id for group in groups for s in group}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> Signals:
        return Signals(
            **{
                key: tuple(SignalDefinition.from_dict(s) for s in data.get(key, []))
                for key in ("sensor", "actuator", "drive", "reflex", "motor_nerve")
            }
        )


@dataclass(frozen=True)
class ActuatorLimits:
    """Physical output range and rate limit of an actuator."""

    min: float
    max: float
    rate_limit: float = 0.0

    def __post_init__(self):
        Range(self.min, self.max)


@dataclass(frozen=True)
class ActuatorDefinition:
    """An actuator driven by one or more actuator signals."""

    id: str
    type: str
    channels: tuple[str, ...]
    limits: ActuatorLimits

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ActuatorDefinition:
        return ActuatorDefinition(
            id=data["id"],
            type=data.get("type", "motor"),
            channels=tuple(data["channels"]),
            limits=ActuatorLimits(**dict(data["limits"])),
        )


@dataclass(frozen=True)
class Control:
    """Drive and reflex channels of the controller with optional constraints."""

    drive_channels: tuple[str, ...]
    reflex_channels: tuple[str, ...] = ()
    drive_clamp: Range | None = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> Control:
        constraints = data.get("constraints") or {}
        return Control(
            drive_channels=tuple(data["drive_channels"]),
            reflex_channels=tuple(data.get("reflex_channels", [])),
            drive_clamp=Range.parse(constraints.get("drive_clamp")),
        )


class StageType(str, Enum):
    """Kinds of motor nerve stages."""

    DIRECT = "direct"
    MATRIX = "matrix"
    MIXER = "mixer"
    CUSTOM = "custom"


@dataclass(frozen=True)
class StageMapping:
    """Optional numeric parameters of a stage."""

    matrix: tuple[tuple[float, ...], ...] | None = None
    bias: tuple[float, ...] | None = None
    clip: Range | None = None

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> StageMapping | None:
        if data is None:
            return None
        matrix = data.get("matrix")
        bias = data.get("bias")
        return StageMapping(
            matrix=tuple(tuple(float(w) for w in row) for row in matrix) if matrix else None,
            bias=tuple(float(b) for b in bias) if bias is not None else None,
            clip=Range.parse(data.get("clip")),
        )


@dataclass(frozen=True)
class MotorNerveStage:
    """One stage of the motor nerve dataflow graph."""

    id: str
    type: StageType
    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    mapping: StageMapping | None = None
    parameters: dict[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "type", StageType(self.type))
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> MotorNerveStage:
        return MotorNerveStage(
            id=data["id"],
            type=data["type"],
            inputs=tuple(data["inputs"]),
            outputs=tuple(data["outputs"]),
            mapping=StageMapping.from_dict(data.get("mapping")),
            parameters=dict(data.get("parameters") or {}),
        )


@dataclass(frozen=True)
class RobotDescriptor:
    """Signal graph of a robot as far as the motor nerve is concerned."""

    signals: Signals
    actuators: tuple[ActuatorDefinition, ...]
    control: Control
    stages: tuple[MotorNerveStage, ...]

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> RobotDescriptor:
        """Create a descriptor from a plain mapping.

        Args:
            data: Mapping with the keys ``signals``, ``actuators``, ``control`` and ``motor_nerve``.
                The motor nerve holds the list of ``stages``.

        Returns:
            The descriptor.
        """
        return RobotDescriptor(
            signals=Signals.from_dict(data["signals"]),
            actuators=tuple(ActuatorDefinition.from_dict(a) for a in data.get("actuators", [])),
            control=Control.from_dict(data["control"]),
            stages=tuple(MotorNerveStage.from_dict(s) for s in data["motor_nerve"]["stages"]),
        )

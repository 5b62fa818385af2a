"""Common interface and shared reflex logic of all motor nerves.

A motor nerve allocates the drive intents of a controller, adjusted by reflex corrections, to
per-actuator commands. Each nerve keeps a :class:`MotorNerveTrace` of its last update for
diagnostics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from lsy_flight_sim.errors import UnexpectedCallError

if TYPE_CHECKING:
    from lsy_flight_sim.signals import ActuatorValue, DriveIntent, ReflexCorrection
    from lsy_flight_sim.sim.state import WorldTime


@dataclass(frozen=True)
class NerveTelemetry:
    """Feedback from the vehicle into the motor nerve."""

    failsafe_active: bool = False


@dataclass(frozen=True)
class MotorNerveTrace:
    """Intermediate values of the last nerve update.

    Attributes:
        u_raw: Unclipped allocation.
        u_sat: Allocation after saturation.
        u_rate: Allocation after rate limiting.
        u_out: Final normalized outputs.
        failsafe_active: True if the outputs were zeroed by the failsafe.
    """

    u_raw: tuple[float, ...]
    u_sat: tuple[float, ...]
    u_rate: tuple[float, ...]
    u_out: tuple[float, ...]
    failsafe_active: bool


@dataclass
class _ReflexAggregate:
    clamp: float = 1.0
    damping: float = 0.0
    delta: float = 0.0


def apply_reflexes(
    drives: list[DriveIntent], corrections: list[ReflexCorrection]
) -> list[DriveIntent]:
    """Apply the reflex corrections to the drive intents.

    All corrections of a drive are combined first: clamp multipliers multiply, dampings add up to at
    most 1 and deltas add. The combined correction is applied as
    ``activation * (1 - damping) * clamp + delta``. Drives without corrections pass unchanged.

    Args:
        drives: The drive intents of the controller.
        corrections: The reflex corrections in any order.

    Returns:
        The adjusted drive intents in input order.
    """
    if not corrections:
        return list(drives)
    aggregate: dict[int, _ReflexAggregate] = {}
    for c in corrections:
        entry = aggregate.setdefault(c.drive_index, _ReflexAggregate())
        entry.clamp *= c.clamp
        entry.damping = min(1.0, entry.damping + c.damping)
        entry.delta += c.delta
    adjusted = []
    for drive in drives:
        entry = aggregate.get(drive.index)
        if entry is None:
            adjusted.append(drive)
            continue
        activation = drive.activation * (1.0 - entry.damping) * entry.clamp + entry.delta
        adjusted.append(replace(drive, activation=activation))
    return adjusted


def drive_value(drives: list[DriveIntent], index: int) -> float:
    """Activation of the first drive with ``index``, or 0 if there is none."""
    return next((d.activation for d in drives if d.index == index), 0.0)


class MotorNerve(ABC):
    """Base class of all motor nerves."""

    def __init__(self):
        self._last_trace: MotorNerveTrace | None = None

    @property
    def last_trace(self) -> MotorNerveTrace | None:
        """Trace of the last update, or None before the first update."""
        return self._last_trace

    @abstractmethod
    def update(
        self,
        drives: list[DriveIntent],
        corrections: list[ReflexCorrection],
        telemetry: NerveTelemetry,
        time: WorldTime,
    ) -> list[ActuatorValue]:
        """Allocate drive intents to actuator commands.

        Args:
            drives: The drive intents of the controller.
            corrections: Reflex corrections applied to the drives before allocation.
            telemetry: Vehicle feedback such as the failsafe flag.
            time: The time of the current tick.

        Returns:
            One command per actuator channel.
        """


class UnusedMotorNerve(MotorNerve):
    """Sentinel for controllers that command actuators directly. Any update is a wiring error."""

    def update(self, drives, corrections, telemetry, time):
        raise UnexpectedCallError("UnusedMotorNerve.update called")

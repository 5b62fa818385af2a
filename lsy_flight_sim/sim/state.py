"""Physical state owned by one simulation run.

The :class:`WorldStore` is the single aggregate of mutable physical state. Every component holds a
reference to the same store and replaces its fields in place; no component keeps a private copy of
the rigid-body state, the motor thrusts or the disturbances.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from lsy_flight_sim.constants import N_MOTORS
from lsy_flight_sim.errors import (
    NegativeValueError,
    NonFiniteValueError,
    check_finite,
    check_non_negative,
    check_positive,
)
from lsy_flight_sim.utils.rotations import IDENTITY_QUAT, normalize_quat

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True)
class WorldTime:
    """Step index and elapsed simulation time of one tick."""

    step: int
    time: float

    def __post_init__(self):
        if self.step < 0:
            raise NegativeValueError("step")
        check_non_negative(self.time, "time")

    def advanced(self, dt: TimeStep) -> WorldTime:
        """Return the time of the next tick."""
        return WorldTime(self.step + 1, (self.step + 1) * dt.delta)


@dataclass(frozen=True)
class TimeStep:
    """Fixed integration delta of a simulation run in seconds."""

    delta: float

    def __post_init__(self):
        check_positive(self.delta, "delta")

    @staticmethod
    def from_freq(freq: float) -> TimeStep:
        """Create the time step of a simulation running at ``freq`` Hz."""
        return TimeStep(1.0 / check_positive(freq, "freq"))


class StateDerivative(NamedTuple):
    """Time derivative of a :class:`RigidBodyState`."""

    vel: NDArray[np.floating]
    acc: NDArray[np.floating]
    quat_dot: NDArray[np.floating]
    ang_acc: NDArray[np.floating]


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable, hashable copy of a rigid-body state used in logs."""

    pos: tuple[float, float, float]
    vel: tuple[float, float, float]
    quat: tuple[float, float, float, float]
    ang_vel: tuple[float, float, float]


def _vector(value: NDArray | tuple | list, dim: int, name: str) -> NDArray[np.floating]:
    arr = np.array(value, dtype=np.float64).reshape(-1)
    assert arr.shape == (dim,), f"{name} must have shape ({dim},), got {arr.shape}"
    if not np.all(np.isfinite(arr)):
        raise NonFiniteValueError(name)
    return arr


@dataclass
class RigidBodyState:
    """Kinematic state of the single rigid root body.

    Position and velocity are expressed in the world frame, the angular velocity in the body frame.
    The orientation is a unit quaternion in xyzw order and is renormalized on every construction.
    """

    pos: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    vel: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    quat: NDArray[np.floating] = field(default_factory=lambda: IDENTITY_QUAT.copy())
    ang_vel: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.pos = _vector(self.pos, 3, "pos")
        self.vel = _vector(self.vel, 3, "vel")
        self.quat = normalize_quat(_vector(self.quat, 4, "quat"))
        self.ang_vel = _vector(self.ang_vel, 3, "ang_vel")

    def applying(self, derivative: StateDerivative, scale: float) -> RigidBodyState:
        """Return the state advanced along ``derivative`` by ``scale`` seconds."""
        return RigidBodyState(
            pos=self.pos + derivative.vel * scale,
            vel=self.vel + derivative.acc * scale,
            quat=self.quat + derivative.quat_dot * scale,
            ang_vel=self.ang_vel + derivative.ang_acc * scale,
        )

    def snapshot(self) -> StateSnapshot:
        """Copy the state into an immutable snapshot."""
        return StateSnapshot(
            pos=tuple(float(x) for x in self.pos),
            vel=tuple(float(x) for x in self.vel),
            quat=tuple(float(x) for x in self.quat),
            ang_vel=tuple(float(x) for x in self.ang_vel),
        )

    @staticmethod
    def from_snapshot(snapshot: StateSnapshot) -> RigidBodyState:
        """Rebuild a state from a snapshot."""
        return RigidBodyState(snapshot.pos, snapshot.vel, snapshot.quat, snapshot.ang_vel)


@dataclass(frozen=True)
class _MotorChannels:
    f1: float = 0.0
    f2: float = 0.0
    f3: float = 0.0
    f4: float = 0.0

    def __post_init__(self):
        for name in ("f1", "f2", "f3", "f4"):
            value = float(getattr(self, name))
            check_non_negative(value, name)
            object.__setattr__(self, name, value)

    @property
    def values(self) -> tuple[float, float, float, float]:
        """Channel values in motor order."""
        return (self.f1, self.f2, self.f3, self.f4)

    def array(self) -> NDArray[np.floating]:
        """Channel values as a numpy array of shape (4,)."""
        return np.array(self.values)

    def __getitem__(self, index: int) -> float:
        return self.values[index]

    @classmethod
    def from_values(cls, values: NDArray | tuple | list):
        """Build the channels from a sequence of four values."""
        assert len(values) == N_MOTORS, f"Expected {N_MOTORS} values, got {len(values)}"
        return cls(*(float(v) for v in values))


@dataclass(frozen=True)
class MotorThrusts(_MotorChannels):
    """Current thrust of each motor in Newton."""


@dataclass(frozen=True)
class MotorMaxThrusts(_MotorChannels):
    """Upper thrust limit of each motor in Newton."""

    @staticmethod
    def uniform(value: float) -> MotorMaxThrusts:
        """All four motors share the same limit."""
        return MotorMaxThrusts(value, value, value, value)

    def max_for(self, index: int) -> float:
        """Limit of motor ``index``. Indices outside 0..3 have a limit of 0."""
        if 0 <= index < N_MOTORS:
            return self.values[index]
        return 0.0

    def setting(self, index: int, value: float) -> MotorMaxThrusts:
        """Return a copy with the limit of motor ``index`` replaced."""
        values = list(self.values)
        values[index] = value
        return MotorMaxThrusts(*values)


@dataclass(frozen=True)
class DisturbanceState:
    """External loads of the current tick: a world-frame force and a body-frame torque."""

    force_world: tuple[float, float, float] = (0.0, 0.0, 0.0)
    torque_body: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        for name in ("force_world", "torque_body"):
            value = tuple(float(v) for v in getattr(self, name))
            assert len(value) == 3, f"{name} must have 3 components"
            for v in value:
                check_finite(v, name)
            object.__setattr__(self, name, value)

    @staticmethod
    def zero() -> DisturbanceState:
        """No external loads."""
        return DisturbanceState()


@dataclass
class WorldStore:
    """Mutable physical state of one simulation run."""

    state: RigidBodyState = field(default_factory=RigidBodyState)
    motor_thrusts: MotorThrusts = field(default_factory=MotorThrusts)
    disturbances: DisturbanceState = field(default_factory=DisturbanceState)

    def checkpoint(self) -> WorldStore:
        """Copy the store so that it can be restored if a step fails."""
        return WorldStore(copy.deepcopy(self.state), self.motor_thrusts, self.disturbances)

    def restore(self, checkpoint: WorldStore):
        """Reset all fields to the values of ``checkpoint``."""
        self.state = copy.deepcopy(checkpoint.state)
        self.motor_thrusts = checkpoint.motor_thrusts
        self.disturbances = checkpoint.disturbances


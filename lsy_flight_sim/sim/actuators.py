"""Actuator engines that turn commanded values into motor thrusts.

The base engines model each motor as a first-order lag towards its commanded thrust, clamped to the
motor's limits. Decorators wrap a base engine to inject faults: :class:`ActuatorDegradationEngine`
weakens one motor after an onset time, and :class:`SwappableActuatorEngine` perturbs the incoming
commands during swap and saturation events. Decorators own their inner engine and never share
state with it beyond the common interface.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from lsy_flight_sim.constants import N_MOTORS
from lsy_flight_sim.errors import (
    InvalidIndexError,
    MissingCommandsError,
    UnexpectedCallError,
    check_non_negative,
)
from lsy_flight_sim.sim.events import ActuatorSwap, HFStressKind
from lsy_flight_sim.sim.state import MotorThrusts
from lsy_flight_sim.signals import ActuatorValue, TelemetryChannel
from lsy_flight_sim.utils import clamp

if TYPE_CHECKING:
    from lsy_flight_sim.sim.events import HFStressEvent, SwapEvent
    from lsy_flight_sim.sim.params import QuadrotorParams
    from lsy_flight_sim.sim.state import MotorMaxThrusts, TimeStep, WorldStore, WorldTime

logger = logging.getLogger(__name__)


class ActuatorEngine(ABC):
    """Common interface of all actuator engines."""

    @abstractmethod
    def update(self, time: WorldTime):
        """Advance the motor dynamics by one time step."""

    @abstractmethod
    def apply(self, values: list[ActuatorValue], time: WorldTime):
        """Set new commanded values. Every channel must be commanded on each call."""

    @abstractmethod
    def telemetry_snapshot(self) -> tuple[TelemetryChannel, ...]:
        """Current measured output per named channel."""


class QuadActuatorEngine(ActuatorEngine):
    """Four motors with a shared first-order lag ``f += (cmd - f) * dt / tau``."""

    def __init__(
        self,
        store: WorldStore,
        params: QuadrotorParams,
        dt: TimeStep,
        max_thrusts: MotorMaxThrusts | None = None,
    ):
        """Initialize the engine.

        Args:
            store: The world store whose motor thrusts the engine writes.
            params: The robot parameters providing the motor time constant.
            dt: The fixed time step.
            max_thrusts: Per-motor limits. Defaults to the robot's uniform max thrust.
        """
        self.store = store
        self.params = params
        self.dt = dt
        self.max_thrusts = max_thrusts or params.max_thrusts
        self._commanded = store.motor_thrusts

    def update(self, time: WorldTime):
        alpha = self.dt.delta / self.params.motor_time_constant
        pairs = zip(self.store.motor_thrusts.values, self._commanded.values)
        self.store.motor_thrusts = MotorThrusts(
            *(self._clamp(f + (c - f) * alpha, i) for i, (f, c) in enumerate(pairs))
        )

    def apply(self, values: list[ActuatorValue], time: WorldTime):
        """Set the commanded thrust of all four motors.

        Args:
            values: One value per motor. Values are clamped to the motor limits.
            time: The time of the current tick.

        Raises:
            MissingCommandsError: Fewer than four distinct motors were commanded.
            InvalidIndexError: A value targets a motor index outside 0..3.
        """
        if len(values) < N_MOTORS:
            raise MissingCommandsError(f"Expected {N_MOTORS} commands, got {len(values)}")
        mapped = {}
        for value in values:
            if not 0 <= value.index < N_MOTORS:
                raise InvalidIndexError(f"Invalid motor index {value.index}")
            mapped[value.index] = self._clamp(value.value, value.index)
        if len(mapped) != N_MOTORS:
            raise MissingCommandsError(f"Commands for motors {sorted(mapped)} only")
        self._commanded = MotorThrusts(*(mapped[i] for i in range(N_MOTORS)))

    def telemetry_snapshot(self) -> tuple[TelemetryChannel, ...]:
        return tuple(
            TelemetryChannel(f"motor{i + 1}", f, "N")
            for i, f in enumerate(self.store.motor_thrusts.values)
        )

    def _clamp(self, value: float, index: int) -> float:
        return clamp(value, 0.0, self.max_thrusts.max_for(index))


class SinglePropActuatorEngine(ActuatorEngine):
    """A single motor on channel 0. The remaining motor thrusts are held at zero."""

    def __init__(self, store: WorldStore, max_thrust: float, time_constant: float, dt: TimeStep):
        self.store = store
        self.max_thrust = check_non_negative(max_thrust, "max_thrust")
        self.time_constant = max(time_constant, 1e-6)
        self.dt = dt
        self._commanded = store.motor_thrusts.f1

    def update(self, time: WorldTime):
        f = self.store.motor_thrusts.f1
        f = f + (self._commanded - f) * (self.dt.delta / self.time_constant)
        self.store.motor_thrusts = MotorThrusts(clamp(f, 0.0, self.max_thrust), 0.0, 0.0, 0.0)

    def apply(self, values: list[ActuatorValue], time: WorldTime):
        """Set the commanded thrust of the single motor.

        Raises:
            MissingCommandsError: No value targets channel 0.
        """
        value = next((v for v in values if v.index == 0), None)
        if value is None:
            raise MissingCommandsError("Missing command for motor 0")
        self._commanded = clamp(value.value, 0.0, self.max_thrust)

    def telemetry_snapshot(self) -> tuple[TelemetryChannel, ...]:
        return (TelemetryChannel("motor1", self.store.motor_thrusts.f1, "N"),)


@dataclass(frozen=True)
class ActuatorDegradation:
    """Scale the max thrust of one motor from ``start_time`` on."""

    motor_index: int
    start_time: float
    max_thrust_scale: float

    def __post_init__(self):
        check_non_negative(self.start_time, "start_time")
        check_non_negative(self.max_thrust_scale, "max_thrust_scale")


class ActuatorDegradationEngine(ActuatorEngine):
    """Weakens one motor of a :class:`QuadActuatorEngine` after the degradation onset."""

    def __init__(self, engine: QuadActuatorEngine, degradation: ActuatorDegradation | None):
        self.engine = engine
        self.degradation = degradation
        self._base_max_thrusts = engine.max_thrusts
        self._degraded = False

    def update(self, time: WorldTime):
        self._apply_degradation(time)
        self.engine.update(time)

    def apply(self, values: list[ActuatorValue], time: WorldTime):
        self._apply_degradation(time)
        self.engine.apply(values, time)

    def telemetry_snapshot(self) -> tuple[TelemetryChannel, ...]:
        return self.engine.telemetry_snapshot()

    def _apply_degradation(self, time: WorldTime):
        if self.degradation is None:
            self.engine.max_thrusts = self._base_max_thrusts
            return
        idx = self.degradation.motor_index
        if not 0 <= idx < N_MOTORS:
            raise InvalidIndexError(f"Invalid degraded motor index {idx}")
        if time.time >= self.degradation.start_time:
            scaled = self._base_max_thrusts.max_for(idx) * self.degradation.max_thrust_scale
            self.engine.max_thrusts = self._base_max_thrusts.setting(idx, scaled)
            if not self._degraded:
                logger.debug(f"Motor {idx} degraded to {scaled:.3f} N at t={time.time:.4f}s")
            self._degraded = True
        else:
            self.engine.max_thrusts = self._base_max_thrusts
            self._degraded = False


@dataclass
class _ChannelModifiers:
    gain: float = 1.0
    lag: float = 1.0
    max_output: float = 1.0
    deadzone: float = 0.0


class SwappableActuatorEngine(ActuatorEngine):
    """Perturbs commands with the active actuator swaps and saturation events.

    Per channel, the gain, lag and max-output scales of overlapping swaps multiply while the
    deadzone takes the largest shift. A lag scale above 1 blends each new value with the previous
    one.
    """

    def __init__(
        self,
        engine: ActuatorEngine,
        base_max_thrusts: MotorMaxThrusts,
        swap_events: list[SwapEvent],
        hf_events: list[HFStressEvent],
    ):
        """Initialize the decorator.

        Args:
            engine: The wrapped engine.
            base_max_thrusts: Unperturbed motor limits used for the max-output scaling.
            swap_events: Swap events. Only actuator swaps are used.
            hf_events: High-frequency stress events. Only actuator saturation events are used.
        """
        self.engine = engine
        self.base_max_thrusts = base_max_thrusts
        self.swap_events = [e for e in swap_events if isinstance(e, ActuatorSwap)]
        self.hf_events = [e for e in hf_events if e.kind == HFStressKind.ACTUATOR_SATURATION]
        self._last_values: dict[int, float] = {}

    def update(self, time: WorldTime):
        self.engine.update(time)

    def apply(self, values: list[ActuatorValue], time: WorldTime):
        self.engine.apply(self._apply_swaps(values, time), time)

    def telemetry_snapshot(self) -> tuple[TelemetryChannel, ...]:
        return self.engine.telemetry_snapshot()

    def _apply_swaps(self, values: list[ActuatorValue], time: WorldTime) -> list[ActuatorValue]:
        modifiers = self._modifiers(time.time)
        adjusted = []
        for value in values:
            mod = modifiers.get(value.index, _ChannelModifiers())
            v = value.value * mod.gain
            if abs(v) < mod.deadzone:
                v = 0.0
            prev = self._last_values.get(value.index, v)
            if mod.lag > 1:
                v = prev + (v - prev) / mod.lag
            v = clamp(v, 0.0, self.base_max_thrusts.max_for(value.index) * mod.max_output)
            self._last_values[value.index] = v
            adjusted.append(ActuatorValue(value.index, v))
        return adjusted

    def _modifiers(self, t: float) -> dict[int, _ChannelModifiers]:
        modifiers: dict[int, _ChannelModifiers] = {}
        for swap in self.swap_events:
            if not swap.is_active(t):
                continue
            mod = modifiers.setdefault(swap.motor_index, _ChannelModifiers())
            mod.gain *= swap.gain_scale
            mod.lag *= swap.lag_scale
            mod.max_output *= swap.max_output_scale
            mod.deadzone = max(mod.deadzone, abs(swap.deadzone_shift))
        for event in self.hf_events:
            if not event.is_active(t):
                continue
            scale = clamp(event.magnitude, 0.0, 1.0)
            for idx in range(N_MOTORS):
                mod = modifiers.setdefault(idx, _ChannelModifiers())
                mod.max_output = min(mod.max_output, scale)
        return modifiers


class UnusedActuatorEngine(ActuatorEngine):
    """Sentinel engine for platforms without actuators. Any call is a wiring error."""

    def update(self, time: WorldTime):
        raise UnexpectedCallError("UnusedActuatorEngine.update called")

    def apply(self, values: list[ActuatorValue], time: WorldTime):
        raise UnexpectedCallError("UnusedActuatorEngine.apply called")

    def telemetry_snapshot(self) -> tuple[TelemetryChannel, ...]:
        raise UnexpectedCallError("UnusedActuatorEngine.telemetry_snapshot called")

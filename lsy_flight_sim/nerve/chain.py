"""Data-driven motor nerve built from the stages of a robot descriptor.

The chain is a small dataflow graph evaluated in declaration order over a table of named signal
values. Drive intents seed the table under the descriptor's drive channel ids. Each stage reads its
input signals and writes its output signals:

* ``direct`` copies its inputs to its outputs.
* ``matrix`` computes ``bias + matrix @ inputs``.
* ``mixer`` applies the "+" quad allocation to (throttle, roll, pitch, yaw).
* ``custom`` is reserved and fails when invoked.

The graph is validated once on construction. Updates only do arithmetic.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.constants import SPIN_DIRECTIONS
from lsy_flight_sim.descriptor import StageType
from lsy_flight_sim.errors import (
    DriveCountMismatchError,
    InvalidMixerParametersError,
    InvalidStageOutputError,
    MissingSignalError,
    MissingStageInputError,
    UnknownSignalError,
    UnsupportedStageError,
)
from lsy_flight_sim.nerve.base import MotorNerve, MotorNerveTrace, apply_reflexes
from lsy_flight_sim.signals import ActuatorValue
from lsy_flight_sim.utils import clamp

if TYPE_CHECKING:
    from lsy_flight_sim.descriptor import ActuatorLimits, MotorNerveStage, RobotDescriptor
    from lsy_flight_sim.nerve.base import NerveTelemetry
    from lsy_flight_sim.signals import DriveIntent, ReflexCorrection
    from lsy_flight_sim.sim.state import WorldTime

logger = logging.getLogger(__name__)


def parse_spin(stage: MotorNerveStage) -> tuple[float, float, float, float]:
    """Spin signs from the stage parameter ``spin`` ("a,b,c,d"). Falls back to the default signs."""
    raw = stage.parameters.get("spin")
    if raw is None:
        return SPIN_DIRECTIONS
    try:
        parts = tuple(float(p.strip()) for p in str(raw).split(","))
    except ValueError:
        return SPIN_DIRECTIONS
    return parts if len(parts) == 4 else SPIN_DIRECTIONS


def _validate_stage(stage: MotorNerveStage):
    n_in, n_out = len(stage.inputs), len(stage.outputs)
    if stage.type == StageType.DIRECT and n_in != n_out:
        raise InvalidStageOutputError(
            f"Direct stage '{stage.id}' maps {n_in} inputs to {n_out} outputs"
        )
    if stage.type == StageType.MATRIX:
        mapping = stage.mapping
        if mapping is None or mapping.matrix is None:
            raise InvalidStageOutputError(f"Matrix stage '{stage.id}' has no matrix")
        if len(mapping.matrix) != n_out:
            raise InvalidStageOutputError(
                f"Matrix stage '{stage.id}' has {len(mapping.matrix)} rows for {n_out} outputs"
            )
        if any(len(row) != n_in for row in mapping.matrix):
            raise InvalidStageOutputError(
                f"Matrix stage '{stage.id}' rows do not match its {n_in} inputs"
            )
        if mapping.bias is not None and len(mapping.bias) != n_out:
            raise InvalidStageOutputError(
                f"Matrix stage '{stage.id}' has {len(mapping.bias)} biases for {n_out} outputs"
            )
    if stage.type == StageType.MIXER and (n_in != 4 or n_out != 4):
        raise InvalidMixerParametersError(
            f"Mixer stage '{stage.id}' needs 4 inputs and 4 outputs, got {n_in} and {n_out}"
        )


class MotorNerveChain(MotorNerve):
    """Motor nerve that executes the ordered stages of a :class:`RobotDescriptor`."""

    def __init__(self, descriptor: RobotDescriptor):
        """Validate the stage graph and prepare the chain.

        Args:
            descriptor: The robot descriptor.

        Raises:
            UnknownSignalError: A stage references a signal the descriptor does not declare.
            MissingStageInputError: A stage reads a signal that no drive channel or earlier stage
                produces.
            InvalidStageOutputError: A direct or matrix stage has inconsistent dimensions.
            InvalidMixerParametersError: A mixer stage does not have 4 inputs and 4 outputs.
        """
        super().__init__()
        self.descriptor = descriptor
        self.stages = descriptor.stages
        self.drive_channels = descriptor.control.drive_channels
        self.drive_clamp = descriptor.control.drive_clamp
        self.actuator_signals = descriptor.signals.actuator
        self.actuator_limits: dict[str, ActuatorLimits] = {}
        for actuator in descriptor.actuators:
            for channel in actuator.channels:
                self.actuator_limits[channel] = actuator.limits
        self.normalized_signals = {
            out for stage in self.stages if stage.type == StageType.MIXER for out in stage.outputs
        }
        self._spins = {s.id: parse_spin(s) for s in self.stages if s.type == StageType.MIXER}
        self._validate()

    def _validate(self):
        declared = self.descriptor.signals.ids() | set(self.drive_channels)
        available = set(self.drive_channels)
        for stage in self.stages:
            for signal in (*stage.inputs, *stage.outputs):
                if signal not in declared:
                    raise UnknownSignalError(
                        f"Stage '{stage.id}' uses undeclared signal '{signal}'"
                    )
            for signal in stage.inputs:
                if signal not in available:
                    raise MissingStageInputError(stage.id, signal)
            _validate_stage(stage)
            available.update(stage.outputs)

    def update(
        self,
        drives: list[DriveIntent],
        corrections: list[ReflexCorrection],
        telemetry: NerveTelemetry,
        time: WorldTime,
    ) -> list[ActuatorValue]:
        """Evaluate the stage graph and read the actuator commands.

        Drives are matched to the drive channels by position. Mixer outputs are treated as
        normalized and rescaled into their actuator's limit range. All actuator outputs are clamped
        to their limits and zeroed while the failsafe is active.

        Args:
            drives: One drive intent per declared drive channel.
            corrections: Reflex corrections applied before the optional drive clamp.
            telemetry: Vehicle feedback.
            time: The time of the current tick.

        Returns:
            One command per declared actuator signal, indexed by the signal index.

        Raises:
            DriveCountMismatchError: The number of drives differs from the number of drive channels.
            MissingSignalError: An actuator signal was not produced by any stage.
            UnsupportedStageError: A custom stage was reached.
        """
        if len(drives) != len(self.drive_channels):
            raise DriveCountMismatchError(len(self.drive_channels), len(drives))
        adjusted = apply_reflexes(drives, corrections)
        values: dict[str, float] = {}
        for channel, drive in zip(self.drive_channels, adjusted):
            activation = drive.activation
            if self.drive_clamp is not None:
                activation = clamp(activation, self.drive_clamp.min, self.drive_clamp.max)
            values[channel] = activation

        for stage in self.stages:
            inputs = [values[signal] for signal in stage.inputs]
            outputs = self._run_stage(stage, inputs)
            if len(outputs) != len(stage.outputs):
                raise InvalidStageOutputError(f"Stage '{stage.id}' produced {len(outputs)} values")
            clip = stage.mapping.clip if stage.mapping is not None else None
            if clip is not None:
                outputs = [clamp(v, clip.min, clip.max) for v in outputs]
            values.update(zip(stage.outputs, outputs))

        u_raw, u_sat, commands = [], [], []
        for signal in self.actuator_signals:
            if signal.id not in values:
                raise MissingSignalError(f"Actuator signal '{signal.id}' was never produced")
            raw = values[signal.id]
            saturated = self._clamp_to_limits(signal.id, self._rescale(signal.id, raw))
            u_raw.append(raw)
            u_sat.append(saturated)
            commands.append(
                ActuatorValue(signal.index, 0.0 if telemetry.failsafe_active else saturated)
            )
        self._last_trace = MotorNerveTrace(
            tuple(u_raw),
            tuple(u_sat),
            tuple(u_sat),
            tuple(c.value for c in commands),
            telemetry.failsafe_active,
        )
        return commands

    def _run_stage(self, stage: MotorNerveStage, inputs: list[float]) -> list[float]:
        match stage.type:
            case StageType.DIRECT:
                return list(inputs)
            case StageType.MATRIX:
                matrix = np.asarray(stage.mapping.matrix, dtype=np.float64)
                bias = stage.mapping.bias or (0.0,) * len(matrix)
                return (np.asarray(bias) + matrix @ np.asarray(inputs)).tolist()
            case StageType.MIXER:
                throttle, roll, pitch, yaw = inputs
                s = self._spins[stage.id]
                return [
                    throttle - pitch + s[0] * yaw,
                    throttle + roll + s[1] * yaw,
                    throttle + pitch + s[2] * yaw,
                    throttle - roll + s[3] * yaw,
                ]
        logger.debug(f"Stage '{stage.id}' of type {stage.type.value} is not supported")
        raise UnsupportedStageError(f"Unsupported stage '{stage.id}' ({stage.type.value})")

    def _rescale(self, signal: str, value: float) -> float:
        limits = self.actuator_limits.get(signal)
        if signal not in self.normalized_signals or limits is None:
            return value
        return limits.min + value * (limits.max - limits.min)

    def _clamp_to_limits(self, signal: str, value: float) -> float:
        limits = self.actuator_limits.get(signal)
        if limits is None:
            return value
        return clamp(value, limits.min, limits.max)

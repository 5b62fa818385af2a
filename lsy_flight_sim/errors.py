"""Error categories raised by the simulation core.

Construction-time errors derive from :class:`ValidationError` and reject malformed values before
they enter the simulation. All other errors abort the current step and are fatal to the run.
"""

from __future__ import annotations

import math


class SimulationError(Exception):
    """Root of all errors raised by the simulation core."""


class ValidationError(SimulationError, ValueError):
    """A value failed validation at construction time."""

    def __init__(self, field: str, message: str | None = None):
        """Initialize the error.

        Args:
            field: Name of the offending field.
            message: Optional description. Defaults to a message derived from the error type.
        """
        self.field = field
        super().__init__(message or f"{type(self).__name__}: {field}")


class NonFiniteValueError(ValidationError):
    """A value is NaN or infinite."""


class NegativeValueError(ValidationError):
    """A value is below zero."""


class NonPositiveValueError(ValidationError):
    """A value is zero or below."""


class InvalidRangeError(ValidationError):
    """A range is out of order or a value lies outside its allowed range."""


class NonFiniteStateError(SimulationError):
    """An integration or control law produced a NaN or infinite result."""


class MissingCommandsError(SimulationError):
    """Fewer actuator commands than required channels were supplied."""


class InvalidIndexError(SimulationError):
    """An actuator or motor index is out of range."""


class UnexpectedCallError(SimulationError):
    """A sentinel component was invoked."""


class DriveCountMismatchError(SimulationError):
    """The number of drive intents does not match the declared drive channels."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} drives, got {actual}")


class MissingSignalError(SimulationError):
    """A declared actuator signal was never produced."""


class UnknownSignalError(SimulationError):
    """A stage references a signal that is not declared in the descriptor."""


class MissingStageInputError(SimulationError):
    """A stage input is not available when the stage runs."""

    def __init__(self, stage: str, signal: str):
        self.stage = stage
        self.signal = signal
        super().__init__(f"Stage '{stage}' is missing input signal '{signal}'")


class InvalidStageOutputError(SimulationError):
    """A stage's outputs do not match its declared output signals."""


class InvalidMixerParametersError(SimulationError):
    """A mixer stage or controller received invalid mixer geometry."""


class UnsupportedStageError(SimulationError):
    """A stage type has no implementation."""


class TierMismatchError(SimulationError):
    """Two logs declare different determinism tiers."""


class ToleranceMissingError(SimulationError):
    """A tier-1 check was requested without tolerances."""


class LogShapeMismatchError(SimulationError):
    """Two logs contain a different number of step records."""


def check_finite(value: float, field: str) -> float:
    """Return ``value`` if it is finite, otherwise raise :class:`NonFiniteValueError`."""
    if not math.isfinite(value):
        raise NonFiniteValueError(field)
    return value


def check_non_negative(value: float, field: str) -> float:
    """Return ``value`` if it is finite and >= 0."""
    check_finite(value, field)
    if value < 0:
        raise NegativeValueError(field)
    return value


def check_positive(value: float, field: str) -> float:
    """Return ``value`` if it is finite and > 0."""
    check_finite(value, field)
    if value <= 0:
        raise NonPositiveValueError(field)
    return value

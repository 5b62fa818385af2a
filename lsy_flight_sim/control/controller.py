"""Base class for controller implementations.

Every controller under test (CUT) must inherit from this class and keep its function signatures. A
controller consumes the sensor samples of one tick and returns either raw actuator values
(:class:`~lsy_flight_sim.signals.ActuatorOutput`) that bypass the motor nerve, or drive intents plus
reflex corrections (:class:`~lsy_flight_sim.signals.DriveOutput`) that the motor nerve allocates.

Note:
    Sensor fields may return no samples while their delay buffer fills, and faulted fields may drop
    individual channels. Controllers keep the last received value of each channel.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lsy_flight_sim.signals import ChannelSample, CutOutput
    from lsy_flight_sim.sim.state import WorldTime


class BaseController(ABC):
    """Base class for controller implementations."""

    @abstractmethod
    def update(self, samples: list[ChannelSample], time: WorldTime) -> CutOutput:
        """Compute the control output of the current tick.

        Args:
            samples: The sensor samples of the tick. May be empty.
            time: The time of the current tick.

        Returns:
            Either the raw actuator values or the drive intents with reflex corrections.
        """

    def reset(self):
        """Reset internal variables if necessary."""

"""Motor nerves allocate controller drive intents to actuator commands.

* :class:`~.MotorNerve`: The abstract base class defining the interface for all motor nerves.
* :class:`~.FixedQuadMotorNerve` and :class:`~.FixedSinglePropMotorNerve`: Fixed allocation laws
  with rate limiting, smoothing and a failsafe.
* :class:`~.DirectMotorNerve` and :class:`~.LiftMotorNerve`: Stateless pass-through allocations.
* :class:`~.MotorNerveChain`: A data-driven allocation defined by a robot descriptor.
"""

from lsy_flight_sim.nerve.base import (
    MotorNerve,
    MotorNerveTrace,
    NerveTelemetry,
    UnusedMotorNerve,
    apply_reflexes,
)
from lsy_flight_sim.nerve.chain import MotorNerveChain
from lsy_flight_sim.nerve.fixed import (
    FixedQuadMotorNerve,
    FixedQuadNerveConfig,
    FixedSinglePropMotorNerve,
    FixedSinglePropNerveConfig,
)
from lsy_flight_sim.nerve.simple import DirectMotorNerve, LiftMotorNerve

__all__ = [
    "DirectMotorNerve",
    "FixedQuadMotorNerve",
    "FixedQuadNerveConfig",
    "FixedSinglePropMotorNerve",
    "FixedSinglePropNerveConfig",
    "LiftMotorNerve",
    "MotorNerve",
    "MotorNerveChain",
    "MotorNerveTrace",
    "NerveTelemetry",
    "UnusedMotorNerve",
    "apply_reflexes",
]

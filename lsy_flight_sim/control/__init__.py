"""Controllers under test.

* :class:`~.BaseController`: The abstract base class defining the interface for all controllers.
* :class:`~.ImuRateDampingCut`: Tilt and rate damping that commands motor thrusts directly.
* :class:`~.ImuRateDampingDriveCut`: Tilt and rate damping with drive intents and fall recovery.
* :class:`~.SinglePropHoverCut` and :class:`~.SinglePropLiftCut`: Throttle laws of the single-rotor
  platform.
"""

from lsy_flight_sim.control.controller import BaseController
from lsy_flight_sim.control.estimator import TiltEstimator
from lsy_flight_sim.control.rate_damping import (
    ImuRateDampingCut,
    ImuRateDampingDriveCut,
    RateDampingGains,
)
from lsy_flight_sim.control.single_prop import SinglePropHoverCut, SinglePropLiftCut

__all__ = [
    "BaseController",
    "ImuRateDampingCut",
    "ImuRateDampingDriveCut",
    "RateDampingGains",
    "SinglePropHoverCut",
    "SinglePropLiftCut",
    "TiltEstimator",
]

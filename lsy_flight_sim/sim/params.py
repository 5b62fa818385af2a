"""Physical parameters of the simulated robot and its environment.

The preferred way to create the parameter objects is from the ``[drone]`` and ``[environment]``
sections of a scenario config with the ``from_config`` constructors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.constants import (
    AIR_GAS_CONSTANT,
    GRAVITY,
    SEA_LEVEL_DENSITY,
    SEA_LEVEL_PRESSURE,
    SEA_LEVEL_TEMPERATURE,
)
from lsy_flight_sim.errors import check_finite, check_non_negative, check_positive
from lsy_flight_sim.sim.state import MotorMaxThrusts

if TYPE_CHECKING:
    from ml_collections import ConfigDict
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


@dataclass
class AerodynamicsParams:
    """Coefficients of the drag, lift, buoyancy and angular drag model."""

    drag_coefficient: float = 1.1
    reference_area: float = 0.05  # m^2
    lift_coefficient: float = 0.2
    volume: float = 0.003  # m^3
    angular_drag: NDArray[np.floating] = field(default_factory=lambda: np.array([0.02, 0.02, 0.04]))

    def __post_init__(self):
        check_non_negative(self.drag_coefficient, "drag_coefficient")
        check_non_negative(self.reference_area, "reference_area")
        check_non_negative(self.lift_coefficient, "lift_coefficient")
        check_non_negative(self.volume, "volume")
        self.angular_drag = np.asarray(self.angular_drag, dtype=np.float64)
        assert self.angular_drag.shape == (3,), "angular_drag must have shape (3,)"
        for c in self.angular_drag:
            check_non_negative(float(c), "angular_drag")

    @staticmethod
    def from_config(config: ConfigDict | None) -> AerodynamicsParams:
        """Create the coefficients from a config section. Missing keys use the baseline."""
        if config is None:
            return AerodynamicsParams()
        defaults = AerodynamicsParams()
        return AerodynamicsParams(
            drag_coefficient=config.get("drag_coefficient", defaults.drag_coefficient),
            reference_area=config.get("reference_area", defaults.reference_area),
            lift_coefficient=config.get("lift_coefficient", defaults.lift_coefficient),
            volume=config.get("volume", defaults.volume),
            angular_drag=config.get("angular_drag", defaults.angular_drag),
        )


@dataclass
class QuadrotorParams:
    """Physical parameters of a "+" quadrotor or a single-rotor platform.

    The inertia tensor is diagonal and given by its three principal moments.
    """

    mass: float = 1.0
    inertia: NDArray[np.floating] = field(default_factory=lambda: np.array([0.005, 0.005, 0.009]))
    arm_length: float = 0.12
    motor_time_constant: float = 0.030
    max_thrust: float = 6.0
    yaw_coefficient: float = 0.020
    gravity: float = GRAVITY
    aero: AerodynamicsParams = field(default_factory=AerodynamicsParams)

    def __post_init__(self):
        check_positive(self.mass, "mass")
        self.inertia = np.asarray(self.inertia, dtype=np.float64)
        assert self.inertia.shape == (3,), "inertia must be the diagonal with shape (3,)"
        for i in self.inertia:
            check_positive(float(i), "inertia")
        check_positive(self.arm_length, "arm_length")
        check_positive(self.motor_time_constant, "motor_time_constant")
        check_non_negative(self.max_thrust, "max_thrust")
        check_finite(self.yaw_coefficient, "yaw_coefficient")
        check_non_negative(self.gravity, "gravity")

    @property
    def max_thrusts(self) -> MotorMaxThrusts:
        """Per-motor thrust limits."""
        return MotorMaxThrusts.uniform(self.max_thrust)

    @property
    def hover_thrust(self) -> float:
        """Thrust per motor that balances gravity with four motors."""
        return self.mass * self.gravity / 4.0

    @staticmethod
    def from_config(config: ConfigDict) -> QuadrotorParams:
        """Create the parameters from the ``[drone]`` section of a scenario config."""
        defaults = QuadrotorParams()
        return QuadrotorParams(
            mass=config.get("mass", defaults.mass),
            inertia=config.get("inertia", defaults.inertia),
            arm_length=config.get("arm_length", defaults.arm_length),
            motor_time_constant=config.get("motor_time_constant", defaults.motor_time_constant),
            max_thrust=config.get("max_thrust", defaults.max_thrust),
            yaw_coefficient=config.get("yaw_coefficient", defaults.yaw_coefficient),
            gravity=config.get("gravity", defaults.gravity),
            aero=AerodynamicsParams.from_config(config.get("aero")),
        )


@dataclass
class WorldEnvironment:
    """Atmosphere, wind and gravity settings of the simulated world.

    Aerodynamic loads and the air-density scaling of motor forces only apply with the atmosphere
    enabled. Wind only changes the relative air velocity if both the atmosphere and the wind are
    enabled.
    """

    gravity: float | None = None
    use_atmosphere: bool = False
    use_wind: bool = False
    wind: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    pressure: float = SEA_LEVEL_PRESSURE  # Pa
    temperature: float = SEA_LEVEL_TEMPERATURE  # K

    def __post_init__(self):
        if self.gravity is not None:
            check_non_negative(self.gravity, "gravity")
        self.wind = np.asarray(self.wind, dtype=np.float64)
        assert self.wind.shape == (3,), "wind must have shape (3,)"
        for w in self.wind:
            check_finite(float(w), "wind")
        check_positive(self.pressure, "pressure")
        check_positive(self.temperature, "temperature")

    @property
    def air_density(self) -> float:
        """Air density from the ideal gas law in kg/m^3."""
        return self.pressure / (AIR_GAS_CONSTANT * self.temperature)

    @property
    def density_ratio(self) -> float:
        """Ratio of the current air density to sea-level density."""
        return self.air_density / SEA_LEVEL_DENSITY

    @property
    def active_wind(self) -> NDArray[np.floating]:
        """Wind velocity acting on the body. Zero unless atmosphere and wind are enabled."""
        if self.use_atmosphere and self.use_wind:
            return self.wind
        return np.zeros(3)

    def effective_gravity(self, params: QuadrotorParams) -> float:
        """Gravity override of the environment, or the robot's own gravity."""
        return params.gravity if self.gravity is None else self.gravity

    @staticmethod
    def from_config(config: ConfigDict | None) -> WorldEnvironment:
        """Create the environment from the ``[environment]`` section of a scenario config."""
        if config is None:
            return WorldEnvironment()
        env = WorldEnvironment(
            gravity=config.get("gravity", None),
            use_atmosphere=config.get("use_atmosphere", False),
            use_wind=config.get("use_wind", False),
            wind=config.get("wind", [0.0, 0.0, 0.0]),
            pressure=config.get("pressure", SEA_LEVEL_PRESSURE),
            temperature=config.get("temperature", SEA_LEVEL_TEMPERATURE),
        )
        if env.use_wind and not env.use_atmosphere:
            logger.warning("Wind is enabled without atmosphere and has no effect")
        return env

"""Analytical quadrotor model for model-based estimation and control.

:class:`QuadrotorAnalyticalModel` exposes the rigid-body plant as a one-step predictor: an action of
motor thrusts goes in, the 13-dimensional state comes out. The model advances the plant's own world
store, so it must not share a store with a running simulation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.constants import N_MOTORS
from lsy_flight_sim.errors import InvalidIndexError
from lsy_flight_sim.sim.state import DisturbanceState, MotorThrusts, RigidBodyState, WorldTime
from lsy_flight_sim.utils.rotations import quat_to_wxyz

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from lsy_flight_sim.signals import ActuatorValue
    from lsy_flight_sim.sim.physics import PlantEngine
    from lsy_flight_sim.sim.state import StateSnapshot


def snapshot_to_array(snapshot: StateSnapshot) -> NDArray[np.floating]:
    """Flatten a snapshot into [pos, vel, quat (wxyz), ang_vel]."""
    quat = quat_to_wxyz(np.asarray(snapshot.quat))
    return np.concatenate([snapshot.pos, snapshot.vel, quat, snapshot.ang_vel])


class QuadrotorAnalyticalModel:
    """One-step predictor around a :class:`~lsy_flight_sim.sim.physics.PlantEngine`."""

    n_states = 13

    def __init__(self, plant: PlantEngine):
        self.plant = plant
        self._initial_state = RigidBodyState.from_snapshot(plant.snapshot())
        self._initial_thrusts = plant.store.motor_thrusts
        self.time = WorldTime(0, 0.0)

    @property
    def state(self) -> NDArray[np.floating]:
        """Current 13-dimensional state."""
        return snapshot_to_array(self.plant.snapshot())

    def predict(self, action: list[ActuatorValue]) -> NDArray[np.floating]:
        """Apply motor thrusts for one fixed plant step.

        The plant's time step is fixed, so the prediction horizon is always one step. Negative
        thrusts are clipped to zero and motors missing from the action produce no thrust.

        Args:
            action: Thrust per motor index.

        Returns:
            The predicted 13-dimensional state.

        Raises:
            InvalidIndexError: An action targets a motor index outside 0..3.
        """
        thrusts = [0.0] * N_MOTORS
        for value in action:
            if not 0 <= value.index < N_MOTORS:
                raise InvalidIndexError(f"Invalid motor index {value.index}")
            thrusts[value.index] = max(0.0, value.value)
        self.plant.store.motor_thrusts = MotorThrusts(*thrusts)
        self.time = self.time.advanced(self.plant.dt)
        self.plant.integrate(self.time)
        return self.state

    def reset(self):
        """Restore the initial state and thrusts and clear all disturbances."""
        self.time = WorldTime(0, 0.0)
        self.plant.store.state = RigidBodyState.from_snapshot(self._initial_state.snapshot())
        self.plant.store.motor_thrusts = self._initial_thrusts
        self.plant.store.disturbances = DisturbanceState.zero()

"""Physics module for the flight simulation core.

This module provides the rigid-body dynamics of the simulated robot. It includes the "+" quad mixer
that turns motor thrusts into a body force and torque, the aerodynamic loads acting on the body
(drag, lift, buoyancy and angular drag), the rigid-body state derivative, and a 4th-order
Runge-Kutta integrator.

Two plant engines advance the :class:`~lsy_flight_sim.sim.state.WorldStore` by one fixed time step:
the full 6-DoF :class:`PlantEngine` for quadrotors, and the vertical-only
:class:`SinglePropPlantEngine` for single-rotor platforms. The plant is selected with
:class:`PhysicsMode`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, NamedTuple

import numpy as np
from numpy.typing import NDArray

from lsy_flight_sim.constants import SPIN_DIRECTIONS
from lsy_flight_sim.errors import NonFiniteStateError, NonFiniteValueError
from lsy_flight_sim.sim.params import WorldEnvironment
from lsy_flight_sim.sim.state import RigidBodyState, StateDerivative, StateSnapshot
from lsy_flight_sim.utils.rotations import IDENTITY_QUAT, quat_derivative, rotate

if TYPE_CHECKING:
    from lsy_flight_sim.sim.params import QuadrotorParams
    from lsy_flight_sim.sim.state import MotorThrusts, TimeStep, WorldStore, WorldTime

logger = logging.getLogger(__name__)


ForceTorque = NamedTuple("ForceTorque", f=NDArray[np.floating], t=NDArray[np.floating])


class PhysicsMode(str, Enum):
    """Physics implementations enumeration class."""

    QUAD = "quad"  # 6-DoF rigid body with RK4 integration.
    DEFAULT = QUAD  # Default physics mode.
    SINGLE_PROP = "single_prop"  # Vertical-only single-rotor dynamics.


class Loads(NamedTuple):
    """Loads acting on the body during one integration step."""

    force_body: NDArray[np.floating]
    torque_body: NDArray[np.floating]
    force_world: NDArray[np.floating]


@dataclass(frozen=True)
class Mixer:
    """Thrust to force/torque decomposition of a "+" quad layout.

    Motor 1 sits on the -x arm, motor 2 on +y, motor 3 on +x and motor 4 on -y. The spin signs
    select the direction of each motor's reaction torque about the body z axis.
    """

    arm_length: float
    yaw_coefficient: float
    spin: tuple[float, float, float, float] = SPIN_DIRECTIONS

    def mix(self, thrusts: MotorThrusts) -> ForceTorque:
        """Compute the body force and torque produced by the motors.

        Args:
            thrusts: The current thrust of each motor.

        Returns:
            The body-frame force and torque.
        """
        f1, f2, f3, f4 = thrusts.values
        force = np.array([0.0, 0.0, f1 + f2 + f3 + f4])
        tau_x = self.arm_length * (f2 - f4)
        tau_y = self.arm_length * (f3 - f1)
        tau_z = self.yaw_coefficient * sum(s * f for s, f in zip(self.spin, thrusts.values))
        return ForceTorque(force, np.array([tau_x, tau_y, tau_z]))

    @staticmethod
    def from_params(params: QuadrotorParams) -> Mixer:
        """Create the mixer of a robot with the default spin directions."""
        return Mixer(params.arm_length, params.yaw_coefficient)


def aerodynamic_force(
    state: RigidBodyState, params: QuadrotorParams, env: WorldEnvironment, gravity: float
) -> NDArray[np.floating]:
    """World-frame aerodynamic force from drag, lift and buoyancy.

    Drag opposes the velocity relative to the air and grows quadratically with the air speed. Lift
    acts orthogonal to the body-frame air velocity in the plane spanned with the body z axis, and
    buoyancy opposes gravity. Returns zero if the atmosphere is disabled.

    Args:
        state: The current rigid-body state.
        params: The robot parameters.
        env: The world environment.
        gravity: The effective gravity.

    Returns:
        The aerodynamic force in the world frame.
    """
    force = np.zeros(3)
    if not env.use_atmosphere:
        return force
    aero = params.aero
    density = env.air_density
    air_vel = state.vel - env.active_wind
    speed = np.linalg.norm(air_vel)
    if speed > 0 and aero.drag_coefficient > 0 and aero.reference_area > 0:
        drag = 0.5 * density * aero.drag_coefficient * aero.reference_area * speed**2
        force -= drag * air_vel / speed
    if aero.lift_coefficient > 0 and aero.reference_area > 0:
        air_vel_body = rotate(state.quat, air_vel, inverse=True)
        body_speed = np.linalg.norm(air_vel_body)
        if body_speed > 0:
            v_hat = air_vel_body / body_speed
            lift_plane = np.cross(v_hat, np.cross(np.array([0.0, 0.0, 1.0]), v_hat))
            lift_plane_norm = np.linalg.norm(lift_plane)
            if lift_plane_norm > 0:
                lift = 0.5 * density * aero.lift_coefficient * aero.reference_area * body_speed**2
                force += rotate(state.quat, lift_plane / lift_plane_norm * lift)
    if aero.volume > 0:
        force += np.array([0.0, 0.0, gravity * density * aero.volume])
    return force


def angular_drag(state: RigidBodyState, params: QuadrotorParams, env: WorldEnvironment) -> NDArray:
    """Body-frame damping torque linear in the angular velocity."""
    if not env.use_atmosphere:
        return np.zeros(3)
    return params.aero.angular_drag * state.ang_vel


def body_loads(store: WorldStore, params: QuadrotorParams, mixer: Mixer, env: WorldEnvironment):
    """Collect the motor, disturbance and aerodynamic loads acting on the body.

    Args:
        store: The world store holding state, thrusts and disturbances.
        params: The robot parameters.
        mixer: The thrust mixer.
        env: The world environment.

    Returns:
        The body force, body torque and world force as :class:`Loads`.
    """
    gravity = env.effective_gravity(params)
    force_body, torque_body = mixer.mix(store.motor_thrusts)
    if env.use_atmosphere:
        force_body = force_body * env.density_ratio
        torque_body = torque_body * env.density_ratio
    torque_body = torque_body + np.asarray(store.disturbances.torque_body)
    torque_body = torque_body - angular_drag(store.state, params, env)
    force_world = np.asarray(store.disturbances.force_world) + aerodynamic_force(
        store.state, params, env, gravity
    )
    return Loads(force_body, torque_body, force_world)


def derivative(
    state: RigidBodyState, loads: Loads, params: QuadrotorParams, gravity: float
) -> StateDerivative:
    """Rigid-body state derivative.

    Translational acceleration follows Newton's law in the world frame. Angular acceleration follows
    Euler's rigid-body equation with a diagonal inertia tensor, and the orientation follows the
    quaternion kinematics.

    Args:
        state: The state to differentiate.
        loads: The loads, held constant over the step.
        params: The robot parameters.
        gravity: The effective gravity.

    Returns:
        The state derivative.
    """
    force_world = rotate(state.quat, loads.force_body) + loads.force_world
    acc = force_world / params.mass + np.array([0.0, 0.0, -gravity])
    gyro = np.cross(state.ang_vel, params.inertia * state.ang_vel)
    ang_acc = (loads.torque_body - gyro) / params.inertia
    return StateDerivative(state.vel, acc, quat_derivative(state.quat, state.ang_vel), ang_acc)


def rk4(
    state: RigidBodyState, f: Callable[[RigidBodyState], StateDerivative], dt: float
) -> RigidBodyState:
    """Integrate the state over one step with the classic 4th-order Runge-Kutta scheme.

    The orientation is renormalized at every intermediate stage and on the final state.

    Args:
        state: The initial state.
        f: The state derivative function.
        dt: The time step.

    Returns:
        The integrated state.
    """
    k1 = f(state)
    k2 = f(state.applying(k1, dt * 0.5))
    k3 = f(state.applying(k2, dt * 0.5))
    k4 = f(state.applying(k3, dt))
    combined = StateDerivative(*((a + 2 * b + 2 * c + d) for a, b, c, d in zip(k1, k2, k3, k4)))
    return state.applying(combined, dt / 6)


def specific_force_body(
    state: RigidBodyState, loads: Loads, params: QuadrotorParams, gravity: float
) -> NDArray[np.floating]:
    """Acceleration minus gravity in the body frame, as read by an accelerometer."""
    acc = derivative(state, loads, params, gravity).acc
    return rotate(state.quat, acc - np.array([0.0, 0.0, -gravity]), inverse=True)


class PlantEngine:
    """6-DoF rigid-body plant of a "+" quadrotor."""

    def __init__(
        self,
        store: WorldStore,
        params: QuadrotorParams,
        dt: TimeStep,
        env: WorldEnvironment | None = None,
        mixer: Mixer | None = None,
    ):
        """Initialize the plant.

        Args:
            store: The world store that the plant integrates in place.
            params: The robot parameters.
            dt: The fixed integration time step.
            env: The world environment. Defaults to no atmosphere and no wind.
            mixer: The thrust mixer. Defaults to the "+" mixer of ``params``.
        """
        self.store = store
        self.params = params
        self.dt = dt
        self.env = env or WorldEnvironment()
        self.mixer = mixer or Mixer.from_params(params)

    def integrate(self, time: WorldTime):
        """Advance the rigid-body state by one time step.

        Args:
            time: The time of the current tick.

        Raises:
            NonFiniteStateError: The integration produced NaN or infinite values. The store is left
                unchanged.
        """
        gravity = self.env.effective_gravity(self.params)
        loads = body_loads(self.store, self.params, self.mixer, self.env)
        dt = self.dt.delta
        try:
            state = rk4(self.store.state, lambda s: derivative(s, loads, self.params, gravity), dt)
        except NonFiniteValueError as e:
            raise NonFiniteStateError(f"Non-finite {e.field} at step {time.step}") from e
        self.store.state = state

    def snapshot(self) -> StateSnapshot:
        """Copy of the current rigid-body state."""
        return self.store.state.snapshot()


class SinglePropPlantEngine:
    """Vertical-only plant of a single-rotor platform.

    Only the first motor contributes thrust. The state is integrated with semi-implicit Euler, and
    the horizontal motion, orientation and angular velocity are held at zero / identity.
    """

    def __init__(
        self,
        store: WorldStore,
        params: QuadrotorParams,
        dt: TimeStep,
        env: WorldEnvironment | None = None,
    ):
        self.store = store
        self.params = params
        self.dt = dt
        self.env = env or WorldEnvironment()

    def integrate(self, time: WorldTime):
        """Advance the vertical state by one time step.

        Raises:
            NonFiniteStateError: The integration produced NaN or infinite values.
        """
        gravity = self.env.effective_gravity(self.params)
        force_z = self.store.motor_thrusts.f1 + self.store.disturbances.force_world[2]
        acc_z = force_z / self.params.mass - gravity
        vz = self.store.state.vel[2] + acc_z * self.dt.delta
        z = self.store.state.pos[2] + vz * self.dt.delta
        if not (np.isfinite(vz) and np.isfinite(z)):
            raise NonFiniteStateError(f"Non-finite vertical state at step {time.step}")
        self.store.state = RigidBodyState(
            pos=[0.0, 0.0, z], vel=[0.0, 0.0, vz], quat=IDENTITY_QUAT, ang_vel=np.zeros(3)
        )

    def snapshot(self) -> StateSnapshot:
        """Copy of the current rigid-body state."""
        return self.store.state.snapshot()

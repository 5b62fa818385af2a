import numpy as np
import pytest
from ml_collections import ConfigDict

from lsy_flight_sim.constants import GRAVITY
from lsy_flight_sim.errors import NonFiniteStateError, NonPositiveValueError
from lsy_flight_sim.sim.params import QuadrotorParams, WorldEnvironment
from lsy_flight_sim.sim.physics import (
    Mixer,
    PlantEngine,
    SinglePropPlantEngine,
    aerodynamic_force,
)
from lsy_flight_sim.sim.state import (
    DisturbanceState,
    MotorThrusts,
    RigidBodyState,
    TimeStep,
    WorldStore,
    WorldTime,
)


def run_plant(plant, n_steps: int) -> WorldTime:
    t = WorldTime(0, 0.0)
    for _ in range(n_steps):
        plant.integrate(t)
        t = t.advanced(plant.dt)
    return t


@pytest.mark.unit
def test_mixer():
    mixer = Mixer(arm_length=0.1, yaw_coefficient=0.02)
    f, t = mixer.mix(MotorThrusts(1.0, 2.0, 3.0, 4.0))
    assert np.allclose(f, [0.0, 0.0, 10.0])
    assert np.allclose(t, [0.1 * (2.0 - 4.0), 0.1 * (3.0 - 1.0), 0.02 * (1.0 - 2.0 + 3.0 - 4.0)])
    f, t = mixer.mix(MotorThrusts(2.0, 2.0, 2.0, 2.0))
    assert np.allclose(t, 0.0), "Equal thrusts must not produce torque"


@pytest.mark.unit
def test_free_fall():
    params = QuadrotorParams()
    store = WorldStore(state=RigidBodyState(pos=[0.0, 0.0, 10.0]))
    plant = PlantEngine(store, params, TimeStep.from_freq(100))
    t = run_plant(plant, 100)
    # RK4 integrates constant acceleration exactly
    assert store.state.pos[2] == pytest.approx(10.0 - 0.5 * GRAVITY * t.time**2, abs=1e-9)
    assert store.state.vel[2] == pytest.approx(-GRAVITY * t.time, abs=1e-9)
    assert np.allclose(store.state.pos[:2], 0.0)


@pytest.mark.unit
def test_hover_equilibrium():
    params = QuadrotorParams()
    hover = params.hover_thrust
    store = WorldStore(
        state=RigidBodyState(pos=[0.0, 0.0, 1.0]), motor_thrusts=MotorThrusts(*[hover] * 4)
    )
    plant = PlantEngine(store, params, TimeStep.from_freq(500))
    run_plant(plant, 500)
    assert np.allclose(store.state.pos, [0.0, 0.0, 1.0], atol=1e-9)
    assert np.allclose(store.state.ang_vel, 0.0, atol=1e-12)


@pytest.mark.unit
def test_quaternion_stays_normalized():
    params = QuadrotorParams()
    store = WorldStore(state=RigidBodyState(ang_vel=[3.0, -2.0, 5.0]))
    plant = PlantEngine(store, params, TimeStep.from_freq(200))
    for _ in range(400):
        plant.integrate(WorldTime(0, 0.0))
        assert np.linalg.norm(store.state.quat) == pytest.approx(1.0, abs=1e-12)


@pytest.mark.unit
def test_disturbance_torque_spins_body():
    params = QuadrotorParams()
    store = WorldStore(disturbances=DisturbanceState(torque_body=(0.01, 0.0, 0.0)))
    dt = TimeStep.from_freq(500)
    plant = PlantEngine(store, params, dt)
    plant.integrate(WorldTime(0, 0.0))
    assert store.state.ang_vel[0] == pytest.approx(0.01 / params.inertia[0] * dt.delta)


@pytest.mark.unit
def test_non_finite_integration():
    params = QuadrotorParams()
    store = WorldStore(disturbances=DisturbanceState(force_world=(1e308, 0.0, 0.0)))
    store.state.vel[0] = 1e308
    plant = PlantEngine(store, params, TimeStep.from_freq(1))
    before = store.state.snapshot()
    with pytest.raises(NonFiniteStateError):
        plant.integrate(WorldTime(0, 0.0))
    assert store.state.snapshot() == before, "A failed step must leave the store unchanged"


@pytest.mark.unit
def test_drag_opposes_motion():
    params = QuadrotorParams()
    env = WorldEnvironment(use_atmosphere=True)
    params.aero.lift_coefficient = 0.0
    params.aero.volume = 0.0
    state = RigidBodyState(vel=[2.0, 0.0, 0.0])
    force = aerodynamic_force(state, params, env, params.gravity)
    assert force[0] < 0
    assert np.allclose(force[1:], 0.0)
    assert np.allclose(aerodynamic_force(state, params, WorldEnvironment(), params.gravity), 0.0)


@pytest.mark.unit
def test_buoyancy():
    params = QuadrotorParams()
    params.aero.drag_coefficient = 0.0
    params.aero.lift_coefficient = 0.0
    env = WorldEnvironment(use_atmosphere=True)
    force = aerodynamic_force(RigidBodyState(), params, env, params.gravity)
    expected = params.gravity * env.air_density * params.aero.volume
    assert np.allclose(force, [0.0, 0.0, expected])


@pytest.mark.unit
def test_wind_requires_atmosphere():
    env = WorldEnvironment(use_wind=True, wind=[1.0, 0.0, 0.0])
    assert np.allclose(env.active_wind, 0.0)
    env = WorldEnvironment(use_atmosphere=True, use_wind=True, wind=[1.0, 0.0, 0.0])
    assert np.allclose(env.active_wind, [1.0, 0.0, 0.0])
    assert env.density_ratio == pytest.approx(1.0, rel=1e-3)


@pytest.mark.unit
def test_params_from_config():
    config = ConfigDict({"mass": 2.0, "max_thrust": 10.0, "aero": {"volume": 0.0}})
    params = QuadrotorParams.from_config(config)
    assert params.mass == 2.0
    assert params.hover_thrust == pytest.approx(2.0 * GRAVITY / 4)
    assert params.max_thrusts.values == (10.0,) * 4
    assert params.aero.volume == 0.0
    assert params.aero.drag_coefficient == 1.1
    with pytest.raises(NonPositiveValueError):
        QuadrotorParams(mass=0.0)


@pytest.mark.unit
def test_single_prop_plant():
    params = QuadrotorParams(mass=1.0)
    store = WorldStore(motor_thrusts=MotorThrusts(params.gravity, 5.0, 5.0, 5.0))
    plant = SinglePropPlantEngine(store, params, TimeStep.from_freq(100))
    run_plant(plant, 10)
    assert store.state.pos[2] == pytest.approx(0.0, abs=1e-12), "Only motor 1 produces thrust"
    store.motor_thrusts = MotorThrusts(2 * params.gravity, 0.0, 0.0, 0.0)
    run_plant(plant, 10)
    assert store.state.vel[2] > 0
    assert np.allclose(store.state.pos[:2], 0.0)
    assert np.allclose(store.state.quat, [0.0, 0.0, 0.0, 1.0])

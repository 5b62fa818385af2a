import numpy as np
import pytest
from ml_collections import ConfigDict

from lsy_flight_sim.constants import GRAVITY
from lsy_flight_sim.errors import NegativeValueError
from lsy_flight_sim.signals import ChannelSample
from lsy_flight_sim.sim.events import HFStressEvent, SensorSwap
from lsy_flight_sim.sim.params import QuadrotorParams
from lsy_flight_sim.sim.sensors import (
    IMU6NoiseConfig,
    IMU6SensorField,
    SampleDelayBuffer,
    SinglePropIMU6SensorField,
    SwappableSensorField,
)
from lsy_flight_sim.sim.state import MotorThrusts, RigidBodyState, TimeStep, WorldStore, WorldTime

DT = TimeStep.from_freq(500)


def batch(value: float) -> list[ChannelSample]:
    return [ChannelSample(0, value, 0.0)]


def imu(store: WorldStore, noise: IMU6NoiseConfig | None = None, seed: int = 0):
    return IMU6SensorField(store, QuadrotorParams(), DT, noise or IMU6NoiseConfig.zero(), seed)


@pytest.mark.unit
def test_delay_buffer_fifo():
    buffer = SampleDelayBuffer(2)
    assert buffer.push(batch(1.0)) == []
    assert buffer.push(batch(2.0)) == []
    assert buffer.push(batch(3.0)) == batch(1.0)
    assert buffer.push(batch(4.0)) == batch(2.0)
    assert SampleDelayBuffer(0).push(batch(5.0)) == batch(5.0)
    with pytest.raises(NegativeValueError):
        SampleDelayBuffer(-1)


@pytest.mark.unit
def test_noise_config_from_config():
    config = IMU6NoiseConfig.from_config(ConfigDict({"gyro_std": 0.1, "delay_steps": 2}))
    assert config.gyro_std == 0.1
    assert config.delay_steps == 2
    assert IMU6NoiseConfig.from_config(None) == IMU6NoiseConfig.zero()


@pytest.mark.unit
def test_imu_at_rest_measures_gravity_reaction():
    params = QuadrotorParams()
    hover = params.hover_thrust
    store = WorldStore(motor_thrusts=MotorThrusts(*[hover] * 4))
    samples = imu(store).sample(WorldTime(0, 0.0))
    assert [s.index for s in samples] == list(range(6))
    values = np.array([s.value for s in samples])
    assert np.allclose(values[:3], 0.0)
    assert np.allclose(values[3:], [0.0, 0.0, GRAVITY])


@pytest.mark.unit
def test_imu_in_free_fall_measures_zero():
    store = WorldStore(state=RigidBodyState(ang_vel=[0.1, 0.2, 0.3]))
    values = np.array([s.value for s in imu(store).sample(WorldTime(0, 0.0))])
    assert np.allclose(values[:3], [0.1, 0.2, 0.3])
    assert np.allclose(values[3:], 0.0, atol=1e-12)


@pytest.mark.unit
def test_imu_noise_is_seeded():
    noise = IMU6NoiseConfig(gyro_std=0.01, accel_std=0.1, accel_random_walk=0.01)
    a, b, c = imu(WorldStore(), noise, 1), imu(WorldStore(), noise, 1), imu(WorldStore(), noise, 2)
    t = WorldTime(0, 0.0)
    samples_a = [a.sample(t) for _ in range(5)]
    assert samples_a == [b.sample(t) for _ in range(5)]
    assert samples_a != [c.sample(t) for _ in range(5)]


@pytest.mark.unit
def test_imu_delay():
    field = imu(WorldStore(), IMU6NoiseConfig(delay_steps=1))
    assert field.sample(WorldTime(0, 0.0)) == []
    samples = field.sample(WorldTime(1, 0.002))
    assert all(s.timestamp == 0.0 for s in samples)


@pytest.mark.unit
def test_single_prop_imu_channels():
    store = WorldStore(
        state=RigidBodyState(pos=[0.0, 0.0, 1.5], vel=[0.0, 0.0, -0.2]),
        motor_thrusts=MotorThrusts(5.0, 0.0, 0.0, 0.0),
    )
    params = QuadrotorParams(mass=0.5)
    field = SinglePropIMU6SensorField(store, params, DT, IMU6NoiseConfig.zero(), 0)
    samples = {s.index: s.value for s in field.sample(WorldTime(0, 0.0))}
    assert sorted(samples) == list(range(8))
    assert samples[5] == pytest.approx(10.0)
    assert samples[6] == pytest.approx(1.5)
    assert samples[7] == pytest.approx(-0.2)


@pytest.mark.unit
def test_swappable_sensor_gain_and_bias():
    store = WorldStore(state=RigidBodyState(ang_vel=[1.0, 1.0, 1.0]))
    swaps = [SensorSwap(0.0, 1.0, channels=(0,), gain_scale=2.0, bias_shift=0.5)]
    field = SwappableSensorField(imu(store), swaps, [], IMU6NoiseConfig.zero(), 0)
    samples = field.sample(WorldTime(0, 0.0))
    assert samples[0].value == pytest.approx(2.5)
    assert samples[1].value == pytest.approx(1.0)
    late = field.sample(WorldTime(1000, 2.0))
    assert late[0].value == pytest.approx(1.0), "Inactive swaps must not change samples"


@pytest.mark.unit
def test_swappable_sensor_dropout():
    swaps = [SensorSwap(0.0, 1.0, channels=(0, 1, 2, 3, 4, 5), dropout_probability=1.0)]
    field = SwappableSensorField(imu(WorldStore()), swaps, [], IMU6NoiseConfig.zero(), 0)
    assert field.sample(WorldTime(0, 0.0)) == []


@pytest.mark.unit
def test_swappable_sensor_dropout_is_deterministic():
    swaps = [SensorSwap(0.0, 10.0, channels=(0, 1, 2), dropout_probability=0.5)]

    def indices(seed: int) -> list[list[int]]:
        field = SwappableSensorField(imu(WorldStore()), swaps, [], IMU6NoiseConfig.zero(), seed)
        return [[s.index for s in field.sample(WorldTime(k, k * 0.002))] for k in range(20)]

    assert indices(3) == indices(3)


@pytest.mark.unit
def test_swappable_sensor_latency_spike():
    hf_events = [HFStressEvent(0.0, 1.0, kind="latency_spike", magnitude=2.0)]
    field = SwappableSensorField(imu(WorldStore()), [], hf_events, IMU6NoiseConfig.zero(), 0)
    assert field.sample(WorldTime(0, 0.0)) == []
    assert field.sample(WorldTime(1, 0.002)) == []
    assert len(field.sample(WorldTime(2, 0.004))) == 6


@pytest.mark.unit
def test_swappable_sensor_glitch():
    hf_events = [HFStressEvent(0.0, 1.0, kind="sensor_glitch", magnitude=0.3)]
    field = SwappableSensorField(imu(WorldStore()), [], hf_events, IMU6NoiseConfig.zero(), 0)
    samples = field.sample(WorldTime(0, 0.0))
    assert all(abs(s.value) == pytest.approx(0.3) for s in samples)


@pytest.mark.unit
def test_swappable_sensor_drops_extra_channels():
    store = WorldStore()
    base = SinglePropIMU6SensorField(store, QuadrotorParams(), DT, IMU6NoiseConfig.zero(), 0)
    field = SwappableSensorField(base, [], [], IMU6NoiseConfig.zero(), 0)
    assert [s.index for s in field.sample(WorldTime(0, 0.0))] == list(range(6))

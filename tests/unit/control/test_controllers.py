import numpy as np
import pytest
from ml_collections import ConfigDict

from lsy_flight_sim.control import (
    ImuRateDampingCut,
    ImuRateDampingDriveCut,
    RateDampingGains,
    SinglePropHoverCut,
    SinglePropLiftCut,
)
from lsy_flight_sim.control.rate_damping import solve_thrusts
from lsy_flight_sim.errors import InvalidMixerParametersError, NegativeValueError
from lsy_flight_sim.signals import ActuatorOutput, ChannelSample, DriveOutput
from lsy_flight_sim.sim.params import QuadrotorParams
from lsy_flight_sim.sim.physics import Mixer
from lsy_flight_sim.sim.state import WorldTime

T0 = WorldTime(0, 0.0)
GAINS = RateDampingGains(kp=0.8, kd=0.12, yaw_damping=0.05)


def imu_samples(gyro, accel) -> list[ChannelSample]:
    return [ChannelSample(i, v, 0.0) for i, v in enumerate(list(gyro) + list(accel))]


@pytest.mark.unit
def test_solve_thrusts_inverts_mixer():
    mixer = Mixer(arm_length=0.12, yaw_coefficient=0.02)
    torque = np.array([0.05, -0.03, 0.004])
    thrusts = solve_thrusts(10.0, torque, 0.12, 0.02)
    f, t = mixer.mix(thrusts)
    assert f[2] == pytest.approx(10.0)
    assert t == pytest.approx(torque)


@pytest.mark.unit
def test_solve_thrusts_negative():
    with pytest.raises(NegativeValueError):
        solve_thrusts(1.0, np.array([1.0, 0.0, 0.0]), 0.12, 0.02)


@pytest.mark.unit
def test_gains_from_config():
    gains = RateDampingGains.from_config(ConfigDict({"kp": 1.0, "kd": 0.1, "yaw_damping": 0.0}))
    assert gains.hover_thrust_scale == 1.0
    with pytest.raises(NegativeValueError):
        RateDampingGains(kp=-1.0, kd=0.0, yaw_damping=0.0)


@pytest.mark.unit
def test_rate_damping_hover():
    params = QuadrotorParams()
    controller = ImuRateDampingCut.from_params(params, GAINS)
    output = controller.update([], T0)
    assert isinstance(output, ActuatorOutput)
    assert [v.index for v in output.values] == [0, 1, 2, 3]
    assert [v.value for v in output.values] == pytest.approx([params.hover_thrust] * 4)


@pytest.mark.unit
def test_rate_damping_opposes_roll_rate():
    params = QuadrotorParams()
    controller = ImuRateDampingCut.from_params(params, GAINS)
    output = controller.update(imu_samples([1.0, 0.0, 0.0], [0.0, 0.0, 9.81]), T0)
    f1, f2, f3, f4 = (v.value for v in output.values)
    assert f2 < f4, "A positive roll rate must be damped by a negative roll torque"
    assert f1 + f2 + f3 + f4 == pytest.approx(4 * params.hover_thrust)


@pytest.mark.unit
def test_rate_damping_invalid_geometry():
    with pytest.raises(InvalidMixerParametersError):
        ImuRateDampingCut(2.5, GAINS, arm_length=0.12, yaw_coefficient=0.0)
    with pytest.raises(InvalidMixerParametersError):
        ImuRateDampingDriveCut(2.5, GAINS, arm_length=0.0, yaw_coefficient=0.02, max_thrust=6.0)


@pytest.mark.unit
def test_drive_cut_level_hover():
    params = QuadrotorParams()
    controller = ImuRateDampingDriveCut.from_params(params, GAINS)
    output = controller.update(imu_samples([0.0] * 3, [0.0, 0.0, 9.81]), T0)
    assert isinstance(output, DriveOutput)
    assert [d.index for d in output.drives] == [0, 1, 2, 3]
    assert output.drives[0].activation == pytest.approx(params.hover_thrust / params.max_thrust)
    assert [d.activation for d in output.drives[1:]] == pytest.approx([0.0] * 3)
    assert controller.fall_factor() == 0.0


@pytest.mark.unit
def test_drive_cut_fall_boost():
    params = QuadrotorParams()
    controller = ImuRateDampingDriveCut.from_params(params, GAINS, fall_thrust_boost=0.2)
    output = controller.update(imu_samples([0.0] * 3, [0.0] * 3), T0)
    assert controller.fall_factor() == pytest.approx(1.0, abs=1e-5)
    expected = params.hover_thrust * 1.2 / params.max_thrust
    assert output.drives[0].activation == pytest.approx(expected, rel=1e-5)


@pytest.mark.unit
def test_drive_cut_yaw_damping():
    controller = ImuRateDampingDriveCut.from_params(QuadrotorParams(), GAINS)
    output = controller.update(imu_samples([0.0, 0.0, 2.0], [0.0, 0.0, 9.81]), T0)
    assert output.drives[3].activation < 0


@pytest.mark.unit
def test_single_prop_hover_cut():
    controller = SinglePropHoverCut(target_z=1.0, hover_thrust=9.8, max_thrust=12.0)
    below = controller.update([ChannelSample(6, 0.0, 0.0), ChannelSample(7, 0.0, 0.0)], T0)
    assert below.drives[0].activation == pytest.approx(1.0)
    at_target = controller.update([ChannelSample(6, 1.0, 0.0), ChannelSample(7, 0.0, 0.0)], T0)
    assert at_target.drives[0].activation == pytest.approx(9.8 / 12.0)
    rising = controller.update([ChannelSample(7, 1.0, 0.0)], T0)
    assert rising.drives[0].activation == pytest.approx(5.8 / 12.0)
    controller.reset()
    assert controller.altitude == 0.0


@pytest.mark.unit
def test_single_prop_lift_cut():
    controller = SinglePropLiftCut(hover_thrust=6.0, max_thrust=12.0)
    normal = controller.update([ChannelSample(5, 9.8, 0.0)], T0)
    assert normal.drives[0].activation == pytest.approx(0.5)
    falling = controller.update([ChannelSample(5, 0.0, 0.0)], T0)
    assert falling.drives[0].activation == pytest.approx(0.5 * 1.15, rel=1e-5)

from dataclasses import replace
from pathlib import Path

import pytest

from lsy_flight_sim.descriptor import ActuatorLimits, Range, RobotDescriptor
from lsy_flight_sim.errors import (
    DriveCountMismatchError,
    InvalidMixerParametersError,
    InvalidRangeError,
    InvalidStageOutputError,
    MissingSignalError,
    MissingStageInputError,
    UnknownSignalError,
    UnsupportedStageError,
)
from lsy_flight_sim.nerve import MotorNerveChain, NerveTelemetry
from lsy_flight_sim.nerve.chain import parse_spin
from lsy_flight_sim.signals import DriveIntent, ReflexCorrection
from lsy_flight_sim.sim.state import WorldTime
from lsy_flight_sim.utils import load_config

T0 = WorldTime(0, 0.0)
NOMINAL = NerveTelemetry()


def signal(id: str, index: int) -> dict:
    return {"id": id, "index": index}


def quad_descriptor() -> dict:
    return {
        "signals": {
            "drive": [signal(s, i) for i, s in enumerate(("throttle", "roll", "pitch", "yaw"))],
            "actuator": [signal(f"m{i + 1}", i) for i in range(4)],
        },
        "actuators": [
            {"id": "motors", "channels": ["m1", "m2", "m3", "m4"], "limits": {"min": 0, "max": 6}}
        ],
        "control": {"drive_channels": ["throttle", "roll", "pitch", "yaw"]},
        "motor_nerve": {
            "stages": [
                {
                    "id": "mix",
                    "type": "mixer",
                    "inputs": ["throttle", "roll", "pitch", "yaw"],
                    "outputs": ["m1", "m2", "m3", "m4"],
                }
            ]
        },
    }


def matrix_descriptor(matrix: list[list[float]], bias: list[float] | None = None) -> dict:
    mapping = {"matrix": matrix} if bias is None else {"matrix": matrix, "bias": bias}
    return {
        "signals": {
            "drive": [signal("a", 0), signal("b", 1)],
            "actuator": [signal("out", 0)],
        },
        "control": {"drive_channels": ["a", "b"]},
        "motor_nerve": {
            "stages": [
                {
                    "id": "combine",
                    "type": "matrix",
                    "inputs": ["a", "b"],
                    "outputs": ["out"],
                    "mapping": mapping,
                }
            ]
        },
    }


def chain(data: dict) -> MotorNerveChain:
    return MotorNerveChain(RobotDescriptor.from_dict(data))


def drives(*activations: float) -> list[DriveIntent]:
    return [DriveIntent(i, a) for i, a in enumerate(activations)]


@pytest.mark.unit
def test_mixer_stage_rescales_to_limits():
    nerve = chain(quad_descriptor())
    out = nerve.update(drives(0.5, 0.0, 0.0, 0.0), [], NOMINAL, T0)
    assert [v.index for v in out] == [0, 1, 2, 3]
    assert [v.value for v in out] == pytest.approx([3.0] * 4)
    out = nerve.update(drives(0.5, 0.2, 0.0, 0.0), [], NOMINAL, T0)
    assert [v.value for v in out] == pytest.approx([3.0, 4.2, 3.0, 1.8])


@pytest.mark.unit
def test_outputs_clamped_to_limits():
    nerve = chain(quad_descriptor())
    out = nerve.update(drives(1.0, 1.0, 0.0, 0.0), [], NOMINAL, T0)
    assert [v.value for v in out] == pytest.approx([6.0, 6.0, 6.0, 0.0])
    assert nerve.last_trace.u_raw == pytest.approx((1.0, 2.0, 1.0, 0.0))


@pytest.mark.unit
def test_failsafe_zeroes_outputs():
    nerve = chain(quad_descriptor())
    out = nerve.update(drives(0.5, 0.0, 0.0, 0.0), [], NerveTelemetry(True), T0)
    assert all(v.value == 0.0 for v in out)
    assert nerve.last_trace.failsafe_active


@pytest.mark.unit
def test_drive_clamp_after_reflexes():
    data = quad_descriptor()
    data["control"]["constraints"] = {"drive_clamp": [0.0, 0.5]}
    nerve = chain(data)
    corrections = [ReflexCorrection(0, delta=0.4)]
    out = nerve.update(drives(0.4, 0.0, 0.0, 0.0), corrections, NOMINAL, T0)
    assert [v.value for v in out] == pytest.approx([3.0] * 4)


@pytest.mark.unit
def test_custom_spin():
    data = quad_descriptor()
    data["motor_nerve"]["stages"][0]["parameters"] = {"spin": "-1,1,-1,1"}
    nerve = chain(data)
    out = nerve.update(drives(0.5, 0.0, 0.0, 0.1), [], NOMINAL, T0)
    assert [v.value for v in out] == pytest.approx([2.4, 3.6, 2.4, 3.6])


@pytest.mark.unit
def test_parse_spin_fallback():
    stage = RobotDescriptor.from_dict(quad_descriptor()).stages[0]
    assert parse_spin(stage) == (1.0, -1.0, 1.0, -1.0)
    assert parse_spin(replace(stage, parameters={"spin": "1,x,1,1"})) == (1.0, -1.0, 1.0, -1.0)
    assert parse_spin(replace(stage, parameters={"spin": "1,1"})) == (1.0, -1.0, 1.0, -1.0)
    spaced = replace(stage, parameters={"spin": " -1, -1, 1, 1"})
    assert parse_spin(spaced) == (-1.0, -1.0, 1.0, 1.0)


@pytest.mark.unit
def test_matrix_stage():
    nerve = chain(matrix_descriptor([[2.0, -1.0]], bias=[0.5]))
    out = nerve.update(drives(1.0, 0.5), [], NOMINAL, T0)
    assert len(out) == 1
    assert out[0].value == pytest.approx(2.0)


@pytest.mark.unit
def test_matrix_row_mismatch():
    with pytest.raises(InvalidStageOutputError):
        chain(matrix_descriptor([[1.0, 0.0], [0.0, 1.0]]))
    with pytest.raises(InvalidStageOutputError):
        chain(matrix_descriptor([[1.0]]))
    with pytest.raises(InvalidStageOutputError):
        chain(matrix_descriptor([[1.0, 1.0]], bias=[0.0, 0.0]))


@pytest.mark.unit
def test_direct_stage_count_mismatch():
    data = matrix_descriptor([[1.0, 1.0]])
    stage = data["motor_nerve"]["stages"][0]
    stage["type"] = "direct"
    stage.pop("mapping")
    with pytest.raises(InvalidStageOutputError):
        chain(data)


@pytest.mark.unit
def test_mixer_needs_four_signals():
    data = quad_descriptor()
    data["motor_nerve"]["stages"][0]["outputs"] = ["m1", "m2", "m3"]
    with pytest.raises(InvalidMixerParametersError):
        chain(data)


@pytest.mark.unit
def test_unknown_signal():
    data = quad_descriptor()
    data["motor_nerve"]["stages"][0]["inputs"][3] = "collective"
    with pytest.raises(UnknownSignalError):
        chain(data)


@pytest.mark.unit
def test_missing_stage_input():
    data = matrix_descriptor([[1.0, 1.0]])
    data["signals"]["motor_nerve"] = [signal("late", 0)]
    data["motor_nerve"]["stages"][0]["inputs"] = ["a", "late"]
    with pytest.raises(MissingStageInputError):
        chain(data)


@pytest.mark.unit
def test_drive_count_mismatch():
    nerve = chain(quad_descriptor())
    with pytest.raises(DriveCountMismatchError):
        nerve.update(drives(0.5, 0.0), [], NOMINAL, T0)


@pytest.mark.unit
def test_missing_actuator_signal():
    data = matrix_descriptor([[1.0, 1.0]])
    data["signals"]["actuator"].append(signal("spare", 1))
    nerve = chain(data)
    with pytest.raises(MissingSignalError):
        nerve.update(drives(0.1, 0.1), [], NOMINAL, T0)


@pytest.mark.unit
def test_custom_stage_fails_when_invoked():
    data = matrix_descriptor([[1.0, 1.0]])
    data["motor_nerve"]["stages"][0]["type"] = "custom"
    nerve = chain(data)
    with pytest.raises(UnsupportedStageError):
        nerve.update(drives(0.1, 0.1), [], NOMINAL, T0)


@pytest.mark.unit
def test_invalid_limits():
    data = quad_descriptor()
    data["actuators"][0]["limits"] = {"min": 6, "max": 0}
    with pytest.raises(InvalidRangeError):
        chain(data)


@pytest.mark.unit
def test_descriptor_from_config():
    config = load_config(Path(__file__).parents[3] / "config/chain.toml")
    nerve = MotorNerveChain(RobotDescriptor.from_dict(config.descriptor))
    assert [s.id for s in nerve.stages] == ["attitude_gain", "mix"]
    out = nerve.update(drives(0.5, 0.0, 0.0, 0.0), [], NOMINAL, T0)
    assert [v.value for v in out] == pytest.approx([3.0] * 4)
    descriptor = nerve.descriptor
    assert descriptor.actuators[0].limits == ActuatorLimits(0.0, 6.0)
    gain, mix = descriptor.stages
    assert gain.mapping.matrix == ((1.0, 0.0), (0.0, 1.0))
    assert gain.mapping.clip == Range(-1.0, 1.0)
    assert mix.mapping.clip == Range(0.0, 1.0)
    assert mix.parameters == {"spin": "1,-1,1,-1"}

import pytest

from lsy_flight_sim.descriptor import (
    ActuatorLimits,
    Control,
    MotorNerveStage,
    Range,
    RobotDescriptor,
    Signals,
    StageType,
)
from lsy_flight_sim.errors import InvalidRangeError, NonFiniteValueError


@pytest.mark.unit
def test_range():
    assert Range.parse([0, 1]) == Range(0.0, 1.0)
    assert Range.parse({"min": -1, "max": 1}) == Range(-1.0, 1.0)
    assert Range.parse(None) is None
    with pytest.raises(InvalidRangeError):
        Range(1.0, 0.0)
    with pytest.raises(NonFiniteValueError):
        Range(0.0, float("inf"))
    with pytest.raises(InvalidRangeError):
        ActuatorLimits(min=2.0, max=1.0)


@pytest.mark.unit
def test_signals():
    signals = Signals.from_dict(
        {"drive": [{"id": "throttle", "index": 0}], "actuator": [{"id": "m1", "index": 0}]}
    )
    assert signals.ids() == {"throttle", "m1"}
    assert signals.drive[0].name == "throttle"
    assert signals.sensor == ()


@pytest.mark.unit
def test_control():
    control = Control.from_dict(
        {"drive_channels": ["a", "b"], "constraints": {"drive_clamp": [-0.5, 0.5]}}
    )
    assert control.drive_channels == ("a", "b")
    assert control.drive_clamp == Range(-0.5, 0.5)
    assert Control.from_dict({"drive_channels": []}).drive_clamp is None


@pytest.mark.unit
def test_stage_type_coercion():
    stage = MotorNerveStage(id="s", type="direct", inputs=["a"], outputs=["b"])
    assert stage.type == StageType.DIRECT
    assert stage.inputs == ("a",)
    with pytest.raises(ValueError):
        MotorNerveStage(id="s", type="neural", inputs=[], outputs=[])


@pytest.mark.unit
def test_descriptor_from_dict():
    descriptor = RobotDescriptor.from_dict(
        {
            "signals": {"drive": [{"id": "a", "index": 0}], "actuator": [{"id": "m", "index": 0}]},
            "actuators": [{"id": "motor", "channels": ["m"], "limits": {"min": 0, "max": 2}}],
            "control": {"drive_channels": ["a"]},
            "motor_nerve": {
                "stages": [
                    {
                        "id": "gain",
                        "type": "matrix",
                        "inputs": ["a"],
                        "outputs": ["m"],
                        "mapping": {"matrix": [[2]], "bias": [0.5], "clip": [0, 1]},
                    }
                ]
            },
        }
    )
    assert descriptor.actuators[0].type == "motor"
    assert descriptor.actuators[0].limits == ActuatorLimits(0, 2)
    mapping = descriptor.stages[0].mapping
    assert mapping.matrix == ((2.0,),)
    assert mapping.bias == (0.5,)
    assert mapping.clip == Range(0.0, 1.0)

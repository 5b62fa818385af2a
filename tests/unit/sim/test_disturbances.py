import math

import pytest
from ml_collections import ConfigDict

from lsy_flight_sim.constants import VIBRATION_FREQ
from lsy_flight_sim.errors import InvalidRangeError, NegativeValueError
from lsy_flight_sim.sim.disturbances import (
    DisturbanceEvent,
    DisturbanceField,
    disturbances_from_config,
)
from lsy_flight_sim.sim.events import (
    ActuatorSwap,
    HFStressEvent,
    HFStressKind,
    SensorSwap,
    hf_events_from_config,
    swaps_from_config,
)
from lsy_flight_sim.sim.state import WorldStore, WorldTime


@pytest.mark.unit
def test_time_window_is_inclusive():
    event = DisturbanceEvent(start_time=1.0, duration=0.5)
    assert not event.is_active(0.999)
    assert event.is_active(1.0)
    assert event.is_active(1.5)
    assert not event.is_active(1.501)


@pytest.mark.unit
def test_event_validation():
    with pytest.raises(NegativeValueError):
        DisturbanceEvent(start_time=-0.1, duration=1.0)
    with pytest.raises(NegativeValueError):
        ActuatorSwap(start_time=0.0, duration=-1.0)
    with pytest.raises(InvalidRangeError):
        SensorSwap(start_time=0.0, duration=1.0, dropout_probability=1.5)
    with pytest.raises(ValueError):
        HFStressEvent(0.0, 1.0, kind="earthquake")


@pytest.mark.unit
def test_overlapping_disturbances_sum():
    store = WorldStore()
    events = [
        DisturbanceEvent(0.0, 1.0, torque_body=(0.1, 0.0, 0.0), force_world=(0.0, 1.0, 0.0)),
        DisturbanceEvent(0.5, 1.0, torque_body=(0.2, 0.0, 0.3)),
    ]
    field = DisturbanceField(store, events, [])
    field.update(WorldTime(0, 0.2))
    assert store.disturbances.torque_body == pytest.approx((0.1, 0.0, 0.0))
    field.update(WorldTime(0, 0.75))
    assert store.disturbances.torque_body == pytest.approx((0.3, 0.0, 0.3))
    assert store.disturbances.force_world == pytest.approx((0.0, 1.0, 0.0))
    field.update(WorldTime(0, 2.0))
    assert field.snapshot().torque_body == (0.0, 0.0, 0.0)


@pytest.mark.unit
def test_stress_torques():
    store = WorldStore()
    hf_events = [
        HFStressEvent(0.0, 1.0, kind=HFStressKind.IMPULSE, magnitude=0.05),
        HFStressEvent(0.0, 1.0, kind=HFStressKind.VIBRATION, magnitude=0.01),
        HFStressEvent(0.0, 1.0, kind=HFStressKind.SENSOR_GLITCH, magnitude=100.0),
    ]
    field = DisturbanceField(store, [], hf_events)
    t = 0.3 / VIBRATION_FREQ
    field.update(WorldTime(0, t))
    expected = 0.05 + 0.01 * math.sin(2 * math.pi * VIBRATION_FREQ * t)
    assert store.disturbances.torque_body == pytest.approx((expected, 0.0, 0.0))


@pytest.mark.unit
def test_events_from_config():
    config = ConfigDict(
        {
            "disturbances": [{"start_time": 0.1, "duration": 0.2, "torque_body": [0.0, 0.1, 0.0]}],
            "swaps": {
                "actuator": [{"start_time": 0.0, "duration": 1.0, "motor_index": 2}],
                "sensor": [{"start_time": 0.0, "duration": 1.0, "channels": [3, 4]}],
            },
            "hf_events": [{"start_time": 0.0, "duration": 0.1, "kind": "impulse"}],
        }
    )
    disturbances = disturbances_from_config(config.disturbances)
    assert disturbances[0].torque_body == (0.0, 0.1, 0.0)
    swaps = swaps_from_config(config.swaps)
    assert isinstance(swaps[0], ActuatorSwap) and swaps[0].motor_index == 2
    assert isinstance(swaps[1], SensorSwap) and swaps[1].channels == (3, 4)
    assert hf_events_from_config(config.hf_events)[0].kind == HFStressKind.IMPULSE
    assert disturbances_from_config(None) == []
    assert swaps_from_config(None) == []
    assert hf_events_from_config(None) == []

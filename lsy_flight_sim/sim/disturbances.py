"""Time-windowed external loads on the rigid body."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.constants import VIBRATION_FREQ
from lsy_flight_sim.errors import check_finite
from lsy_flight_sim.sim.events import HFStressKind, TimeWindow
from lsy_flight_sim.sim.state import DisturbanceState

if TYPE_CHECKING:
    from ml_collections import ConfigDict

    from lsy_flight_sim.sim.events import HFStressEvent
    from lsy_flight_sim.sim.state import WorldStore, WorldTime


@dataclass(frozen=True)
class DisturbanceEvent(TimeWindow):
    """Constant body torque and world force while the event is active."""

    torque_body: tuple[float, float, float] = (0.0, 0.0, 0.0)
    force_world: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        super().__post_init__()
        for name in ("torque_body", "force_world"):
            value = tuple(float(v) for v in getattr(self, name))
            assert len(value) == 3, f"{name} must have 3 components"
            for v in value:
                check_finite(v, name)
            object.__setattr__(self, name, value)


class DisturbanceField:
    """Sums the loads of all active events into the world store's disturbance state.

    Impulse and vibration stress events act about the body x axis.
    """

    def __init__(
        self, store: WorldStore, events: list[DisturbanceEvent], hf_events: list[HFStressEvent]
    ):
        self.store = store
        self.events = events
        self.hf_events = [
            e for e in hf_events if e.kind in (HFStressKind.IMPULSE, HFStressKind.VIBRATION)
        ]

    def update(self, time: WorldTime):
        """Replace the disturbance state with the loads active at ``time``."""
        t = time.time
        torque, force = np.zeros(3), np.zeros(3)
        for event in self.events:
            if event.is_active(t):
                torque += event.torque_body
                force += event.force_world
        for event in self.hf_events:
            if not event.is_active(t):
                continue
            if event.kind == HFStressKind.IMPULSE:
                torque[0] += event.magnitude
            else:
                torque[0] += math.sin(2.0 * math.pi * VIBRATION_FREQ * t) * event.magnitude
        self.store.disturbances = DisturbanceState(force_world=force, torque_body=torque)

    def snapshot(self) -> DisturbanceState:
        """Current disturbance state."""
        return self.store.disturbances


def disturbances_from_config(config: ConfigDict | list | None) -> list[DisturbanceEvent]:
    """Create the events of the ``[[disturbances]]`` config list."""
    if config is None:
        return []
    return [DisturbanceEvent(**dict(e)) for e in config]

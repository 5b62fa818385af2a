"""Deterministic flight simulation.

This module wires the components of one simulation run around a shared
:class:`~lsy_flight_sim.sim.state.WorldStore` and advances them tick by tick. Each tick executes:

1. The disturbance field updates the disturbance state.
2. The controller reads the sensor samples of the previous tick and emits actuator values or drive
   intents.
3. The motor nerve allocates drive intents to actuator commands.
4. The actuator engine applies the commands and updates the motor thrusts.
5. The plant integrates the rigid-body state.
6. The sensor field synthesizes the samples for the next tick.

Every tick is recorded in a :class:`~lsy_flight_sim.replay.SimulationLog` that can be certified
against a replay with the :class:`~lsy_flight_sim.replay.ReplayChecker`.

:func:`build_simulation` creates a complete simulation from a scenario config loaded with
:func:`~lsy_flight_sim.utils.load_config`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from lsy_flight_sim.control import (
    ImuRateDampingCut,
    ImuRateDampingDriveCut,
    RateDampingGains,
    SinglePropHoverCut,
    SinglePropLiftCut,
)
from lsy_flight_sim.descriptor import RobotDescriptor
from lsy_flight_sim.errors import SimulationError
from lsy_flight_sim.nerve import (
    FixedQuadMotorNerve,
    FixedQuadNerveConfig,
    FixedSinglePropMotorNerve,
    FixedSinglePropNerveConfig,
    LiftMotorNerve,
    MotorNerveChain,
    NerveTelemetry,
    UnusedMotorNerve,
)
from lsy_flight_sim.replay import DeterminismConfig, SimulationLog, StepRecord
from lsy_flight_sim.signals import ActuatorOutput
from lsy_flight_sim.sim.actuators import (
    ActuatorDegradation,
    ActuatorDegradationEngine,
    QuadActuatorEngine,
    SinglePropActuatorEngine,
    SwappableActuatorEngine,
)
from lsy_flight_sim.sim.disturbances import DisturbanceField, disturbances_from_config
from lsy_flight_sim.sim.events import HFStressEvent, hf_events_from_config, swaps_from_config
from lsy_flight_sim.sim.params import QuadrotorParams, WorldEnvironment
from lsy_flight_sim.sim.physics import Mixer, PhysicsMode, PlantEngine, SinglePropPlantEngine
from lsy_flight_sim.sim.sensors import (
    IMU6NoiseConfig,
    IMU6SensorField,
    SinglePropIMU6SensorField,
    SwappableSensorField,
)
from lsy_flight_sim.sim.state import RigidBodyState, TimeStep, WorldStore, WorldTime
from lsy_flight_sim.utils import config_hash

if TYPE_CHECKING:
    from ml_collections import ConfigDict

    from lsy_flight_sim.control import BaseController
    from lsy_flight_sim.nerve import MotorNerve
    from lsy_flight_sim.sim.actuators import ActuatorEngine
    from lsy_flight_sim.sim.events import TimeWindow
    from lsy_flight_sim.sim.sensors import SensorField

logger = logging.getLogger(__name__)


def event_name(event: TimeWindow, index: int) -> str:
    """Stable label of a scheduled event for the step log."""
    if isinstance(event, HFStressEvent):
        return f"{event.kind.value}:{index}"
    return f"{type(event).__name__}:{index}"


class Simulation:
    """One deterministic simulation run over a shared world store."""

    def __init__(
        self,
        store: WorldStore,
        dt: TimeStep,
        disturbances: DisturbanceField,
        controller: BaseController,
        nerve: MotorNerve,
        actuators: ActuatorEngine,
        plant: PlantEngine | SinglePropPlantEngine,
        sensors: SensorField,
        scenario_id: str = "default",
        seed: int = 0,
        determinism: DeterminismConfig | None = None,
        config_digest: str = "",
        schedule: list[TimeWindow] | None = None,
    ):
        """Initialize the simulation.

        All components must operate on ``store``.

        Args:
            store: The world store of the run.
            dt: The fixed time step.
            disturbances: The disturbance field.
            controller: The controller under test.
            nerve: The motor nerve. Unused if the controller commands actuators directly.
            actuators: The actuator engine.
            plant: The plant engine.
            sensors: The sensor field.
            scenario_id: Scenario id of the log.
            seed: Seed of the log.
            determinism: Determinism tag of the log. Defaults to the tier-1 baseline.
            config_digest: Hash of the scenario config.
            schedule: All scheduled events. Their activity is recorded per step.
        """
        self.store = store
        self.dt = dt
        self.disturbances = disturbances
        self.controller = controller
        self.nerve = nerve
        self.actuators = actuators
        self.plant = plant
        self.sensors = sensors
        self.scenario_id = scenario_id
        self.seed = seed
        self.determinism = determinism or DeterminismConfig.tier1_baseline()
        self.config_digest = config_digest
        self.schedule = schedule or []
        self.failsafe_active = False
        self.time = WorldTime(0, 0.0)
        self._pending_samples = []
        self._records: list[StepRecord] = []

    def step(self) -> StepRecord:
        """Advance the simulation by one tick.

        Returns:
            The record of the tick.

        Raises:
            SimulationError: A component failed. The world store is restored to its value before
                the tick and the tick is not recorded.
        """
        checkpoint = self.store.checkpoint()
        try:
            record = self._tick(self.time)
        except SimulationError as e:
            self.store.restore(checkpoint)
            logger.error(f"Step {self.time.step} failed: {e}")
            raise
        self._records.append(record)
        self.time = self.time.advanced(self.dt)
        return record

    def _tick(self, time: WorldTime) -> StepRecord:
        self.disturbances.update(time)
        samples = self._pending_samples
        output = self.controller.update(samples, time)
        if isinstance(output, ActuatorOutput):
            commands = list(output.values)
        else:
            telemetry = NerveTelemetry(failsafe_active=self.failsafe_active)
            commands = self.nerve.update(
                list(output.drives), list(output.corrections), telemetry, time
            )
        self.actuators.apply(commands, time)
        self.actuators.update(time)
        self.plant.integrate(time)
        self._pending_samples = self.sensors.sample(time)
        return StepRecord(
            time=time,
            events=self._active_events(time.time),
            state=self.plant.snapshot(),
            disturbances=self.disturbances.snapshot(),
            actuator_values=tuple(commands),
            actuator_telemetry=self.actuators.telemetry_snapshot(),
            sensor_samples=tuple(samples),
        )

    def _active_events(self, t: float) -> tuple[str, ...]:
        return tuple(event_name(e, i) for i, e in enumerate(self.schedule) if e.is_active(t))

    def run(self, n_steps: int) -> SimulationLog:
        """Advance the simulation by ``n_steps`` ticks and return the log of the whole run."""
        for _ in range(n_steps):
            self.step()
        return self.log()

    def log(self) -> SimulationLog:
        """Log of all ticks so far."""
        return SimulationLog(
            scenario_id=self.scenario_id,
            seed=self.seed,
            time_step=self.dt,
            config_hash=self.config_digest,
            determinism=self.determinism,
            steps=tuple(self._records),
        )


def _initial_state(config: ConfigDict) -> RigidBodyState:
    init = config.drone.get("init")
    return RigidBodyState(**dict(init)) if init is not None else RigidBodyState()


def _quad_nerve(config: ConfigDict, params: QuadrotorParams) -> MotorNerve:
    nerve_config = config.get("nerve")
    kind = nerve_config.get("type", "fixed") if nerve_config is not None else "fixed"
    match kind:
        case "fixed":
            cfg = FixedQuadNerveConfig.from_config(nerve_config or {}, params.max_thrusts)
            return FixedQuadMotorNerve(cfg)
        case "lift":
            return LiftMotorNerve(params.max_thrusts)
        case "chain":
            return MotorNerveChain(RobotDescriptor.from_dict(config.descriptor))
    raise ValueError(f"Unknown motor nerve type '{kind}'")


def _build_quad(config: ConfigDict, store: WorldStore, dt: TimeStep, seed: int):
    params = QuadrotorParams.from_config(config.drone)
    env = WorldEnvironment.from_config(config.get("environment"))
    mixer = Mixer.from_params(params)
    swaps = swaps_from_config(config.get("swaps"))
    hf_events = hf_events_from_config(config.get("hf_events"))

    gains = RateDampingGains.from_config(config.controller)
    kind = config.controller.get("type", "rate_damping_drive")
    if kind == "rate_damping":
        controller = ImuRateDampingCut.from_params(params, gains)
        nerve = UnusedMotorNerve()
    elif kind == "rate_damping_drive":
        optional = ("fall_accel_threshold", "fall_tilt_bias", "fall_thrust_boost")
        kwargs = {k: config.controller[k] for k in optional if k in config.controller}
        controller = ImuRateDampingDriveCut.from_params(params, gains, **kwargs)
        nerve = _quad_nerve(config, params)
    else:
        raise ValueError(f"Unknown quadrotor controller type '{kind}'")

    actuators = QuadActuatorEngine(store, params, dt)
    degradation = config.get("degradation")
    if degradation is not None:
        actuators = ActuatorDegradationEngine(actuators, ActuatorDegradation(**dict(degradation)))
    actuators = SwappableActuatorEngine(actuators, params.max_thrusts, swaps, hf_events)

    noise = IMU6NoiseConfig.from_config(config.get("sensors"))
    imu = IMU6SensorField(store, params, dt, noise, seed, env=env, mixer=mixer)
    sensors = SwappableSensorField(imu, swaps, hf_events, noise, seed)
    plant = PlantEngine(store, params, dt, env=env, mixer=mixer)
    return controller, nerve, actuators, plant, sensors, [*swaps, *hf_events]


def _build_single_prop(config: ConfigDict, store: WorldStore, dt: TimeStep, seed: int):
    params = QuadrotorParams.from_config(config.drone)
    env = WorldEnvironment.from_config(config.get("environment"))
    hf_events = hf_events_from_config(config.get("hf_events"))
    hover_thrust = params.mass * env.effective_gravity(params)

    kind = config.controller.get("type", "hover")
    if kind == "hover":
        controller = SinglePropHoverCut(
            target_z=config.controller.target_z,
            hover_thrust=hover_thrust,
            max_thrust=params.max_thrust,
            kp=config.controller.get("kp", 6.0),
            kd=config.controller.get("kd", 4.0),
        )
    elif kind == "lift":
        controller = SinglePropLiftCut(hover_thrust, params.max_thrust)
    else:
        raise ValueError(f"Unknown single-rotor controller type '{kind}'")

    nerve_config = config.get("nerve") or {}
    nerve = FixedSinglePropMotorNerve(
        FixedSinglePropNerveConfig(
            max_thrust=params.max_thrust,
            rate_limit=nerve_config.get("rate_limit", 2.0),
            smoothing_time_constant=nerve_config.get("smoothing_time_constant", 0.08),
            base_throttle=nerve_config.get("base_throttle", 0.0),
        )
    )
    actuators = SinglePropActuatorEngine(store, params.max_thrust, params.motor_time_constant, dt)
    noise = IMU6NoiseConfig.from_config(config.get("sensors"))
    sensors = SinglePropIMU6SensorField(store, params, dt, noise, seed, env=env)
    plant = SinglePropPlantEngine(store, params, dt, env=env)
    return controller, nerve, actuators, plant, sensors, hf_events


def build_simulation(config: ConfigDict) -> Simulation:
    """Create a simulation from a scenario config.

    Args:
        config: The scenario config. See ``config/baseline.toml`` for the available sections.

    Returns:
        The simulation, positioned before its first tick.
    """
    sim_config = config.sim
    dt = TimeStep.from_freq(sim_config.freq)
    seed = int(sim_config.get("seed", 0))
    physics = PhysicsMode(sim_config.get("physics", PhysicsMode.DEFAULT))
    store = WorldStore(state=_initial_state(config))
    match physics:
        case PhysicsMode.QUAD:
            parts = _build_quad(config, store, dt, seed)
        case PhysicsMode.SINGLE_PROP:
            parts = _build_single_prop(config, store, dt, seed)
    controller, nerve, actuators, plant, sensors, stress = parts
    disturbance_events = disturbances_from_config(config.get("disturbances"))
    hf_events = [e for e in stress if isinstance(e, HFStressEvent)]
    disturbances = DisturbanceField(store, disturbance_events, hf_events)
    logger.info(
        f"Built {physics.value} simulation '{sim_config.get('scenario_id', 'default')}' "
        f"at {sim_config.freq} Hz with seed {seed}"
    )
    return Simulation(
        store=store,
        dt=dt,
        disturbances=disturbances,
        controller=controller,
        nerve=nerve,
        actuators=actuators,
        plant=plant,
        sensors=sensors,
        scenario_id=sim_config.get("scenario_id", "default"),
        seed=seed,
        determinism=DeterminismConfig.from_config(sim_config.get("determinism")),
        config_digest=config_hash(config),
        schedule=[*disturbance_events, *stress],
    )

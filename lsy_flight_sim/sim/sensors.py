"""Synthetic sensor fields.

The IMU fields derive the true angular rate and specific force from the world store, add per-axis
noise and pass the samples through a fixed-length delay buffer. Channels 0-2 hold the gyro rates and
channels 3-5 the accelerometer readings. The single-rotor IMU additionally reports the altitude
(channel 6) and the vertical velocity (channel 7).

:class:`SwappableSensorField` wraps an IMU field and injects time-windowed faults: gain, bias, extra
noise, dropout and additional delay.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from lsy_flight_sim.constants import N_IMU_CHANNELS
from lsy_flight_sim.errors import NegativeValueError, check_finite, check_non_negative
from lsy_flight_sim.sim.events import HFStressKind, SensorSwap
from lsy_flight_sim.sim.noise import AxisNoiseModel, GaussianNoise, deterministic_uniform
from lsy_flight_sim.sim.params import WorldEnvironment
from lsy_flight_sim.sim.physics import Mixer, body_loads, specific_force_body
from lsy_flight_sim.signals import ChannelSample
from lsy_flight_sim.utils import clamp

if TYPE_CHECKING:
    from ml_collections import ConfigDict

    from lsy_flight_sim.sim.events import HFStressEvent, SwapEvent
    from lsy_flight_sim.sim.params import QuadrotorParams
    from lsy_flight_sim.sim.state import TimeStep, WorldStore, WorldTime

logger = logging.getLogger(__name__)


class SampleDelayBuffer:
    """FIFO delay of ``delay_steps`` sample batches.

    With a delay of k, the first k pushes return no samples and push n returns the batch of push
    n-k.
    """

    def __init__(self, delay_steps: int = 0):
        if delay_steps < 0:
            raise NegativeValueError("delay_steps")
        self.delay_steps = delay_steps
        self._queue: deque[list[ChannelSample]] = deque()

    def push(self, samples: list[ChannelSample]) -> list[ChannelSample]:
        """Push a batch and return the batch that leaves the buffer (possibly empty)."""
        if self.delay_steps == 0:
            return samples
        self._queue.append(samples)
        if len(self._queue) > self.delay_steps:
            return self._queue.popleft()
        return []


@dataclass(frozen=True)
class IMU6NoiseConfig:
    """Noise parameters of a 6-axis IMU, shared by all gyro and all accelerometer axes."""

    gyro_std: float = 0.0
    gyro_bias: float = 0.0
    gyro_random_walk: float = 0.0
    accel_std: float = 0.0
    accel_bias: float = 0.0
    accel_random_walk: float = 0.0
    delay_steps: int = 0

    def __post_init__(self):
        check_non_negative(self.gyro_std, "gyro_std")
        check_finite(self.gyro_bias, "gyro_bias")
        check_non_negative(self.gyro_random_walk, "gyro_random_walk")
        check_non_negative(self.accel_std, "accel_std")
        check_finite(self.accel_bias, "accel_bias")
        check_non_negative(self.accel_random_walk, "accel_random_walk")
        if self.delay_steps < 0:
            raise NegativeValueError("delay_steps")

    @staticmethod
    def zero() -> IMU6NoiseConfig:
        """A noise-free IMU without delay."""
        return IMU6NoiseConfig()

    @staticmethod
    def from_config(config: ConfigDict | None) -> IMU6NoiseConfig:
        """Create the noise config from the ``[sensors]`` section of a scenario config."""
        if config is None:
            return IMU6NoiseConfig()
        return IMU6NoiseConfig(**dict(config))

    def axis_models(self, seed: int) -> tuple[list[AxisNoiseModel], list[AxisNoiseModel]]:
        """Create the gyro and accelerometer axis models. Axis k uses the seed ``seed + k``."""
        gyro = [
            AxisNoiseModel(self.gyro_bias, self.gyro_std, self.gyro_random_walk, seed + k)
            for k in (1, 2, 3)
        ]
        accel = [
            AxisNoiseModel(self.accel_bias, self.accel_std, self.accel_random_walk, seed + k)
            for k in (4, 5, 6)
        ]
        return gyro, accel


class SensorField(ABC):
    """Common interface of all sensor fields."""

    @abstractmethod
    def sample(self, time: WorldTime) -> list[ChannelSample]:
        """Synthesize the samples of the current tick. Empty while the delay buffer fills."""


class IMU6SensorField(SensorField):
    """Noisy 6-axis IMU of a quadrotor."""

    def __init__(
        self,
        store: WorldStore,
        params: QuadrotorParams,
        dt: TimeStep,
        noise: IMU6NoiseConfig,
        seed: int,
        env: WorldEnvironment | None = None,
        mixer: Mixer | None = None,
    ):
        """Initialize the IMU.

        Args:
            store: The world store to measure.
            params: The robot parameters.
            dt: The fixed time step used for the bias random walk.
            noise: The noise configuration.
            seed: The base noise seed.
            env: The world environment. Must match the plant's environment.
            mixer: The thrust mixer. Must match the plant's mixer.
        """
        self.store = store
        self.params = params
        self.dt = dt
        self.noise = noise
        self.env = env or WorldEnvironment()
        self.mixer = mixer or Mixer.from_params(params)
        self._gyro_noise, self._accel_noise = noise.axis_models(seed)
        self._delay_buffer = SampleDelayBuffer(noise.delay_steps)

    def sample(self, time: WorldTime) -> list[ChannelSample]:
        state = self.store.state
        loads = body_loads(self.store, self.params, self.mixer, self.env)
        gravity = self.env.effective_gravity(self.params)
        accel = specific_force_body(state, loads, self.params, gravity)
        return self._delay_buffer.push(self._noisy_samples(state.ang_vel, accel, time))

    def _noisy_samples(self, gyro, accel, time: WorldTime) -> list[ChannelSample]:
        dt = self.dt.delta
        values = [g + n.sample(dt) for g, n in zip(gyro, self._gyro_noise)]
        values += [a + n.sample(dt) for a, n in zip(accel, self._accel_noise)]
        return [ChannelSample(i, float(v), time.time) for i, v in enumerate(values)]


class SinglePropIMU6SensorField(IMU6SensorField):
    """IMU of a single-rotor platform with extra altitude and vertical velocity channels.

    The gyro measures zero rate and the accelerometer only the vertical thrust acceleration.
    """

    def sample(self, time: WorldTime) -> list[ChannelSample]:
        state = self.store.state
        force_z = self.store.motor_thrusts.f1 + self.store.disturbances.force_world[2]
        accel = np.array([0.0, 0.0, force_z / self.params.mass])
        samples = self._noisy_samples(np.zeros(3), accel, time)
        samples.append(ChannelSample(6, float(state.pos[2]), time.time))
        samples.append(ChannelSample(7, float(state.vel[2]), time.time))
        return self._delay_buffer.push(samples)


@dataclass
class _ChannelModifiers:
    gain: float = 1.0
    bias: float = 0.0
    noise_scale: float = 1.0
    dropout: float = 0.0


def _combine_dropout(a: float, b: float) -> float:
    return 1.0 - (1.0 - clamp(a, 0.0, 1.0)) * (1.0 - clamp(b, 0.0, 1.0))


class SwappableSensorField(SensorField):
    """Injects sensor swaps, glitches and latency spikes into the samples of an IMU field.

    Only the six IMU channels are forwarded. Dropout and glitch signs are deterministic draws from
    the seed, the step and the channel, so identical seeds reproduce identical fault patterns.
    """

    def __init__(
        self,
        base: SensorField,
        swap_events: list[SwapEvent],
        hf_events: list[HFStressEvent],
        base_noise: IMU6NoiseConfig,
        seed: int,
    ):
        """Initialize the decorator.

        Args:
            base: The wrapped sensor field.
            swap_events: Swap events. Only sensor swaps are used.
            hf_events: High-frequency stress events. Only glitches and latency spikes are used.
            base_noise: Noise config of the base field. Extra noise scales its standard deviations.
            seed: The fault seed.
        """
        self.base = base
        self.swap_events = [e for e in swap_events if isinstance(e, SensorSwap)]
        self.hf_events = [
            e
            for e in hf_events
            if e.kind in (HFStressKind.SENSOR_GLITCH, HFStressKind.LATENCY_SPIKE)
        ]
        self.base_noise = base_noise
        self.seed = seed
        self._current_delay = 0
        self._delay_buffer = SampleDelayBuffer(0)
        self._noise = [GaussianNoise(1.0, seed + i + 1) for i in range(N_IMU_CHANNELS)]

    def sample(self, time: WorldTime) -> list[ChannelSample]:
        samples = self.base.sample(time)
        if not samples:
            return []
        modifiers, delay = self._modifiers(time)
        if delay != self._current_delay:
            logger.debug(f"Sensor delay {self._current_delay} -> {delay} at step {time.step}")
            self._current_delay = delay
            self._delay_buffer = SampleDelayBuffer(delay)

        updated = []
        for sample in samples:
            idx = sample.index
            if not 0 <= idx < N_IMU_CHANNELS:
                continue
            mod = modifiers[idx]
            if mod.dropout > 0 and self._uniform(time.step, idx) < mod.dropout:
                continue
            value = sample.value * mod.gain + mod.bias
            extra_std = self._extra_std(idx, mod.noise_scale)
            if extra_std > 0:
                self._noise[idx].std = extra_std
                value += self._noise[idx].sample()
            updated.append(ChannelSample(idx, value, sample.timestamp))
        return self._delay_buffer.push(updated)

    def _uniform(self, step: int, channel: int) -> float:
        return deterministic_uniform(self.seed, step, channel)

    def _extra_std(self, idx: int, noise_scale: float) -> float:
        base_std = self.base_noise.gyro_std if idx < 3 else self.base_noise.accel_std
        return base_std * max(0.0, noise_scale - 1.0)

    def _modifiers(self, time: WorldTime) -> tuple[list[_ChannelModifiers], int]:
        modifiers = [_ChannelModifiers() for _ in range(N_IMU_CHANNELS)]
        delay = 0
        for swap in self.swap_events:
            if not swap.is_active(time.time):
                continue
            for idx in swap.channels:
                if idx >= N_IMU_CHANNELS:
                    continue
                mod = modifiers[idx]
                mod.gain *= swap.gain_scale
                mod.bias += swap.bias_shift
                mod.noise_scale *= swap.noise_scale
                mod.dropout = _combine_dropout(mod.dropout, swap.dropout_probability)
            delay = max(0, delay + swap.delay_shift_steps)
        for event in self.hf_events:
            if not event.is_active(time.time):
                continue
            if event.kind == HFStressKind.SENSOR_GLITCH:
                for idx, mod in enumerate(modifiers):
                    sign = -1.0 if self._uniform(time.step + idx, idx) < 0.5 else 1.0
                    mod.bias += sign * event.magnitude
            else:
                delay = max(0, delay + max(1, int(event.magnitude)))
        return modifiers, delay

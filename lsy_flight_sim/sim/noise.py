"""Seeded noise sources for synthetic sensors.

All randomness is drawn from explicitly seeded :func:`numpy.random.default_rng` generators, so that
identical seeds reproduce identical sample sequences bit for bit.
"""

from __future__ import annotations

import math

import numpy as np

from lsy_flight_sim.constants import NOISE_STREAM_OFFSET, UINT64_MASK, WALK_STREAM_MASK
from lsy_flight_sim.errors import check_finite, check_non_negative


class Noise:
    """Base class for scalar noise sources."""

    def __init__(self, seed: int | None = None):
        """Initialize the random number generator.

        Args:
            seed: The seed of the random number generator. If None, the seed is random.
        """
        self.np_random = np.random.default_rng(seed)

    def sample(self) -> float:
        """Draw one sample. By default, no noise is applied."""
        return 0.0

    def seed(self, seed: int | None = None):
        """Set the random number generator seed for the noise for deterministic behaviour.

        Args:
            seed: The seed to set the random number generator to. If None, the seed is random.
        """
        self.np_random = np.random.default_rng(seed)


class GaussianNoise(Noise):
    """Zero-mean Gaussian noise from a Box-Muller transform over uniform draws.

    Each transform yields two independent normal samples. The second one is cached and returned by
    the next call.
    """

    def __init__(self, std: float, seed: int | None = None):
        """Initialize the Gaussian noise.

        Args:
            std: The standard deviation of the distribution.
            seed: The seed of the random number generator.
        """
        super().__init__(seed)
        self.std = check_non_negative(std, "std")
        self._spare: float | None = None

    def sample(self) -> float:
        if self._spare is not None:
            spare, self._spare = self._spare, None
            return spare * self.std
        u1 = max(self.np_random.random(), np.finfo(np.float64).tiny)
        u2 = self.np_random.random()
        radius = math.sqrt(-2.0 * math.log(u1))
        theta = 2.0 * math.pi * u2
        self._spare = radius * math.sin(theta)
        return radius * math.cos(theta) * self.std

    def seed(self, seed: int | None = None):
        super().seed(seed)
        self._spare = None


class AxisNoiseModel:
    """Noise of one sensor axis: a random-walk bias plus white measurement noise.

    The measurement and random-walk streams are derived from the axis seed so that they are
    independent of each other.
    """

    def __init__(self, bias: float, std: float, random_walk: float, seed: int):
        """Initialize the axis model.

        Args:
            bias: The initial bias.
            std: The standard deviation of the measurement noise.
            random_walk: The random walk intensity of the bias per sqrt(second).
            seed: The seed of the axis.
        """
        self.bias = check_finite(bias, "bias")
        self.random_walk = check_non_negative(random_walk, "random_walk")
        self.noise = GaussianNoise(std, (seed + NOISE_STREAM_OFFSET) & UINT64_MASK)
        self.walk_noise = GaussianNoise(1.0, (seed & UINT64_MASK) ^ WALK_STREAM_MASK)

    def sample(self, dt: float) -> float:
        """Advance the bias by ``dt`` seconds and return bias plus measurement noise."""
        if self.random_walk > 0:
            self.bias += self.walk_noise.sample() * self.random_walk * math.sqrt(dt)
        return self.bias + self.noise.sample()


def deterministic_uniform(*keys: int) -> float:
    """Uniform draw in [0, 1) that depends only on the non-negative integer ``keys``.

    Used for per-sample decisions such as dropout, where the draw must be reproducible from the
    seed, the step and the channel alone.
    """
    return float(np.random.default_rng([k & UINT64_MASK for k in keys]).random())

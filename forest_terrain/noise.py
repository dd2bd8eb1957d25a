"""Seeded fractal noise used to displace the terrain heightfield."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from opensimplex import OpenSimplex

# World units are shrunk by this factor before sampling; ``frequency`` is
# applied on top of it as the fBm base frequency.
BASE_SCALE = 0.05
# Vertical world-space amplitude of the normalised noise.
HEIGHT_AMPLITUDE = 100.0
LACUNARITY = 2.0
PERSISTENCE = 0.5


@dataclass(frozen=True)
class NoiseConfig:
    seed: int
    frequency: float
    octaves: int


class NoiseField:
    """Fractal Brownian motion over OpenSimplex, scaled to world heights.

    Octave ``i`` samples an independent simplex source seeded with
    ``seed + i`` at ``frequency * LACUNARITY**i`` and is weighted by
    ``PERSISTENCE**i``. The weighted sum is normalised back into roughly
    ``[-1, 1]`` before being multiplied by :data:`HEIGHT_AMPLITUDE`.
    Sampling is pure: the same inputs always produce the same height.
    """

    def __init__(self, seed: int, frequency: float, octaves: int) -> None:
        if octaves < 1:
            raise ValueError("octaves must be >= 1")
        if frequency <= 0.0:
            raise ValueError("frequency must be positive")
        self._config = NoiseConfig(seed=int(seed), frequency=float(frequency), octaves=int(octaves))
        self._sources: Tuple[OpenSimplex, ...] = tuple(
            OpenSimplex(seed=self._config.seed + octave) for octave in range(self._config.octaves)
        )
        self._weights: Tuple[float, ...] = tuple(PERSISTENCE ** octave for octave in range(self._config.octaves))
        self._scale_factor = 1.0 / sum(self._weights)

    @classmethod
    def from_config(cls, config) -> "NoiseField":
        return cls(config.seed, config.frequency, config.octaves)

    @property
    def config(self) -> NoiseConfig:
        return self._config

    def height_at(self, x: float, z: float) -> float:
        """Return the world-space terrain height above ``(x, z)``."""

        px = float(x) * BASE_SCALE * self._config.frequency
        pz = float(z) * BASE_SCALE * self._config.frequency
        total = 0.0
        for source, weight in zip(self._sources, self._weights):
            total += source.noise2(px, pz) * weight
            px *= LACUNARITY
            pz *= LACUNARITY
        return float(total * self._scale_factor * HEIGHT_AMPLITUDE)

    def height_grid(self, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
        """Sample the lattice spanned by ``xs`` and ``zs``.

        Returns an array of shape ``(len(zs), len(xs))`` whose entry
        ``[j, i]`` equals ``height_at(xs[i], zs[j])``.
        """

        px = np.asarray(xs, dtype=np.float64) * BASE_SCALE * self._config.frequency
        pz = np.asarray(zs, dtype=np.float64) * BASE_SCALE * self._config.frequency
        total = np.zeros((pz.size, px.size), dtype=np.float64)
        for source, weight in zip(self._sources, self._weights):
            total += source.noise2array(px, pz) * weight
            px = px * LACUNARITY
            pz = pz * LACUNARITY
        return total * self._scale_factor * HEIGHT_AMPLITUDE

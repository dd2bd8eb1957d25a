"""Exception types raised by the terrain pipeline."""
from __future__ import annotations


class TerrainError(Exception):
    """Base class for every error raised by :mod:`forest_terrain`."""


class TerrainConfigError(TerrainError, ValueError):
    """Raised when a :class:`~forest_terrain.config.TerrainConfig` is unusable."""


class TangentGenerationError(TerrainError, RuntimeError):
    """Raised when tangents cannot be derived from the mesh UV layout."""


class GenerationFailed(TerrainError):
    """Wraps the exception that aborted a regeneration pass."""

    def __init__(self, generation: int, cause: BaseException) -> None:
        super().__init__(f"Generation {generation} failed: {cause!r}")
        self.generation = generation
        self.cause = cause

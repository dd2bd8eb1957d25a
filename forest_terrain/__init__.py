"""Procedural forest terrain package.

Samples a seeded fractal noise field into a heightfield mesh, scatters
vegetation over it under density, slope and height rules, and keeps both
in sync with a hot-reloadable configuration through a regeneration
controller.
"""

from .vector import Vector3, Quaternion
from .errors import GenerationFailed, TangentGenerationError, TerrainConfigError, TerrainError
from .noise import NoiseField
from .config import (
    ConfigSource,
    JsonFileConfigSource,
    StaticConfigSource,
    TerrainConfig,
    load_terrain_config,
)
from .mesh import HeightSample, HeightfieldMesh, generate_heightfield_mesh
from .placement import PlacementInstance, ScatterRules, scatter
from .assets import AuxiliaryAssetSet
from .scene import MaterialHints, RecordingScene, SceneCollaborator
from .controller import ControllerState, GeneratedTerrain, RegenerationController, generate_terrain

__all__ = [
    "Vector3",
    "Quaternion",
    "TerrainError",
    "TerrainConfigError",
    "TangentGenerationError",
    "GenerationFailed",
    "NoiseField",
    "ConfigSource",
    "StaticConfigSource",
    "JsonFileConfigSource",
    "TerrainConfig",
    "load_terrain_config",
    "HeightSample",
    "HeightfieldMesh",
    "generate_heightfield_mesh",
    "PlacementInstance",
    "ScatterRules",
    "scatter",
    "AuxiliaryAssetSet",
    "MaterialHints",
    "RecordingScene",
    "SceneCollaborator",
    "ControllerState",
    "GeneratedTerrain",
    "RegenerationController",
    "generate_terrain",
]

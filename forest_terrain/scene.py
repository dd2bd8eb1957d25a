"""Scene collaborator interface plus an in-memory implementation."""
from __future__ import annotations

import itertools
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Set

from .mesh import HeightfieldMesh
from .placement import PlacementInstance


# //1.- Render hints handed to the scene alongside the mesh; the core never interprets them.
@dataclass(frozen=True)
class MaterialHints:
    max_steepness: float
    use_depth_map: bool = False
    uv_scale: float = 25.0


class SceneCollaborator(Protocol):
    """Receives generated terrain and owns its renderable representations.

    Handles returned by the spawn methods are opaque to the controller, which
    only hands them back to :meth:`despawn` on the next regeneration.
    :meth:`present` marks the end of an install, the point where the scene
    may be shown. Implementations subclass this protocol explicitly, so one
    missing a spawn or despawn method cannot be constructed.
    """

    @abstractmethod
    def spawn_mesh(self, mesh: HeightfieldMesh, hints: MaterialHints, generation: int) -> Any:
        ...

    @abstractmethod
    def spawn_instance(self, instance: PlacementInstance, variant: Any, generation: int) -> Any:
        ...

    @abstractmethod
    def despawn(self, handle: Any) -> None:
        ...

    def present(self) -> None:
        return


@dataclass(frozen=True)
class SceneEntity:
    kind: str
    generation: int
    payload: Any
    variant: Any = None


class RecordingScene(SceneCollaborator):
    """Scene that keeps spawned entities in a dictionary.

    Every :meth:`present` call records the set of live generations so tests
    and tools can check that no two terrain generations were ever visible at
    the same time.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.entities: Dict[int, SceneEntity] = {}
        self.presented: List[FrozenSet[int]] = []
        self.despawned: int = 0

    def spawn_mesh(self, mesh: HeightfieldMesh, hints: MaterialHints, generation: int) -> int:
        handle = next(self._ids)
        self.entities[handle] = SceneEntity(kind="mesh", generation=generation, payload=mesh, variant=hints)
        return handle

    def spawn_instance(self, instance: PlacementInstance, variant: Any, generation: int) -> int:
        handle = next(self._ids)
        self.entities[handle] = SceneEntity(kind="instance", generation=generation, payload=instance, variant=variant)
        return handle

    def despawn(self, handle: int) -> None:
        del self.entities[handle]
        self.despawned += 1

    def present(self) -> None:
        self.presented.append(frozenset(self.live_generations()))

    def live_generations(self) -> Set[int]:
        return {entity.generation for entity in self.entities.values()}

    def meshes(self) -> List[SceneEntity]:
        return [entity for entity in self.entities.values() if entity.kind == "mesh"]

    def instances(self) -> List[SceneEntity]:
        return [entity for entity in self.entities.values() if entity.kind == "instance"]

    def mesh(self) -> Optional[HeightfieldMesh]:
        meshes = self.meshes()
        return meshes[0].payload if meshes else None

"""Regeneration lifecycle keeping the installed terrain in sync with its config."""
from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .assets import AuxiliaryAssetSet
from .config import ConfigSource, TerrainConfig
from .errors import GenerationFailed
from .mesh import HeightfieldMesh, generate_heightfield_mesh
from .noise import NoiseField
from .placement import PlacementInstance, scatter
from .scene import MaterialHints, SceneCollaborator

LOGGER = logging.getLogger(__name__)


class ControllerState(enum.Enum):
    IDLE = "idle"
    AWAITING_ASSETS = "awaiting_assets"
    GENERATING = "generating"
    INSTALLED = "installed"


# //1.- The atomic unit handed from a generation pass to the scene.
@dataclass(frozen=True)
class GeneratedTerrain:
    generation: int
    config_version: int
    config: TerrainConfig
    mesh: HeightfieldMesh
    instances: Tuple[PlacementInstance, ...]
    hints: MaterialHints
    placed: bool

    def summary(self) -> str:
        return (
            f"Generation {self.generation}: {self.mesh.vertex_count} vertices, "
            f"{self.mesh.triangle_count} triangles, {len(self.instances)} instances"
        )


def material_hints(config: TerrainConfig) -> MaterialHints:
    return MaterialHints(max_steepness=config.max_steepness, use_depth_map=config.use_depth_map)


def generate_terrain(
    config: TerrainConfig,
    variant_count: int,
    *,
    generation: int = 0,
    config_version: int = 0,
) -> GeneratedTerrain:
    """Run a full pass: heightfield mesh first, then scatter over it.

    Pure apart from allocation, so it may run on a worker thread. Placement is
    seeded from ``config.seed`` and sees the mesh after the yaw rotation.
    """

    config.validate()
    noise = NoiseField.from_config(config)
    mesh = generate_heightfield_mesh(
        noise,
        config.half_size,
        with_tangents=config.generate_tangents,
        rotation=config.rotation,
    )
    instances = scatter(mesh.positions, mesh.normals, config, config.seed, variant_count)
    return GeneratedTerrain(
        generation=generation,
        config_version=config_version,
        config=config,
        mesh=mesh,
        instances=tuple(instances),
        hints=material_hints(config),
        placed=variant_count > 0,
    )


def replant_terrain(terrain: GeneratedTerrain, variant_count: int) -> GeneratedTerrain:
    """Re-run only the scatter over an already generated mesh."""

    instances = scatter(terrain.mesh.positions, terrain.mesh.normals, terrain.config, terrain.config.seed, variant_count)
    return GeneratedTerrain(
        generation=terrain.generation,
        config_version=terrain.config_version,
        config=terrain.config,
        mesh=terrain.mesh,
        instances=tuple(instances),
        hints=terrain.hints,
        placed=variant_count > 0,
    )


class _InlineExecutor(Executor):
    """Runs submitted jobs immediately on the calling thread."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # surfaced through Future.result()
            future.set_exception(exc)
        return future


@dataclass
class _Pass:
    serial: int
    generation: int
    placement_only: bool
    variants: Tuple[Any, ...]
    future: Future


class RegenerationController:
    """Owns the installed terrain generation and rebuilds it on demand.

    Call :meth:`start` once, then :meth:`update` every frame (or on a timer).
    ``update`` polls the config source for hot reloads, notices when the
    vegetation variants become ready or are replaced, collects a finished
    pass and installs it, and starts a new pass when one is due. At most
    one pass is in flight. Requests arriving meanwhile coalesce into a
    single follow-up pass built from the newest snapshot, and the in-flight
    result is discarded.

    While the variants are still loading, passes still install a bare mesh
    and the controller reports ``AWAITING_ASSETS``. When the variants arrive
    (or are replaced) and the installed mesh already matches the current
    config, only the scatter is re-run. Instances are spawned from the
    variant snapshot their pass was scattered against.

    Installation always happens inside :meth:`update` on the caller's
    thread. It despawns every artifact of the previous generation and then
    spawns the new one, so the scene never presents two generations at once.
    A pass that raises leaves the previous installation untouched.
    """

    def __init__(
        self,
        config_source: ConfigSource,
        assets: AuxiliaryAssetSet,
        scene: SceneCollaborator,
        *,
        executor: Optional[Executor] = None,
    ) -> None:
        # //2.- Persist collaborators; without an executor passes run inline on ``update``.
        self._config_source = config_source
        self._assets = assets
        self._scene = scene
        self._executor = executor or _InlineExecutor()
        # //3.- Request bookkeeping is touched by config listeners on other threads.
        self._lock = threading.Lock()
        self._serial = 0
        self._dirty = False
        self._needs_mesh = True
        self._assets_seen_ready = False
        self._assets_revision = 0
        self._started = False
        # //4.- Owner-thread state describing what is in flight and what is installed.
        self._state = ControllerState.IDLE
        self._pending: Optional[_Pass] = None
        self._generation = 0
        self._installed: Optional[GeneratedTerrain] = None
        self._mesh_handle: Any = None
        self._instance_handles: List[Any] = []
        self.last_error: Optional[GenerationFailed] = None
        self.discarded_passes = 0
        config_source.subscribe(self._on_config_changed)

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def installed(self) -> Optional[GeneratedTerrain]:
        return self._installed

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._pending is not None or self._dirty

    def start(self) -> ControllerState:
        """Request the initial generation and run the first update."""

        if self._started:
            raise RuntimeError("RegenerationController already started")
        self._started = True
        self._assets_revision = self._assets.revision
        self._assets_seen_ready = self._assets_revision > 0
        if not self._assets_seen_ready:
            LOGGER.info("Vegetation variants pending; terrain will be installed without instances")
            self._state = ControllerState.AWAITING_ASSETS
        self._request(needs_mesh=True)
        return self.update()

    def update(self) -> ControllerState:
        """Advance the state machine by one tick."""

        if not self._started:
            return self._state
        # //5.- Hot reload: a changed file publishes through ``_on_config_changed``.
        self._config_source.poll()
        # //6.- Variants becoming ready or being replaced force a pass so instances match them.
        revision = self._assets.revision
        if revision != self._assets_revision:
            self._assets_revision = revision
            if self._assets_seen_ready:
                LOGGER.info("Vegetation variants changed; scheduling placement")
            else:
                LOGGER.info("Vegetation variants became ready; scheduling placement")
            self._assets_seen_ready = True
            self._request(needs_mesh=False)
        # //7.- Collect a finished pass before considering a new one.
        self._collect()
        # //8.- Start the next pass when one is due; inline passes are collected right away.
        if self._pending is None:
            self._maybe_start_pass()
            self._collect()
        if self._pending is not None:
            self._state = ControllerState.GENERATING
        return self._state

    def settle(self, timeout: float = 30.0, interval: float = 0.005) -> bool:
        """Tick until no pass is in flight or due; returns ``False`` on timeout."""

        deadline = time.monotonic() + timeout
        while True:
            self.update()
            if not self.busy:
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(interval)

    def teardown(self) -> None:
        """Despawn everything this controller installed and return to ``IDLE``."""

        self._despawn_instances()
        if self._mesh_handle is not None:
            self._scene.despawn(self._mesh_handle)
            self._mesh_handle = None
        self._installed = None
        self._pending = None
        with self._lock:
            self._dirty = False
        self._started = False
        self._state = ControllerState.IDLE
        self._scene.present()

    def _on_config_changed(self, _config: TerrainConfig) -> None:
        self._request(needs_mesh=True)

    def _request(self, *, needs_mesh: bool) -> None:
        with self._lock:
            self._serial += 1
            self._dirty = True
            self._needs_mesh = self._needs_mesh or needs_mesh

    def _maybe_start_pass(self) -> None:
        with self._lock:
            if not self._dirty:
                return
            serial = self._serial
            needs_mesh = self._needs_mesh
            self._dirty = False
            self._needs_mesh = False
        version, config = self._config_source.versioned_snapshot()
        _, variants = self._assets.snapshot()
        variant_count = len(variants)
        installed = self._installed
        placement_only = (
            not needs_mesh
            and installed is not None
            and installed.config_version == version
            and installed.config == config
        )
        if placement_only:
            LOGGER.info("Re-running placement over generation %d", installed.generation)
            future = self._executor.submit(replant_terrain, installed, variant_count)
            self._pending = _Pass(serial, installed.generation, True, variants, future)
            return
        self._generation += 1
        generation = self._generation
        LOGGER.info("Starting terrain generation %d", generation)
        future = self._executor.submit(
            generate_terrain,
            config,
            variant_count,
            generation=generation,
            config_version=version,
        )
        self._pending = _Pass(serial, generation, False, variants, future)

    def _collect(self) -> None:
        pending = self._pending
        if pending is not None and pending.future.done():
            self._pending = None
            self._finish(pending)

    def _finish(self, finished: _Pass) -> None:
        try:
            terrain: GeneratedTerrain = finished.future.result()
        except Exception as exc:
            LOGGER.exception("Terrain generation %d failed; keeping previous terrain", finished.generation)
            self.last_error = GenerationFailed(finished.generation, exc)
            self._state = self._resting_state()
            return
        with self._lock:
            superseded = finished.serial != self._serial
        if superseded:
            self.discarded_passes += 1
            LOGGER.warning("Discarding superseded terrain generation %d", finished.generation)
            return
        self._install(terrain, finished.variants, placement_only=finished.placement_only)

    def _install(self, terrain: GeneratedTerrain, variants: Tuple[Any, ...], *, placement_only: bool) -> None:
        # //9.- Tear down the previous artifacts before spawning the replacements.
        self._despawn_instances()
        if not placement_only:
            if self._mesh_handle is not None:
                self._scene.despawn(self._mesh_handle)
            self._mesh_handle = self._scene.spawn_mesh(terrain.mesh, terrain.hints, terrain.generation)
        # Variant indices were drawn against the snapshot taken when the pass started.
        for instance in terrain.instances:
            handle = self._scene.spawn_instance(instance, variants[instance.variant], terrain.generation)
            self._instance_handles.append(handle)
        self._scene.present()
        self._installed = terrain
        self.last_error = None
        if not terrain.placed:
            LOGGER.warning("Vegetation variants not ready yet; generation %d has no instances", terrain.generation)
        LOGGER.info("Installed %s", terrain.summary())
        self._state = self._resting_state()

    def _despawn_instances(self) -> None:
        for handle in self._instance_handles:
            self._scene.despawn(handle)
        self._instance_handles = []

    def _resting_state(self) -> ControllerState:
        if self._installed is not None and self._installed.placed:
            return ControllerState.INSTALLED
        if not self._assets_seen_ready:
            return ControllerState.AWAITING_ASSETS
        if self._installed is None:
            return ControllerState.IDLE
        return ControllerState.INSTALLED

"""Terrain configuration snapshots and hot-reloadable configuration sources."""
from __future__ import annotations

import dataclasses
import json
import logging
import math
import os
import threading
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import TerrainConfigError

LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "FOREST_TERRAIN"
# Seeds are unsigned 32-bit values.
MAX_SEED = 0xFFFFFFFF


# //1.- Immutable snapshot of every knob that drives a generation pass.
@dataclass(frozen=True)
class TerrainConfig:
    """Parameters for one terrain generation pass.

    The terrain spans ``[-half_size, half_size]`` on both horizontal axes and
    is subdivided into ``2 * half_size`` unit cells per axis. ``seed``,
    ``frequency`` and ``octaves`` parameterise the fractal noise. ``density``
    is the probability that an eligible vertex receives a vegetation instance
    and is clamped into ``[0, 1]`` before use. A vertex whose normal deviates
    from vertical by more than ``max_steepness`` (measured as ``|n x up|``)
    is never planted. ``rotation`` yaws the finished mesh about +Y in radians.
    """

    half_size: int = 100
    seed: int = 42
    frequency: float = 1.0
    octaves: int = 6
    density: float = 0.5
    max_steepness: float = 0.5
    rotation: float = 0.0
    use_depth_map: bool = False
    generate_tangents: bool = True

    # //2.- Build a config from loosely typed payloads such as parsed JSON.
    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, Any]] = None) -> "TerrainConfig":
        if not payload:
            return cls()
        known = {item.name: item for item in fields(cls)}
        unknown = sorted(set(payload) - set(known))
        if unknown:
            raise TerrainConfigError(f"Unknown terrain config keys: {', '.join(unknown)}")
        values: Dict[str, Any] = {}
        for name, raw in payload.items():
            values[name] = _coerce(name, known[name].type, raw)
        return cls(**values)

    # //3.- Reject configurations that would produce degenerate or undefined output.
    def validate(self) -> "TerrainConfig":
        if self.half_size <= 0:
            raise TerrainConfigError("half_size must be > 0")
        if not 0 <= self.seed <= MAX_SEED:
            raise TerrainConfigError(f"seed must be in [0, {MAX_SEED}]")
        if self.octaves < 1:
            raise TerrainConfigError("octaves must be >= 1")
        for name in ("frequency", "density", "max_steepness", "rotation"):
            if not math.isfinite(getattr(self, name)):
                raise TerrainConfigError(f"{name} must be finite")
        if self.frequency <= 0.0:
            raise TerrainConfigError("frequency must be > 0")
        if self.density < 0.0:
            raise TerrainConfigError("density must be >= 0")
        if self.max_steepness < 0.0:
            raise TerrainConfigError("max_steepness must be >= 0")
        return self

    @property
    def effective_density(self) -> float:
        return min(max(self.density, 0.0), 1.0)

    @property
    def subdivisions(self) -> int:
        return self.half_size * 2

    def replace(self, **changes: Any) -> "TerrainConfig":
        return dataclasses.replace(self, **changes)

    def as_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def _coerce(name: str, annotation: Any, raw: Any) -> Any:
    # Annotations are strings under ``from __future__ import annotations``.
    kind = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", str(annotation))
    try:
        if kind == "bool":
            if isinstance(raw, str):
                lowered = raw.strip().lower()
                if lowered in {"1", "true", "yes", "on"}:
                    return True
                if lowered in {"0", "false", "no", "off"}:
                    return False
                raise ValueError(raw)
            return bool(raw)
        if kind == "int":
            if isinstance(raw, float) and not raw.is_integer():
                raise ValueError(raw)
            return int(raw)
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise TerrainConfigError(f"Invalid value for {name}: {raw!r}") from exc


def _read_json_config(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise TerrainConfigError(f"Malformed terrain config {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise TerrainConfigError(f"Terrain config {path} must contain a JSON object")
    return payload


def _environment_overrides(prefix: str, env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    source = env if env is not None else os.environ
    overrides: Dict[str, str] = {}
    for item in fields(TerrainConfig):
        value = source.get(f"{prefix}_{item.name.upper()}")
        if value is not None:
            overrides[item.name] = value
    return overrides


# //4.- Canonical accessor combining an optional JSON file with environment overrides.
def load_terrain_config(
    path: Optional[str] = None,
    *,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    env: Optional[Mapping[str, str]] = None,
) -> TerrainConfig:
    payload: Dict[str, Any] = {}
    if path is not None:
        payload.update(_read_json_config(path))
    payload.update(_environment_overrides(env_prefix, env))
    return TerrainConfig.from_mapping(payload).validate()


ConfigListener = Callable[[TerrainConfig], None]


class ConfigSource:
    """Holds the current config snapshot and tells listeners when it changes.

    ``version`` increases by one with every accepted change, which lets
    consumers detect mutations by comparing against the version they last
    consumed.
    """

    def __init__(self, initial: TerrainConfig) -> None:
        self._lock = threading.Lock()
        self._current = initial.validate()
        self._version = 0
        self._listeners: List[ConfigListener] = []

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def snapshot(self) -> TerrainConfig:
        with self._lock:
            return self._current

    def versioned_snapshot(self) -> tuple[int, TerrainConfig]:
        with self._lock:
            return self._version, self._current

    def subscribe(self, listener: ConfigListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def poll(self) -> bool:
        """Check the backing store for changes; returns ``True`` when one was applied."""

        return False

    def _publish(self, config: TerrainConfig) -> None:
        config.validate()
        with self._lock:
            if config == self._current:
                return
            self._current = config
            self._version += 1
            listeners = list(self._listeners)
        LOGGER.info("Terrain config changed: %s", config)
        for listener in listeners:
            listener(config)


class StaticConfigSource(ConfigSource):
    """In-memory source mutated directly by the host application."""

    def __init__(self, initial: Optional[TerrainConfig] = None) -> None:
        super().__init__(initial or TerrainConfig())

    def set(self, config: TerrainConfig) -> None:
        self._publish(config)

    def update(self, **changes: Any) -> TerrainConfig:
        config = self.snapshot().replace(**changes)
        self._publish(config)
        return config


class JsonFileConfigSource(ConfigSource):
    """Hot-reloads a JSON config file whenever its modification time changes.

    A reload that fails to parse or validate is logged and ignored so the last
    valid snapshot stays current.
    """

    def __init__(
        self,
        path: str,
        *,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._path = path
        self._env_prefix = env_prefix
        self._env = env
        self._mtime_ns = self._stat()
        super().__init__(load_terrain_config(path, env_prefix=env_prefix, env=env))

    @property
    def path(self) -> str:
        return self._path

    def _stat(self) -> Optional[int]:
        try:
            return os.stat(self._path).st_mtime_ns
        except FileNotFoundError:
            return None

    def poll(self) -> bool:
        mtime = self._stat()
        if mtime is None or mtime == self._mtime_ns:
            return False
        self._mtime_ns = mtime
        try:
            config = load_terrain_config(self._path, env_prefix=self._env_prefix, env=self._env)
        except (OSError, TerrainConfigError) as exc:
            LOGGER.warning("Ignoring invalid terrain config reload from %s: %s", self._path, exc)
            return False
        before = self.version
        self._publish(config)
        return self.version != before

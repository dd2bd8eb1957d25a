"""Command line harness that generates a terrain and summarises the result."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional, Sequence

from .assets import AuxiliaryAssetSet
from .config import DEFAULT_ENV_PREFIX, StaticConfigSource, load_terrain_config
from .controller import GeneratedTerrain, RegenerationController
from .errors import TerrainConfigError
from .scene import RecordingScene

LOGGER = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    # //1.- Flags mirror the config fields most often tweaked while tuning a forest.
    parser = argparse.ArgumentParser(description="Generate a procedural forest terrain")
    parser.add_argument("--config", help="JSON file with terrain config values")
    parser.add_argument("--half-size", type=int, help="Override half_size")
    parser.add_argument("--seed", type=int, help="Override the noise and placement seed")
    parser.add_argument("--density", type=float, help="Override vegetation density")
    parser.add_argument("--variants", type=int, default=3, help="Number of vegetation variants to scatter")
    parser.add_argument("--export", help="Write instances and mesh stats as JSON to this path ('-' for stdout)")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


def _apply_overrides(args: argparse.Namespace):
    config = load_terrain_config(args.config, env_prefix=DEFAULT_ENV_PREFIX)
    overrides: Dict[str, object] = {}
    if args.half_size is not None:
        overrides["half_size"] = args.half_size
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.density is not None:
        overrides["density"] = args.density
    return config.replace(**overrides).validate() if overrides else config


def export_payload(terrain: GeneratedTerrain) -> Dict[str, object]:
    mesh = terrain.mesh
    instances: List[Dict[str, object]] = [
        {
            "translation": list(instance.translation.as_tuple()),
            "scale": instance.scale,
            "rotation": list(instance.rotation.as_tuple()),
            "variant": instance.variant,
            "vertex": instance.vertex_index,
        }
        for instance in terrain.instances
    ]
    return {
        "generation": terrain.generation,
        "config": terrain.config.as_dict(),
        "mesh": {
            "vertices": mesh.vertex_count,
            "triangles": mesh.triangle_count,
            "min_height": float(mesh.heights.min()),
            "max_height": float(mesh.heights.max()),
            "has_tangents": mesh.tangents is not None,
        },
        "instances": instances,
    }


def run(argv: Optional[Sequence[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="[%(asctime)s] %(levelname)s %(message)s")
    try:
        config = _apply_overrides(args)
    except (OSError, TerrainConfigError) as exc:
        LOGGER.error("Invalid terrain config: %s", exc)
        return 2

    # //2.- Variants stand in for loaded vegetation scenes; the demo has them ready immediately.
    assets = AuxiliaryAssetSet([f"tree_{index}" for index in range(max(args.variants, 0))], ready=True)
    scene = RecordingScene()
    controller = RegenerationController(StaticConfigSource(config), assets, scene)
    controller.start()
    terrain = controller.installed
    if terrain is None:
        LOGGER.error("Terrain generation failed: %s", controller.last_error)
        return 1

    print(terrain.mesh.summary())
    print(terrain.summary())
    if args.export:
        payload = json.dumps(export_payload(terrain), indent=2)
        if args.export == "-":
            sys.stdout.write(payload + "\n")
        else:
            with open(args.export, "w", encoding="utf-8") as handle:
                handle.write(payload)
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover - exercised via ``python -m`` execution
    main()

"""CLI entrypoint for Geocoin."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

import yaml

from geocoin.src.engine import Game
from geocoin.src.persistence import FileStorage

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).parent / "config" / "default.yaml"


def load_config(config_path: Path) -> dict:
    """Load YAML config with inheritance support."""
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    # Handle inherits
    if "inherits" in config:
        base_name = config.pop("inherits")
        base_path = config_path.parent.parent / f"{base_name}.yaml"
        base = load_config(base_path)
        config = _deep_merge(base, config)

    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _print_status(game: Game) -> None:
    state = game.to_dict()
    print(f"Cell {state['cell']}  trail={len(state['trail'])}  carrying={len(state['inventory'])}")
    for cache in sorted(state["caches"], key=lambda c: c["cell"]):
        mark = "*" if cache["discovered"] else " "
        print(f"  {mark} {cache['cell']:<14} {len(cache['coins'])} coins")


async def _run_live(game: Game, host: str, port: int) -> None:
    """Serve the game over WebSocket with periodic autosave."""
    from geocoin.src.live_server import LiveServer

    server = LiveServer(game, host=host, port=port)
    await server.start()
    autosave = asyncio.create_task(game.run_autosave())
    try:
        await server.serve_forever()
    finally:
        autosave.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await autosave
        game.save()
        await server.stop()


def main():
    parser = argparse.ArgumentParser(description="Geocoin — collect and stash coins around the map")
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG,
        help="Path to game config YAML",
    )
    parser.add_argument("--save", type=Path, help="Override save file path")
    parser.add_argument("--seed", type=str, help="Override world seed")
    parser.add_argument("--moves", type=str, default="", help="Steps to take, e.g. 'nneesw'")
    parser.add_argument("--reset", action="store_true", help="Discard the save and start fresh")
    parser.add_argument("--inspect", action="store_true", help="Print the save file and exit")
    parser.add_argument("--cell", type=str, help="Cache to detail with --inspect (e.g. 369894,-1220628)")
    parser.add_argument("--live", action="store_true", help="Serve the game to a WebSocket client")
    parser.add_argument("--port", type=int, help="Port for --live server")

    args = parser.parse_args()

    config = load_config(args.config)
    if args.seed:
        config.setdefault("game", {})["seed"] = args.seed
    if args.save:
        config.setdefault("persistence", {})["path"] = str(args.save)

    save_path = Path(config.get("persistence", {}).get("path", "data/save.json"))

    if args.inspect:
        from geocoin.src.inspect_cmd import inspect

        inspect(save_path, args.cell)
        sys.exit(0)

    game = Game(config, FileStorage(save_path))
    game.start()
    if args.reset:
        game.reset()

    if args.live:
        live_cfg = config.get("live", {})
        port = args.port or live_cfg.get("port", 8765)
        asyncio.run(_run_live(game, live_cfg.get("host", "localhost"), port))
        sys.exit(0)

    for direction in args.moves:
        try:
            game.step(direction)
        except ValueError as e:
            logger.error("%s", e)
            sys.exit(1)

    game.save()
    _print_status(game)


if __name__ == "__main__":
    main()

"""Inspect a save file from the terminal."""

from __future__ import annotations

from pathlib import Path

from .board import Board
from .caches import CacheStore, SnapshotError
from .persistence import decode_snapshot, player_from_snapshot


def inspect(save_path: Path, cell: str | None = None) -> None:
    """Print a summary of a saved game.

    Parameters
    ----------
    save_path : Path
        Save file written by ``FileStorage``.
    cell : str | None
        If set (``"i,j"``), also list every coin in that cell's cache.
    """
    if not save_path.exists():
        print(f"No save found at {save_path}")
        return

    try:
        snapshot = decode_snapshot(save_path.read_bytes())
        position, trail = player_from_snapshot(snapshot)
        # Cell keys and coins only; tile size plays no part
        CacheStore(Board(1e-4)).restore(snapshot)
    except SnapshotError as e:
        print(f"Unreadable save {save_path}: {e}")
        return

    carried = snapshot["carriedCoins"]
    caches = snapshot["cacheInventories"]
    discovered = sum(1 for _, body in caches if body["discovered"])
    cached_coins = sum(len(body["coins"]) for _, body in caches)

    print(f"{'=' * 60}")
    print(f"Save {save_path}  (format v{snapshot['version']}, luck {snapshot['hash']})")
    print(f"{'=' * 60}")
    print(f"  Position: ({position.lat:.6f}, {position.lng:.6f})")
    print(f"  Trail points: {len(trail)}")
    print(f"  Caches known: {len(caches)} ({discovered} discovered, {cached_coins} coins)")
    print(f"  Coins carried: {len(carried)}")
    print()

    print(f"{'─' * 60}")
    print("INVENTORY:")
    print(f"{'─' * 60}")
    if carried:
        for coin in reversed(carried):
            print(f"  {_coin_label(coin):<20} value={coin.get('value', 0):>3}")
    else:
        print("  (empty)")
    print()

    if cell:
        _inspect_cell(caches, cell)


def _coin_label(coin: dict) -> str:
    origin = coin.get("origin", {})
    return f"{origin.get('i', '?')}:{origin.get('j', '?')}#{coin.get('serial', '?')}"


def _inspect_cell(caches: list, key: str) -> None:
    """Print one cache's coins, top of the stack first."""
    body = next((b for k, b in caches if k == key), None)
    if body is None:
        print(f"No cache at cell {key}.")
        return

    status = "DISCOVERED" if body.get("discovered") else "UNDISCOVERED"
    print(f"{'─' * 60}")
    print(f"CACHE {key}  [{status}]")
    print(f"{'─' * 60}")
    coins = body.get("coins", [])
    if not coins:
        print("  (empty)")
    for coin in reversed(coins):
        print(f"  {_coin_label(coin):<20} value={coin.get('value', 0):>3}")
    print()

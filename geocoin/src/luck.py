"""Deterministic cache generation — hash-to-float luck per cell.

Every decision is a pure function of the cell, the world seed and a fixed
key suffix, so a cell looks the same no matter when or how often it is
generated. Changing ``luck`` changes every world, which is why its algorithm
is pinned by ``LUCK_HASH_VERSION`` and stamped into save files.
"""

from __future__ import annotations

import hashlib
import math

from .board import Cell
from .caches import Coin

LUCK_HASH_VERSION = "sha256-u53/1"

DEFAULT_SPAWN_PROBABILITY = 0.1
DEFAULT_MAX_COINS = 5
DEFAULT_MAX_VALUE = 100


def luck(key: str) -> float:
    """Map ``key`` to a uniform float in [0, 1).

    Top 53 bits of the first 8 bytes of SHA-256 over the UTF-8 key
    (big-endian), over 2**53, so the result is exactly representable and < 1.
    """
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return (int.from_bytes(digest[:8], "big") >> 11) / float(2**53)


def luck_key(seed: str, *parts: object) -> str:
    """Build a luck key: ``"i,j[,suffix]"``, prefixed by ``"seed:"`` if seeded."""
    key = ",".join(str(p) for p in parts)
    return f"{seed}:{key}" if seed else key


def cache_exists(cell: Cell, seed: str = "",
                 probability: float = DEFAULT_SPAWN_PROBABILITY) -> bool:
    """Whether ``cell`` holds a generated cache."""
    return luck(luck_key(seed, cell.i, cell.j)) < probability


def generate_coins(cell: Cell, seed: str = "",
                   max_coins: int = DEFAULT_MAX_COINS,
                   max_value: int = DEFAULT_MAX_VALUE) -> list[Coin]:
    """Coins for a freshly generated cache: 1..max_coins, serials from 0."""
    count = math.floor(luck(luck_key(seed, cell.i, cell.j, "coins")) * max_coins) + 1
    return [
        Coin(
            value=math.floor(luck(luck_key(seed, cell.i, cell.j, serial)) * max_value),
            origin=cell,
            serial=serial,
        )
        for serial in range(count)
    ]


class CacheGenerator:
    """Generation parameters bound into a callable for ``CacheStore.ensure``."""

    def __init__(self, seed: str = "",
                 probability: float = DEFAULT_SPAWN_PROBABILITY,
                 max_coins: int = DEFAULT_MAX_COINS,
                 max_value: int = DEFAULT_MAX_VALUE):
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"spawn probability must be in [0, 1], got {probability}")
        if max_coins < 1 or max_value < 1:
            raise ValueError("max_coins and max_value must be at least 1")
        self.seed = seed
        self.probability = probability
        self.max_coins = max_coins
        self.max_value = max_value

    @classmethod
    def from_config(cls, config: dict) -> CacheGenerator:
        caches = config.get("caches", {})
        return cls(
            seed=str(config.get("game", {}).get("seed", "") or ""),
            probability=caches.get("spawn_probability", DEFAULT_SPAWN_PROBABILITY),
            max_coins=caches.get("max_coins", DEFAULT_MAX_COINS),
            max_value=caches.get("max_value", DEFAULT_MAX_VALUE),
        )

    def exists(self, cell: Cell) -> bool:
        return cache_exists(cell, self.seed, self.probability)

    def __call__(self, cell: Cell) -> list[Coin]:
        return generate_coins(cell, self.seed, self.max_coins, self.max_value)

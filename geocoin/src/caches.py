"""Cache store — authoritative coin and discovery state per cell."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .board import Board, Cell

logger = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """Raised when a saved snapshot cannot be decoded or applied."""


@dataclass(frozen=True)
class Coin:
    """A collectible token. ``origin`` + ``serial`` identifies it forever."""
    value: int
    origin: Cell
    serial: int

    @property
    def id(self) -> str:
        return f"{self.origin}#{self.serial}"

    def same_as(self, other: Coin) -> bool:
        return self.origin is other.origin and self.serial == other.serial

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "origin": {"i": self.origin.i, "j": self.origin.j},
            "serial": self.serial,
        }


@dataclass
class CacheState:
    """Coins stacked in one cell (last in, first out) plus discovery flag."""
    contents: list[Coin] = field(default_factory=list)
    discovered: bool = False

    @property
    def empty(self) -> bool:
        return not self.contents

    def to_dict(self) -> dict:
        return {
            "coins": [c.to_dict() for c in self.contents],
            "discovered": self.discovered,
        }


CoinGenerator = Callable[[Cell], list[Coin]]


class CacheStore:
    """Maps cells to cache state and holds the player's carried coins.

    Entries are created once (by generation or deposit) and live until
    ``reset`` or ``restore``; activation and deactivation never touch them.
    """

    def __init__(self, board: Board):
        self.board = board
        self.inventory: list[Coin] = []
        self._caches: dict[Cell, CacheState] = {}

    def __len__(self) -> int:
        return len(self._caches)

    def __contains__(self, cell: Cell) -> bool:
        return cell in self._caches

    def cells(self) -> list[Cell]:
        return list(self._caches)

    def get(self, cell: Cell) -> CacheState | None:
        return self._caches.get(cell)

    def ensure(self, cell: Cell, generate: CoinGenerator) -> CacheState:
        """Existing state for ``cell``, or freshly generated undiscovered state."""
        state = self._caches.get(cell)
        if state is None:
            state = CacheState(contents=list(generate(cell)))
            self._caches[cell] = state
            logger.debug("Generated cache %s with %d coins", cell, len(state.contents))
        return state

    # ── Mutations ───────────────────────────────────────────────

    def collect(self, cell: Cell) -> Coin | None:
        """Move the top coin of ``cell``'s cache into the inventory."""
        state = self._caches.get(cell)
        if state is None or not state.contents:
            return None
        coin = state.contents.pop()
        self.inventory.append(coin)
        return coin

    def deposit(self, cell: Cell, coin: Coin | None = None) -> Coin | None:
        """Move a carried coin (the top one by default) into ``cell``'s cache.

        Depositing into a cell with no cache creates an undiscovered cache
        holding just that coin.
        """
        if coin is None:
            if not self.inventory:
                return None
            coin = self.inventory.pop()
        else:
            index = self._carried_index(coin)
            if index is None:
                return None
            coin = self.inventory.pop(index)

        state = self._caches.get(cell)
        if state is None:
            state = CacheState()
            self._caches[cell] = state
            logger.debug("Deposit created cache at %s", cell)
        state.contents.append(coin)
        return coin

    def discover(self, cell: Cell) -> bool:
        """Mark ``cell``'s cache discovered. Returns True if the flag changed."""
        state = self._caches.get(cell)
        if state is None or state.discovered:
            return False
        state.discovered = True
        return True

    def reset(self) -> None:
        """Forget every cache and carried coin."""
        self._caches.clear()
        self.inventory.clear()

    def total_coins(self) -> int:
        return len(self.inventory) + sum(len(s.contents) for s in self._caches.values())

    # ── Snapshot ────────────────────────────────────────────────

    def snapshot(self) -> dict:
        return {
            "carriedCoins": [c.to_dict() for c in self.inventory],
            "cacheInventories": [
                [cell.key, state.to_dict()] for cell, state in self._caches.items()
            ],
        }

    def restore(self, data: dict) -> None:
        """Replace all state with ``data``.

        Everything is parsed before anything is assigned, so a SnapshotError
        leaves the store exactly as it was.
        """
        try:
            inventory = [self._coin_from_dict(c) for c in data["carriedCoins"]]
            caches: dict[Cell, CacheState] = {}
            for entry in data["cacheInventories"]:
                key, body = entry
                cell = self.board.cell_at(key)
                discovered = body["discovered"]
                if not isinstance(discovered, bool):
                    raise SnapshotError(f"discovered must be a bool for {key}")
                caches[cell] = CacheState(
                    contents=[self._coin_from_dict(c) for c in body["coins"]],
                    discovered=discovered,
                )
        except SnapshotError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Malformed cache snapshot: {e}") from e

        self.inventory = inventory
        self._caches = caches
        logger.info("Restored %d caches, %d carried coins", len(caches), len(inventory))

    # ── Private ─────────────────────────────────────────────────

    def _carried_index(self, coin: Coin) -> int | None:
        for index in range(len(self.inventory) - 1, -1, -1):
            if self.inventory[index].same_as(coin):
                return index
        return None

    def _coin_from_dict(self, data: dict) -> Coin:
        value = data["value"]
        serial = data["serial"]
        origin = data["origin"]
        for name, n in (("value", value), ("serial", serial),
                        ("origin.i", origin["i"]), ("origin.j", origin["j"])):
            if not isinstance(n, int) or isinstance(n, bool):
                raise SnapshotError(f"Coin {name} must be an int, got {n!r}")
        if value < 0 or serial < 0:
            raise SnapshotError(f"Coin value/serial must be non-negative: {data!r}")
        return Coin(value=value, origin=self.board.canonical(origin["i"], origin["j"]), serial=serial)

"""Game — wires board, caches, window and save storage together."""

from __future__ import annotations

import asyncio
import logging

from .board import Board, Cell, LatLng
from .caches import CacheStore, Coin, SnapshotError
from .luck import CacheGenerator
from .persistence import (
    SaveStorage,
    decode_snapshot,
    encode_snapshot,
    player_from_snapshot,
    point_from_dict,
)
from .window import ActivateHook, DeactivateHook, VisibilityWindow, WindowChange

logger = logging.getLogger(__name__)

# Oakes College classroom, where every fresh world starts.
DEFAULT_START = LatLng(36.98949379578401, -122.06277128548504)
DEFAULT_TILE_DEGREES = 1e-4
DEFAULT_NEIGHBORHOOD_SIZE = 8
DEFAULT_AUTOSAVE_SECONDS = 60

# (lat, lng) steps in tiles
DIRECTION_DELTAS = {
    "n": (1, 0),
    "s": (-1, 0),
    "e": (0, 1),
    "w": (0, -1),
}


class Game:
    """One player's session: position, trail, caches and inventory."""

    def __init__(
        self,
        config: dict,
        storage: SaveStorage,
        board: Board | None = None,
        store: CacheStore | None = None,
        generator: CacheGenerator | None = None,
        on_activate: ActivateHook | None = None,
        on_deactivate: DeactivateHook | None = None,
    ):
        self.config = config
        board_cfg = config.get("board", {})
        if board is None:
            board = Board(board_cfg.get("tile_degrees", DEFAULT_TILE_DEGREES))
        if store is None:
            store = CacheStore(board)
        if generator is None:
            generator = CacheGenerator.from_config(config)
        self.board = board
        self.store = store
        self.generator = generator
        self.window = VisibilityWindow(
            self.board,
            self.store,
            self.generator,
            radius=board_cfg.get("neighborhood_size", DEFAULT_NEIGHBORHOOD_SIZE),
            on_activate=on_activate,
            on_deactivate=on_deactivate,
        )
        self.storage = storage
        self.autosave_seconds = config.get("persistence", {}).get(
            "autosave_seconds", DEFAULT_AUTOSAVE_SECONDS
        )
        start = config.get("game", {}).get("start") or {}
        self.start_point = LatLng(
            float(start.get("lat", DEFAULT_START.lat)),
            float(start.get("lng", DEFAULT_START.lng)),
        )
        self.position = self.start_point
        self.trail: list[LatLng] = [self.start_point]

    @property
    def current_cell(self) -> Cell:
        return self.board.cell_for(self.position)

    @property
    def inventory(self) -> list[Coin]:
        return self.store.inventory

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> bool:
        """Resume the saved game, or start fresh. Returns True if a save was resumed."""
        try:
            data = self.storage.load()
        except Exception as e:
            logger.warning("Could not read save, starting fresh: %s", e)
            data = None

        resumed = False
        if data is None:
            logger.info("No saved game, starting fresh at %s", self.start_point)
            self._fresh()
        else:
            resumed = self.restore(data)

        self.window.update(self.current_cell)
        logger.info(
            "Game started at cell %s (%d caches active, %d coins carried)",
            self.current_cell, len(self.window.active_caches()), len(self.inventory),
        )
        return resumed

    def reset(self) -> None:
        """Throw away all progress and the save, back to a fresh world."""
        try:
            self.storage.clear()
        except Exception as e:
            logger.error("Could not clear save: %s", e)
        self._fresh()
        self.window.update(self.current_cell)
        logger.info("Game reset")

    # ── Movement ────────────────────────────────────────────────

    def move_to(self, point: LatLng) -> WindowChange:
        """Place the player at ``point`` (e.g. a geolocation fix)."""
        self.position = point
        self.trail.append(point)
        change = self.window.update(self.current_cell)
        self.save()
        return change

    def step(self, direction: str) -> WindowChange:
        """Move one tile north, south, east or west."""
        try:
            dlat, dlng = DIRECTION_DELTAS[direction]
        except KeyError:
            raise ValueError(f"Unknown direction: {direction!r}") from None
        t = self.board.tile_degrees
        return self.move_to(LatLng(self.position.lat + dlat * t, self.position.lng + dlng * t))

    # ── Cache commands ──────────────────────────────────────────

    def collect(self, cell: Cell) -> Coin | None:
        if not self.window.is_active(cell):
            logger.debug("Ignoring collect on inactive cell %s", cell)
            return None
        coin = self.store.collect(cell)
        if coin is not None:
            self.window.refresh(cell)
            self.save()
        return coin

    def deposit(self, cell: Cell) -> Coin | None:
        """Drop the top carried coin into ``cell``.

        Any cell in the window is accepted; an empty one gets a new cache.
        """
        if cell not in self.window.window:
            logger.debug("Ignoring deposit on out-of-window cell %s", cell)
            return None
        coin = self.store.deposit(cell)
        if coin is not None:
            self.window.refresh(cell)
            self.save()
        return coin

    def discover(self, cell: Cell) -> bool:
        if not self.window.is_active(cell):
            return False
        changed = self.store.discover(cell)
        if changed:
            self.window.refresh(cell)
            self.save()
        return changed

    def apply_command(self, cmd: dict) -> bool:
        """Run a UI command dict. Returns False for unknown or malformed commands."""
        action = cmd.get("action")
        try:
            if action == "move":
                self.step(cmd.get("direction", ""))
            elif action == "locate":
                self.move_to(point_from_dict(cmd))
            elif action in ("collect", "deposit", "discover"):
                cell = self.board.cell_at(str(cmd.get("cell", "")))
                getattr(self, action)(cell)
            elif action == "reset":
                self.reset()
            elif action == "save":
                self.save()
            else:
                logger.warning("Unknown command: %r", action)
                return False
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Bad %s command %r: %s", action, cmd, e)
            return False
        return True

    # ── Persistence ─────────────────────────────────────────────

    def save(self) -> bool:
        """Write a snapshot to storage. Failures are logged, never raised."""
        try:
            self.storage.save(encode_snapshot(self.snapshot()))
        except Exception as e:
            logger.error("Save failed, continuing with in-memory state: %s", e)
            return False
        return True

    async def run_autosave(self, interval: float | None = None) -> None:
        """Save every ``interval`` seconds until cancelled."""
        interval = self.autosave_seconds if interval is None else interval
        logger.info("Autosave every %ss", interval)
        while True:
            await asyncio.sleep(interval)
            self.save()

    def snapshot(self) -> dict:
        return {
            **self.store.snapshot(),
            "playerPosition": self.position.to_dict(),
            "pathHistory": [p.to_dict() for p in self.trail],
        }

    def restore(self, data: bytes | dict) -> bool:
        """Replace the session with a saved snapshot.

        A snapshot that fails to decode or validate is discarded as a whole
        and the game falls back to a fresh world. Returns True on success.
        """
        try:
            payload = decode_snapshot(data) if isinstance(data, bytes) else data
            position, trail = player_from_snapshot(payload)
            self.store.restore(payload)
        except SnapshotError as e:
            logger.warning("Discarding unreadable save, starting fresh: %s", e)
            self._fresh()
            self.window.update(self.current_cell)
            return False

        self.window.deactivate_all()
        self.position = position
        self.trail = trail or [position]
        self.window.update(self.current_cell)
        return True

    # ── Views ───────────────────────────────────────────────────

    def to_dict(self) -> dict:
        """State for the UI: player, inventory and every active cache."""
        caches = []
        for cell, state in self.window.active_caches().items():
            bounds = self.board.bounds_of(cell)
            caches.append({
                "cell": cell.key,
                "bounds": [bounds.south_west.to_dict(), bounds.north_east.to_dict()],
                "coins": [{"id": c.id, **c.to_dict()} for c in state.contents],
                "discovered": state.discovered,
            })
        return {
            "position": self.position.to_dict(),
            "cell": self.current_cell.key,
            "trail": [p.to_dict() for p in self.trail],
            "inventory": [{"id": c.id, **c.to_dict()} for c in self.inventory],
            "caches": caches,
        }

    # ── Private ─────────────────────────────────────────────────

    def _fresh(self) -> None:
        self.window.deactivate_all()
        self.store.reset()
        self.position = self.start_point
        self.trail = [self.start_point]

"""Visibility window — activates caches near the player, retires the rest."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .board import Board, Cell
from .caches import CacheState, CacheStore
from .luck import CacheGenerator

logger = logging.getLogger(__name__)

ActivateHook = Callable[[Cell, CacheState], None]
DeactivateHook = Callable[[Cell], None]


@dataclass
class WindowChange:
    """Cells that entered and left the active set during one update."""
    activated: list[Cell] = field(default_factory=list)
    deactivated: list[Cell] = field(default_factory=list)


class VisibilityWindow:
    """Tracks which caches are active (rendered) around the player's cell.

    Activation goes through ``CacheStore.ensure`` so a cell is generated at
    most once; deactivation only drops the cell from the active set and calls
    ``on_deactivate``. Store entries survive both.
    """

    def __init__(
        self,
        board: Board,
        store: CacheStore,
        generator: CacheGenerator,
        radius: int,
        on_activate: ActivateHook | None = None,
        on_deactivate: DeactivateHook | None = None,
    ):
        if radius < 0:
            raise ValueError(f"radius must be non-negative, got {radius}")
        self.board = board
        self.store = store
        self.generator = generator
        self.radius = radius
        self.on_activate = on_activate
        self.on_deactivate = on_deactivate
        self.center: Cell | None = None
        self.window: set[Cell] = set()
        self._active: dict[Cell, CacheState] = {}

    def is_active(self, cell: Cell) -> bool:
        return cell in self._active

    def active_caches(self) -> dict[Cell, CacheState]:
        return dict(self._active)

    def update(self, center: Cell) -> WindowChange:
        """Recompute the window around ``center`` and diff it against the active set."""
        self.center = center
        self.window = self.board.cells_within(center, self.radius)
        change = WindowChange()

        for cell in self.window:
            if cell not in self._active and self._activate(cell):
                change.activated.append(cell)

        for cell in [c for c in self._active if c not in self.window]:
            self._deactivate(cell)
            change.deactivated.append(cell)

        if change.activated or change.deactivated:
            logger.debug(
                "Window at %s: +%d -%d (%d active)",
                center, len(change.activated), len(change.deactivated), len(self._active),
            )
        return change

    def refresh(self, cell: Cell) -> bool:
        """Re-show ``cell`` after its state changed. Returns True if it is active."""
        if cell in self._active:
            self._notify(cell, self._active[cell])
            return True
        if cell in self.window:
            return self._activate(cell)
        return False

    def deactivate_all(self) -> list[Cell]:
        cells = list(self._active)
        for cell in cells:
            self._deactivate(cell)
        self.center = None
        self.window = set()
        return cells

    # ── Private ─────────────────────────────────────────────────

    def _activate(self, cell: Cell) -> bool:
        state = self.store.get(cell)
        if state is None:
            if not self.generator.exists(cell):
                return False
            state = self.store.ensure(cell, self.generator)
        self._active[cell] = state
        self._notify(cell, state)
        return True

    def _deactivate(self, cell: Cell) -> None:
        del self._active[cell]
        if self.on_deactivate:
            self.on_deactivate(cell)

    def _notify(self, cell: Cell, state: CacheState) -> None:
        if self.on_activate:
            self.on_activate(cell, state)

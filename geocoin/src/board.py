"""Grid board — quantizes lat/lng into canonical cells."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class LatLng:
    """A point on the lat/lng plane."""
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle covered by one cell."""
    south_west: LatLng
    north_east: LatLng

    def contains(self, point: LatLng) -> bool:
        """True if point lies strictly inside the rectangle."""
        return (
            self.south_west.lat < point.lat < self.north_east.lat
            and self.south_west.lng < point.lng < self.north_east.lng
        )

    @property
    def center(self) -> LatLng:
        return LatLng(
            (self.south_west.lat + self.north_east.lat) / 2,
            (self.south_west.lng + self.north_east.lng) / 2,
        )


@dataclass(frozen=True, eq=False)
class Cell:
    """A discrete grid coordinate.

    Cells are only created through ``Board.canonical``, so two cells with the
    same ``(i, j)`` on one board are the same object and compare with ``is``.
    Hashing and equality are identity-based for the same reason.
    """
    i: int
    j: int

    @property
    def key(self) -> str:
        """Snapshot key form, e.g. ``"3,-2"``."""
        return f"{self.i},{self.j}"

    def __str__(self) -> str:
        return f"{self.i}:{self.j}"


class Board:
    """Flyweight registry of cells over a uniform lat/lng grid."""

    def __init__(self, tile_degrees: float):
        if tile_degrees <= 0:
            raise ValueError(f"tile_degrees must be positive, got {tile_degrees}")
        self.tile_degrees = tile_degrees
        self._cells: dict[tuple[int, int], Cell] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def canonical(self, i: int, j: int) -> Cell:
        """Return the one Cell for ``(i, j)``, registering it on first use."""
        key = (i, j)
        cell = self._cells.get(key)
        if cell is None:
            cell = Cell(i, j)
            self._cells[key] = cell
        return cell

    def cell_for(self, point: LatLng) -> Cell:
        """Cell containing ``point`` (floor of coordinate / tile width)."""
        return self.canonical(
            math.floor(point.lat / self.tile_degrees),
            math.floor(point.lng / self.tile_degrees),
        )

    def cell_at(self, key: str) -> Cell:
        """Parse an ``"i,j"`` key back into its canonical cell.

        Raises ValueError for anything that is not two comma-separated ints.
        """
        parts = key.split(",")
        if len(parts) != 2:
            raise ValueError(f"Bad cell key: {key!r}")
        return self.canonical(int(parts[0]), int(parts[1]))

    def bounds_of(self, cell: Cell) -> Bounds:
        """Lat/lng rectangle covered by ``cell``."""
        t = self.tile_degrees
        return Bounds(
            south_west=LatLng(cell.i * t, cell.j * t),
            north_east=LatLng((cell.i + 1) * t, (cell.j + 1) * t),
        )

    def cells_within(self, origin: Cell, radius: int) -> set[Cell]:
        """All cells within Chebyshev distance ``radius`` of ``origin``."""
        result: set[Cell] = set()
        for di in range(-radius, radius + 1):
            for dj in range(-radius, radius + 1):
                result.add(self.canonical(origin.i + di, origin.j + dj))
        return result

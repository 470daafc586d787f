"""Save storage — opaque byte blobs plus the JSON snapshot codec."""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from .board import LatLng
from .caches import SnapshotError
from .luck import LUCK_HASH_VERSION

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SaveStorage(ABC):
    """Where saves live. ``save`` raises on failure; callers decide what to do."""

    @abstractmethod
    def save(self, data: bytes) -> None:
        ...

    @abstractmethod
    def load(self) -> bytes | None:
        """Previously saved bytes, or None if nothing was saved."""
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class FileStorage(SaveStorage):
    """Single save file, replaced atomically on every write."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def save(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb", dir=self.path.parent, prefix=f".{self.path.name}.", delete=False
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
            temp_path = None
        finally:
            if temp_path is not None:
                try:
                    temp_path.unlink()
                except FileNotFoundError:
                    pass

    def load(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        logger.info("Cleared save %s", self.path)


class MemoryStorage(SaveStorage):
    """In-process save slot for tests and throwaway sessions."""

    def __init__(self, data: bytes | None = None):
        self.data = data
        self.save_count = 0
        self.fail_saves = False

    def save(self, data: bytes) -> None:
        if self.fail_saves:
            raise OSError("storage quota exceeded")
        self.data = data
        self.save_count += 1

    def load(self) -> bytes | None:
        return self.data

    def clear(self) -> None:
        self.data = None


# ── Codec ───────────────────────────────────────────────────────


def encode_snapshot(snapshot: dict) -> bytes:
    """Serialize a game snapshot, stamping format and hash versions."""
    payload = {"version": SNAPSHOT_VERSION, "hash": LUCK_HASH_VERSION, **snapshot}
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def decode_snapshot(data: bytes) -> dict:
    """Parse bytes written by ``encode_snapshot``.

    Raises SnapshotError for anything that is not a snapshot of this format
    generated with this luck hash; field-level checks happen on restore.
    """
    try:
        payload = json.loads(data.decode("utf-8"))
    except (ValueError, RecursionError) as e:
        # ValueError also covers bad UTF-8 and the int digit limit
        raise SnapshotError(f"Unreadable snapshot: {e}") from e

    if not isinstance(payload, dict):
        raise SnapshotError(f"Snapshot must be an object, got {type(payload).__name__}")
    if payload.get("version") != SNAPSHOT_VERSION:
        raise SnapshotError(f"Unsupported snapshot version: {payload.get('version')!r}")
    if payload.get("hash") != LUCK_HASH_VERSION:
        raise SnapshotError(
            f"Snapshot generated with luck hash {payload.get('hash')!r}, "
            f"expected {LUCK_HASH_VERSION!r}"
        )
    return payload


def point_from_dict(data: dict) -> LatLng:
    """Parse a ``{"lat": ..., "lng": ...}`` point; both must be finite numbers."""
    try:
        lat, lng = data["lat"], data["lng"]
    except (KeyError, TypeError) as e:
        raise SnapshotError(f"Bad point {data!r}") from e
    for n in (lat, lng):
        if isinstance(n, bool) or not isinstance(n, (int, float)) or not math.isfinite(n):
            raise SnapshotError(f"Bad coordinate: {n!r}")
    return LatLng(float(lat), float(lng))


def player_from_snapshot(payload: dict) -> tuple[LatLng, list[LatLng]]:
    """Return ``(playerPosition, pathHistory)`` from a decoded snapshot."""
    try:
        position = point_from_dict(payload["playerPosition"])
        trail = [point_from_dict(p) for p in payload["pathHistory"]]
    except (KeyError, TypeError) as e:
        raise SnapshotError(f"Malformed player snapshot: {e}") from e
    return position, trail

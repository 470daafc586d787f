"""Shared test fixtures for Geocoin tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from geocoin.src.board import Board
from geocoin.src.caches import CacheStore
from geocoin.src.engine import Game
from geocoin.src.luck import CacheGenerator
from geocoin.src.persistence import MemoryStorage


# ── Config fixtures ─────────────────────────────────────────────


@pytest.fixture
def default_config():
    """Load the real default.yaml config."""
    config_path = Path(__file__).parent.parent / "config" / "default.yaml"
    with open(config_path) as f:
        return yaml.safe_load(f)


@pytest.fixture
def test_config(default_config):
    """Default config with a fixed test seed and a small window."""
    cfg = default_config.copy()
    cfg["game"] = {**cfg["game"], "seed": "test-seed"}
    cfg["board"] = {**cfg["board"], "neighborhood_size": 3}
    cfg["persistence"] = {**cfg["persistence"], "autosave_seconds": 0.01}
    return cfg


@pytest.fixture
def dense_config(test_config):
    """Every cell holds a cache, so tests can pick any cell."""
    cfg = test_config.copy()
    cfg["caches"] = {**cfg["caches"], "spawn_probability": 1.0}
    return cfg


# ── Core fixtures ───────────────────────────────────────────────


@pytest.fixture
def board():
    return Board(tile_degrees=1e-4)


@pytest.fixture
def store(board):
    return CacheStore(board)


@pytest.fixture
def generator():
    return CacheGenerator(seed="test-seed")


@pytest.fixture
def dense_generator():
    return CacheGenerator(seed="test-seed", probability=1.0)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def game(test_config, storage):
    """A started game on the default-density world."""
    g = Game(test_config, storage)
    g.start()
    return g


@pytest.fixture
def dense_game(dense_config, storage):
    """A started game where every cell in the window is an active cache."""
    g = Game(dense_config, storage)
    g.start()
    return g


class RecordingHooks:
    """Captures window activate/deactivate callbacks."""

    def __init__(self):
        self.activated: list = []
        self.deactivated: list = []

    def on_activate(self, cell, state) -> None:
        self.activated.append((cell, state))

    def on_deactivate(self, cell) -> None:
        self.deactivated.append(cell)


@pytest.fixture
def hooks():
    return RecordingHooks()

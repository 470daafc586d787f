"""End-to-end integration tests: play, autosave, resume from disk."""

import asyncio
import contextlib
import json

import pytest

from geocoin.src.engine import Game
from geocoin.src.persistence import FileStorage


@pytest.fixture
def save_path(tmp_path):
    return tmp_path / "data" / "save.json"


def _first_cache_with_coins(game):
    for cell, state in sorted(game.window.active_caches().items(), key=lambda kv: kv[0].key):
        if state.contents:
            return cell
    raise AssertionError("no non-empty active cache")


class TestFullSession:
    """Play a short session on disk, then resume it in a fresh Game."""

    def test_resume_from_file(self, dense_config, save_path):
        game = Game(dense_config, FileStorage(save_path))
        assert game.start() is False

        cell = _first_cache_with_coins(game)
        game.discover(cell)
        coin = game.collect(cell)
        for direction in "nne":
            game.step(direction)

        resumed = Game(dense_config, FileStorage(save_path))
        assert resumed.start() is True
        assert resumed.snapshot() == game.snapshot()
        assert resumed.inventory[0].id == coin.id
        assert resumed.store.get(resumed.board.canonical(cell.i, cell.j)).discovered is True

    def test_save_file_is_versioned_json(self, dense_config, save_path):
        game = Game(dense_config, FileStorage(save_path))
        game.start()
        game.step("w")
        payload = json.loads(save_path.read_text())
        assert payload["version"] == 1
        assert payload["hash"]
        assert len(payload["pathHistory"]) == 2

    def test_corrupt_file_starts_fresh_and_overwrites(self, dense_config, save_path):
        save_path.parent.mkdir(parents=True)
        save_path.write_text("{\"version\": 1, \"carriedCo")
        game = Game(dense_config, FileStorage(save_path))
        assert game.start() is False
        game.step("n")
        assert json.loads(save_path.read_text())["version"] == 1

    def test_reset_deletes_file(self, dense_config, save_path):
        game = Game(dense_config, FileStorage(save_path))
        game.start()
        game.step("n")
        assert save_path.exists()
        game.reset()
        assert not save_path.exists()

    def test_same_seed_same_world_across_games(self, dense_config, tmp_path):
        a = Game(dense_config, FileStorage(tmp_path / "a.json"))
        b = Game(dense_config, FileStorage(tmp_path / "b.json"))
        a.start()
        b.start()
        view_a = {c["cell"]: c["coins"] for c in a.to_dict()["caches"]}
        view_b = {c["cell"]: c["coins"] for c in b.to_dict()["caches"]}
        assert view_a == view_b


class TestAutosave:
    @pytest.mark.asyncio
    async def test_autosave_writes_periodically(self, test_config, save_path):
        storage = FileStorage(save_path)
        game = Game(test_config, storage)
        game.start()
        # Mutate without going through an action that saves
        game.trail.append(game.position)

        task = asyncio.create_task(game.run_autosave(interval=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        assert len(json.loads(save_path.read_text())["pathHistory"]) == 2

    @pytest.mark.asyncio
    async def test_autosave_survives_failing_storage(self, test_config, storage, caplog):
        game = Game(test_config, storage)
        game.start()
        storage.fail_saves = True

        task = asyncio.create_task(game.run_autosave(interval=0.01))
        await asyncio.sleep(0.05)
        assert not task.done()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        assert "Save failed" in caplog.text

"""Tests for agent_spawner.lock_utils - single-instance daemon guard."""

import os

from agent_spawner.lock_utils import acquire_lock, locked_or_skip, read_lock_owner, release_lock


class TestLockedOrSkip:
    def test_acquires_free_lock(self, tmp_path):
        lock_path = tmp_path / "run" / "spawner.lock"
        with locked_or_skip(lock_path) as acquired:
            assert acquired is True
            assert read_lock_owner(lock_path) == os.getpid()

    def test_second_holder_skipped(self, tmp_path):
        lock_path = tmp_path / "spawner.lock"
        with locked_or_skip(lock_path) as first:
            # flock locks are per open file description, so a second open in
            # the same process still conflicts
            with locked_or_skip(lock_path) as second:
                assert first is True
                assert second is False

    def test_released_after_block(self, tmp_path):
        lock_path = tmp_path / "spawner.lock"
        with locked_or_skip(lock_path):
            pass
        fd = acquire_lock(lock_path)
        assert fd is not None
        release_lock(fd)


class TestReadLockOwner:
    def test_missing_file(self, tmp_path):
        assert read_lock_owner(tmp_path / "nope.lock") is None

    def test_garbage_content(self, tmp_path):
        path = tmp_path / "spawner.lock"
        path.write_text("not a pid")
        assert read_lock_owner(path) is None

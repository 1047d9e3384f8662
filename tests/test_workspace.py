"""Tests for scratch workspace lifecycle."""

import threading

import pytest

from preflight.errors import WorkspaceCreationError
from preflight.workspace import ScratchWorkspace, acquire_workspace


class TestAcquireWorkspace:

    def test_creates_directory_with_prefix(self, scratch_dir):
        workspace = acquire_workspace("preflight-test-", base_dir=scratch_dir)
        try:
            assert workspace.path.is_dir()
            assert workspace.path.parent == scratch_dir
            assert workspace.path.name.startswith("preflight-test-")
        finally:
            workspace.release()

    def test_each_acquisition_is_unique(self, scratch_dir):
        first = acquire_workspace("run-", base_dir=scratch_dir)
        second = acquire_workspace("run-", base_dir=scratch_dir)
        try:
            assert first.path != second.path
        finally:
            first.release()
            second.release()

    def test_missing_base_dir_raises(self, tmp_path):
        with pytest.raises(WorkspaceCreationError) as exc_info:
            acquire_workspace("run-", base_dir=tmp_path / "does-not-exist")

        assert isinstance(exc_info.value.cause, OSError)
        assert exc_info.value.__cause__ is exc_info.value.cause


class TestRelease:

    def test_release_removes_tree(self, scratch_dir):
        workspace = acquire_workspace("run-", base_dir=scratch_dir)
        (workspace.path / "jobs").mkdir()
        (workspace.path / "jobs" / "worker.tgz").write_bytes(b"data")

        workspace.release()

        assert not workspace.path.exists()
        assert workspace.released

    def test_release_is_idempotent(self, scratch_dir):
        workspace = acquire_workspace("run-", base_dir=scratch_dir)
        workspace.release()
        workspace.release()
        assert not workspace.path.exists()

    def test_release_tolerates_already_removed_directory(self, tmp_path):
        workspace = ScratchWorkspace(tmp_path / "gone")
        workspace.release()
        assert workspace.released

    def test_concurrent_release_removes_once(self, scratch_dir, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "preflight.workspace.shutil.rmtree",
            lambda path, ignore_errors=False: calls.append(path),
        )
        workspace = acquire_workspace("run-", base_dir=scratch_dir)

        threads = [threading.Thread(target=workspace.release) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert calls == [workspace.path]


class TestContextManager:

    def test_yields_path_and_releases(self, scratch_dir):
        workspace = acquire_workspace("run-", base_dir=scratch_dir)
        with workspace as path:
            assert path == workspace.path
            assert path.is_dir()
        assert not workspace.path.exists()

    def test_releases_on_exception(self, scratch_dir):
        workspace = acquire_workspace("run-", base_dir=scratch_dir)
        with pytest.raises(RuntimeError):
            with workspace:
                raise RuntimeError("boom")
        assert not workspace.path.exists()
        assert list(scratch_dir.iterdir()) == []

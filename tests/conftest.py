import io
import logging
import tarfile
from pathlib import Path

import pytest
import yaml

from preflight.config import PreflightConfig


# =============================================================================
# RELEASE ARCHIVE BUILDERS
# =============================================================================


def _tgz_bytes(files: dict) -> bytes:
    """Build an in-memory .tgz from {member name: str or bytes}."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def default_release_manifest() -> dict:
    return {
        "name": "cpi",
        "version": "1.0",
        "commit_hash": "abc123",
        "uncommitted_changes": False,
        "jobs": [
            {"name": "worker", "version": "0.1", "fingerprint": "jf1", "sha1": "js1"},
        ],
        "packages": [
            {"name": "libfoo", "version": "2.0", "fingerprint": "pf1", "sha1": "ps1", "dependencies": []},
        ],
    }


def job_files(name: str, packages=("libfoo",), templates=None, manifest_name=None, monit=True) -> dict:
    """Files inside a job archive: job.MF, monit, templates/*."""
    templates = {"ctl.erb": "bin/ctl"} if templates is None else templates
    files = {
        "job.MF": yaml.safe_dump({
            "name": manifest_name or name,
            "templates": templates,
            "packages": list(packages),
        }),
    }
    if monit:
        files["monit"] = f"check process {name}\n"
    for src in templates:
        files[f"templates/{src}"] = "#!/bin/bash\n"
    return files


def build_release_archive(
    dest: Path,
    manifest=None,
    jobs: dict = None,
    packages=None,
    prefix: str = "",
    omit_manifest: bool = False,
    extra_files: dict = None,
) -> Path:
    """
    Write a release archive to `dest`.

    Args:
        manifest: release.MF content; dict is YAML-dumped, str is written raw
        jobs: {job name: files in the job archive}; defaults from manifest jobs
        packages: package archive names; defaults from manifest packages
        prefix: directory every member is nested under (e.g. "cpi/")
        omit_manifest: leave release.MF out entirely
        extra_files: additional {member name: content} written as-is
    """
    if manifest is None:
        manifest = default_release_manifest()

    if jobs is None:
        jobs = {}
        if isinstance(manifest, dict):
            for entry in manifest.get("jobs") or []:
                if entry.get("name"):
                    jobs[entry["name"]] = job_files(entry["name"])
    if packages is None:
        packages = []
        if isinstance(manifest, dict):
            packages = [p["name"] for p in manifest.get("packages") or [] if p.get("name")]

    files = {}
    if not omit_manifest:
        files[f"{prefix}release.MF"] = (
            manifest if isinstance(manifest, str) else yaml.safe_dump(manifest)
        )
    for job_name, contents in jobs.items():
        files[f"{prefix}jobs/{job_name}.tgz"] = _tgz_bytes(contents)
    for package_name in packages:
        files[f"{prefix}packages/{package_name}.tgz"] = _tgz_bytes({"packaging": "make install\n"})
    files.update(extra_files or {})

    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(_tgz_bytes(files))
    return dest


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class RecordingUI:
    """UI that records every message instead of printing."""

    def __init__(self):
        self.errors = []
        self.infos = []
        self.successes = []
        self.warnings = []
        self.releases = []

    def error(self, message):
        self.errors.append(message)

    def info(self, message):
        self.infos.append(message)

    def success(self, message):
        self.successes.append(message)

    def warning(self, message):
        self.warnings.append(message)

    def banner(self, title):
        pass

    def print_release(self, release):
        self.releases.append(release)


class FakeExtractor:
    """
    Scripted extractor.

    Records every call. Returns the configured behaviour for known archives
    and fails loudly on anything else.
    """

    def __init__(self):
        self.extract_inputs = []
        self._behavior = {}

    def set_extract_behavior(self, archive_path, error=None, files=None):
        """Configure extract(archive_path, *): raise `error` or write `files`."""
        self._behavior[str(archive_path)] = (error, files or {})

    def extract(self, archive_path, target_dir):
        self.extract_inputs.append((str(archive_path), str(target_dir)))
        if str(archive_path) not in self._behavior:
            raise RuntimeError(f"Unsupported Input: extract('{archive_path}', '{target_dir}')")

        error, files = self._behavior[str(archive_path)]
        if error is not None:
            raise error

        target = Path(target_dir)
        target.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            path = target / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def preflight_home(monkeypatch, tmp_path):
    """Keep every test away from the real ~/.config/preflight."""
    home = tmp_path / "preflight_home"
    monkeypatch.setenv("PREFLIGHT_HOME", str(home))
    return home


@pytest.fixture
def scratch_dir(tmp_path) -> Path:
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def test_config(scratch_dir) -> PreflightConfig:
    return PreflightConfig(workspace_dir=str(scratch_dir))


@pytest.fixture
def manifest_file(tmp_path) -> Path:
    path = tmp_path / "manifest.yml"
    path.write_text("name: cpi-deployment\n")
    return path


@pytest.fixture
def release_archive(tmp_path) -> Path:
    """A fully valid release archive."""
    return build_release_archive(tmp_path / "cpi-release.tgz")


@pytest.fixture
def ui() -> RecordingUI:
    return RecordingUI()


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def release_manifest() -> dict:
    """A fresh, valid release.MF mapping tests may mutate."""
    return default_release_manifest()


@pytest.fixture
def make_release(tmp_path):
    """Factory: make_release(filename, manifest=..., jobs=..., ...) -> archive path."""
    def _make(filename="release.tgz", **kwargs):
        return build_release_archive(tmp_path / "archives" / filename, **kwargs)
    return _make


@pytest.fixture
def make_job_files():
    """Factory for job archive contents (see job_files)."""
    return job_files


@pytest.fixture(autouse=True)
def reset_preflight_logger():
    """Drop handlers installed by setup_logging so tests stay isolated."""
    yield
    logger = logging.getLogger("preflight")
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.setLevel(logging.NOTSET)

"""
ReleaseReader - unpack a release archive and parse it into a Release.

Reading happens in four steps:
1. Extract the archive into <root>/release
2. Locate release.MF (at the top of <root>/release, or one directory down)
3. Deserialize release.MF into release, job and package entries
4. Extract each job archive into <root>/extracted_jobs/<name> and parse its
   job.MF; check package archives

The release tree and the job trees are siblings, so nothing shipped inside the
release archive can stand in for an unpacked job.

Either a fully populated Release is returned or an exception is raised:
- ExtractionError: the extractor failed on the release or a job archive
- MalformedReleaseError: anything missing, unreadable or mistyped
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from preflight.errors import ExtractionError, MalformedReleaseError
from preflight.extractor import Extractor, TarExtractor
from preflight.release import (
    ARCHIVE_SUFFIX,
    EXTRACTED_JOBS_DIR,
    JOB_MANIFEST,
    JOBS_DIR,
    PACKAGES_DIR,
    RELEASE_DIR,
    RELEASE_MANIFEST,
    Job,
    Package,
    Release,
)

logger = logging.getLogger(__name__)


class ReleaseReader:
    """Reads a release archive into a Release description."""

    def __init__(
        self,
        archive_path: Union[str, Path],
        extraction_root: Union[str, Path],
        extractor: Optional[Extractor] = None,
    ):
        """
        Initialize reader.

        Args:
            archive_path: Release archive to read
            extraction_root: Empty directory to unpack into (owned by the caller)
            extractor: Archive decoder (defaults to TarExtractor)
        """
        self.archive_path = Path(archive_path)
        self.extraction_root = Path(extraction_root)
        self.release_dir = self.extraction_root / RELEASE_DIR
        self.extractor = extractor or TarExtractor()

    def read(self) -> Release:
        """
        Extract and parse the release archive.

        Returns:
            Fully populated Release

        Raises:
            ExtractionError: If the archive or a job archive cannot be extracted
            MalformedReleaseError: If the contents are not a valid release layout
        """
        self._extract(self.archive_path, self.release_dir)

        release_root = self._find_release_root()
        manifest = _load_yaml_mapping(release_root / RELEASE_MANIFEST)

        name = _required_str(manifest, "name", "name")
        version = _required_str(manifest, "version", "version", allow_number=True)
        commit_hash = _optional_str(manifest, "commit_hash", "commit_hash") or None
        uncommitted = manifest.get("uncommitted_changes", False)
        if not isinstance(uncommitted, bool):
            raise _field_error("uncommitted_changes", "must be a boolean")

        job_entries = _required_list(manifest, "jobs", "jobs")
        package_entries = _required_list(manifest, "packages", "packages")

        jobs = tuple(
            self._read_job(entry, f"jobs[{i}]", release_root)
            for i, entry in enumerate(job_entries)
        )
        packages = tuple(
            self._read_package(entry, f"packages[{i}]", release_root)
            for i, entry in enumerate(package_entries)
        )

        release = Release(
            name=name,
            version=version,
            jobs=jobs,
            packages=packages,
            extracted_path=release_root,
            commit_hash=commit_hash,
            uncommitted_changes=uncommitted,
        )

        logger.info(
            f"Read release {release.name}/{release.version}",
            extra={
                "event": "release_read",
                "metadata": {
                    "jobs_count": len(release.jobs),
                    "packages_count": len(release.packages),
                },
            },
        )
        return release

    def _extract(self, archive: Path, target: Path) -> None:
        try:
            self.extractor.extract(archive, target)
        except Exception as e:
            raise ExtractionError(str(archive), cause=e) from e

    def _find_release_root(self) -> Path:
        """Locate the directory holding release.MF."""
        root = self.release_dir
        if (root / RELEASE_MANIFEST).is_file():
            return root

        try:
            entries = list(root.iterdir())
        except OSError as e:
            raise MalformedReleaseError(
                f"Reading extracted release '{root}': {e.strerror}",
                path=str(root),
                cause=e,
            ) from e

        if len(entries) == 1 and entries[0].is_dir():
            nested = entries[0]
            if (nested / RELEASE_MANIFEST).is_file():
                return nested

        raise MalformedReleaseError(
            f"Archive '{self.archive_path}' is not a recognizable release: "
            f"{RELEASE_MANIFEST} not found",
            path=RELEASE_MANIFEST,
        )

    def _read_job(self, entry: Any, field_name: str, release_root: Path) -> Job:
        if not isinstance(entry, dict):
            raise _field_error(field_name, "must be a mapping")

        name = _required_str(entry, "name", f"{field_name}.name")
        version = _optional_str(entry, "version", f"{field_name}.version", allow_number=True)
        fingerprint = _optional_str(entry, "fingerprint", f"{field_name}.fingerprint")
        sha1 = _optional_str(entry, "sha1", f"{field_name}.sha1")

        # Empty names are left for the validator to report
        if not name:
            return Job(name=name, version=version, fingerprint=fingerprint, sha1=sha1)

        _check_plain_name(name, f"{field_name}.name")

        archive = release_root / JOBS_DIR / f"{name}{ARCHIVE_SUFFIX}"
        if not archive.is_file():
            raise MalformedReleaseError(
                f"Job '{name}' archive not found: {JOBS_DIR}/{archive.name}",
                path=f"{JOBS_DIR}/{archive.name}",
            )

        extracted = self.extraction_root / EXTRACTED_JOBS_DIR / name
        self._extract(archive, extracted)

        job_manifest_path = extracted / JOB_MANIFEST
        if not job_manifest_path.is_file():
            raise MalformedReleaseError(
                f"Job '{name}' is missing {JOB_MANIFEST}",
                path=f"{JOBS_DIR}/{archive.name}:{JOB_MANIFEST}",
            )
        job_manifest = _load_yaml_mapping(job_manifest_path)

        manifest_prefix = f"{field_name}:{JOB_MANIFEST}"
        templates = job_manifest.get("templates") or {}
        if not isinstance(templates, dict):
            raise _field_error(f"{manifest_prefix}.templates", "must be a mapping")
        for src, dst in templates.items():
            if not isinstance(src, str) or not isinstance(dst, str):
                raise _field_error(
                    f"{manifest_prefix}.templates", "keys and values must be strings"
                )

        return Job(
            name=name,
            version=version,
            fingerprint=fingerprint,
            sha1=sha1,
            templates=dict(templates),
            packages=_str_tuple(job_manifest, "packages", f"{manifest_prefix}.packages"),
            extracted_path=extracted,
            manifest_name=_optional_str(job_manifest, "name", f"{manifest_prefix}.name") or None,
        )

    def _read_package(self, entry: Any, field_name: str, release_root: Path) -> Package:
        if not isinstance(entry, dict):
            raise _field_error(field_name, "must be a mapping")

        name = _required_str(entry, "name", f"{field_name}.name")
        package = Package(
            name=name,
            version=_optional_str(entry, "version", f"{field_name}.version", allow_number=True),
            fingerprint=_optional_str(entry, "fingerprint", f"{field_name}.fingerprint"),
            sha1=_optional_str(entry, "sha1", f"{field_name}.sha1"),
            dependencies=_str_tuple(entry, "dependencies", f"{field_name}.dependencies"),
        )
        if not name:
            return package

        _check_plain_name(name, f"{field_name}.name")

        archive = release_root / PACKAGES_DIR / f"{name}{ARCHIVE_SUFFIX}"
        if not archive.is_file():
            raise MalformedReleaseError(
                f"Package '{name}' archive not found: {PACKAGES_DIR}/{archive.name}",
                path=f"{PACKAGES_DIR}/{archive.name}",
            )

        return Package(
            name=package.name,
            version=package.version,
            fingerprint=package.fingerprint,
            sha1=package.sha1,
            dependencies=package.dependencies,
            archive_path=archive,
        )


# =============================================================================
# Descriptor parsing helpers
# =============================================================================


def _field_error(field_name: str, problem: str) -> MalformedReleaseError:
    return MalformedReleaseError(f"Field '{field_name}' {problem}", field=field_name)


def _load_yaml_mapping(path: Path) -> dict[str, Any]:
    """Load a YAML manifest that must contain a mapping."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedReleaseError(
            f"Reading {path.name}: {e}", path=str(path), cause=e
        ) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedReleaseError(
            f"Invalid YAML in {path.name}: {e}", path=str(path), cause=e
        ) from e

    if not isinstance(data, dict):
        raise MalformedReleaseError(
            f"{path.name} must contain a mapping, got {type(data).__name__}",
            path=str(path),
        )
    return data


def _coerce_str(value: Any, field_name: str, allow_number: bool) -> str:
    if isinstance(value, str):
        return value
    # bool is an int subclass; "version: yes" is not a version
    if allow_number and isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise _field_error(field_name, f"must be a string, got {type(value).__name__}")


def _required_str(
    data: dict[str, Any], key: str, field_name: str, allow_number: bool = False
) -> str:
    if key not in data or data[key] is None:
        raise _field_error(field_name, "is required")
    return _coerce_str(data[key], field_name, allow_number)


def _optional_str(
    data: dict[str, Any], key: str, field_name: str, allow_number: bool = False
) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return _coerce_str(value, field_name, allow_number)


def _required_list(data: dict[str, Any], key: str, field_name: str) -> list[Any]:
    if key not in data:
        raise _field_error(field_name, "is required")
    value = data[key]
    if value is None:
        return []
    if not isinstance(value, list):
        raise _field_error(field_name, f"must be a list, got {type(value).__name__}")
    return value


def _str_tuple(data: dict[str, Any], key: str, field_name: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise _field_error(field_name, f"must be a list, got {type(value).__name__}")
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise _field_error(f"{field_name}[{i}]", "must be a string")
    return tuple(value)


def _check_plain_name(name: str, field_name: str) -> None:
    """Names become file names; reject anything that could escape the release."""
    if "/" in name or "\\" in name or name in (".", ".."):
        raise _field_error(field_name, f"is not a plain name: '{name}'")

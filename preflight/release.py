"""
Release description - the parsed contents of a release archive.

A Release is built once per run by ReleaseReader and is read-only afterward.
Parsing is permissive: cross-references (job -> package, package -> package)
are recorded as declared and only checked by ReleaseValidator.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


RELEASE_MANIFEST = "release.MF"
JOB_MANIFEST = "job.MF"
JOB_MONIT = "monit"
JOB_TEMPLATES_DIR = "templates"
JOBS_DIR = "jobs"
PACKAGES_DIR = "packages"
RELEASE_DIR = "release"
EXTRACTED_JOBS_DIR = "extracted_jobs"
ARCHIVE_SUFFIX = ".tgz"


@dataclass(frozen=True)
class Job:
    """
    A job packaged in the release.

    Attributes:
        name: Job name from release.MF
        version: Job version
        fingerprint: Content fingerprint
        sha1: Archive checksum
        templates: Template source -> rendered destination, from job.MF
        packages: Package names the job declares it needs, from job.MF
        extracted_path: Directory holding the unpacked job archive
        manifest_name: Name recorded inside job.MF
    """
    name: str
    version: str = ""
    fingerprint: str = ""
    sha1: str = ""
    templates: dict[str, str] = field(default_factory=dict)
    packages: tuple[str, ...] = ()
    extracted_path: Optional[Path] = None
    manifest_name: Optional[str] = None

    @property
    def monit_path(self) -> Optional[Path]:
        if self.extracted_path is None:
            return None
        return self.extracted_path / JOB_MONIT

    def template_path(self, template: str) -> Optional[Path]:
        if self.extracted_path is None:
            return None
        return self.extracted_path / JOB_TEMPLATES_DIR / template


@dataclass(frozen=True)
class Package:
    """A package compiled into the release."""
    name: str
    version: str = ""
    fingerprint: str = ""
    sha1: str = ""
    dependencies: tuple[str, ...] = ()
    archive_path: Optional[Path] = None


@dataclass(frozen=True)
class Release:
    """
    Structured description of an unpacked release archive.

    Attributes:
        name: Release name
        version: Release version
        jobs: Jobs in release.MF order
        packages: Packages in release.MF order
        extracted_path: Unpacked release tree (inside the run's scratch workspace)
        commit_hash: Source commit the release was built from
        uncommitted_changes: Whether the build tree was dirty
    """
    name: str
    version: str
    jobs: tuple[Job, ...] = ()
    packages: tuple[Package, ...] = ()
    extracted_path: Optional[Path] = None
    commit_hash: Optional[str] = None
    uncommitted_changes: bool = False

    @property
    def package_names(self) -> set[str]:
        return {p.name for p in self.packages}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "name": self.name,
            "version": self.version,
            "commit_hash": self.commit_hash,
            "uncommitted_changes": self.uncommitted_changes,
            "jobs": [
                {"name": j.name, "version": j.version, "packages": list(j.packages)}
                for j in self.jobs
            ],
            "packages": [
                {"name": p.name, "version": p.version, "dependencies": list(p.dependencies)}
                for p in self.packages
            ],
        }

"""
Error classes for preflight runs.

Every stage raises a subclass of PreflightError that wraps the underlying
cause (as `cause` and as `__cause__`). The orchestrator converts the first
failure into a StagedError naming the stage whose guard did not pass:

- MissingArgumentError: a required input was not supplied
- NotFoundError: an input path does not exist
- PathAccessError: an input path exists but cannot be inspected
- WorkspaceCreationError: the scratch directory could not be created
- ExtractionError: the archive (or a nested job archive) could not be unpacked
- MalformedReleaseError: unpacked contents are not a recognizable release
- ValidationFailedError: the release parsed but breaks one or more rules

Error handling contract:
- Errors are exceptions, not values
- No stage retries; every failure is terminal for the run
- ValidationFailedError is an input defect, not a pipeline fault
"""

from typing import TYPE_CHECKING, Optional

from preflight.stages import Stage

if TYPE_CHECKING:
    from preflight.validator import ValidationOutcome, Violation


class PreflightError(Exception):
    """Base exception for preflight."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigError(PreflightError):
    """Configuration could not be loaded or saved."""
    pass


class MissingArgumentError(PreflightError):
    """A required pipeline argument was not supplied."""

    def __init__(self, argument: str, message: Optional[str] = None):
        super().__init__(message or f"No {argument} provided")
        self.argument = argument


class NotFoundError(PreflightError):
    """Path does not exist."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(f"Path '{path}' does not exist", cause)
        self.path = path


class PathAccessError(PreflightError):
    """
    Path could not be inspected for a reason other than absence.

    Examples:
    - Permission denied on a parent directory
    - I/O error from the underlying filesystem
    """

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        reason = cause.strerror if isinstance(cause, OSError) and cause.strerror else str(cause)
        super().__init__(f"Checking path '{path}': {reason}", cause)
        self.path = path


class WorkspaceCreationError(PreflightError):
    """Scratch workspace could not be created."""
    pass


class ExtractionError(PreflightError):
    """Archive extraction failed."""

    def __init__(self, archive_path: str, cause: Optional[BaseException] = None):
        super().__init__(f"Extracting archive '{archive_path}': {cause}", cause)
        self.archive_path = archive_path


class MalformedReleaseError(PreflightError):
    """
    Unpacked contents are not a recognizable release.

    Carries the offending descriptor `field` (e.g. "version", "jobs[0].name")
    or filesystem `path`, whichever applies.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.field = field
        self.path = path


class ValidationFailedError(PreflightError):
    """Release parsed but violates one or more structural rules."""

    def __init__(self, outcome: "ValidationOutcome"):
        lines = [f"Release has {len(outcome.violations)} violation(s):"]
        lines.extend(f"  - {v}" for v in outcome.violations)
        super().__init__("\n".join(lines))
        self.outcome = outcome

    @property
    def violations(self) -> tuple["Violation", ...]:
        return self.outcome.violations


class StagedError(PreflightError):
    """
    Terminal failure of a pre-flight run.

    Attributes:
        stage: Stage whose guard failed
        cause: Underlying PreflightError raised by that stage
    """

    def __init__(self, stage: Stage, cause: PreflightError):
        super().__init__(f"Pre-flight failed at stage '{stage.value}': {cause}", cause)
        self.stage = stage

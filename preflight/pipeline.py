"""
Pre-flight orchestrator.

Sequences one run through the stage state machine:

    args_checked -> archive_exists -> manifest_path_set -> manifest_exists
    -> workspace_acquired -> extracted -> validated -> done

The first failing guard reports one line to the operator, logs the failure,
and raises StagedError chained from the underlying cause. Once the workspace
is acquired its release is bound to a `with` block, so every later exit path
removes it. Nothing is retried.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Union

from preflight.config import PreflightConfig, load_config
from preflight.errors import (
    ExtractionError,
    MalformedReleaseError,
    MissingArgumentError,
    NotFoundError,
    PathAccessError,
    PreflightError,
    StagedError,
    ValidationFailedError,
    WorkspaceCreationError,
)
from preflight.extractor import Extractor, TarExtractor
from preflight.reader import ReleaseReader
from preflight.release import Release
from preflight.stages import Stage, next_stage
from preflight.ui import UI, ConsoleUI
from preflight.validation import FileValidator
from preflight.validator import ReleaseValidator
from preflight.workspace import ScratchWorkspace, acquire_workspace

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "preflight-release-"


@dataclass
class PreflightResult:
    """Result of a successful pre-flight run."""

    archive_path: str
    manifest_path: str
    release: Release
    started_at: datetime
    ended_at: datetime
    duration_seconds: float
    stages: List[Stage] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.stages) and self.stages[-1] is Stage.DONE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "archive_path": self.archive_path,
            "manifest_path": self.manifest_path,
            "release": self.release.to_dict(),
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "stages": [s.value for s in self.stages],
        }


class PreflightPipeline:
    """
    Runs the pre-flight checks for one release archive.

    Each call to run() is independent and acquires its own scratch workspace,
    so a single pipeline may be shared by concurrent callers.
    """

    def __init__(
        self,
        config: Optional[PreflightConfig] = None,
        extractor: Optional[Extractor] = None,
        ui: Optional[UI] = None,
        file_validator: Optional[FileValidator] = None,
        workspace_prefix: str = WORKSPACE_PREFIX,
    ):
        """
        Initialize pipeline.

        Args:
            config: Preflight configuration (defaults to $PREFLIGHT_HOME/config.yaml)
            extractor: Archive decoder (defaults to TarExtractor)
            ui: Operator-facing reporting channel (defaults to ConsoleUI)
            file_validator: Existence checker
            workspace_prefix: Scratch directory name prefix
        """
        self.config = config or load_config()
        self.extractor = extractor or TarExtractor()
        self.ui = ui or ConsoleUI()
        self.file_validator = file_validator or FileValidator()
        self.workspace_prefix = workspace_prefix

    def run(
        self,
        archive_path: Optional[Union[str, Path]],
        manifest_path: Optional[Union[str, Path]] = None,
    ) -> PreflightResult:
        """
        Run all pre-flight stages.

        Args:
            archive_path: Release archive to check
            manifest_path: Deployment manifest (defaults to the configured deployment)

        Returns:
            PreflightResult ending in Stage.DONE

        Raises:
            StagedError: On the first failing stage; `cause` holds the stage error
        """
        started_at = datetime.now(timezone.utc)
        start_time = time.monotonic()
        reached = [Stage.START]

        if manifest_path is None:
            manifest_path = self.config.deployment

        logger.info(
            f"Starting pre-flight for {archive_path}",
            extra={
                "event": "preflight_started",
                "metadata": {
                    "archive_path": str(archive_path) if archive_path else None,
                    "manifest_path": str(manifest_path) if manifest_path else None,
                },
            },
        )

        if not archive_path:
            self._fail(
                Stage.ARGS_CHECKED,
                MissingArgumentError("release archive"),
                "No release archive provided",
            )
        self._advance(reached, Stage.ARGS_CHECKED)
        archive_path = str(archive_path)

        self._check_exists(Stage.ARCHIVE_EXISTS, archive_path, f"Release archive '{archive_path}'")
        self._advance(reached, Stage.ARCHIVE_EXISTS)

        if not manifest_path:
            self._fail(
                Stage.MANIFEST_PATH_SET,
                MissingArgumentError("deployment", "No deployment set"),
                "No deployment set",
            )
        self._advance(reached, Stage.MANIFEST_PATH_SET)
        manifest_path = str(manifest_path)

        self._check_exists(
            Stage.MANIFEST_EXISTS, manifest_path, f"Deployment manifest path '{manifest_path}'"
        )
        self._advance(reached, Stage.MANIFEST_EXISTS)

        workspace = self._acquire_workspace()
        with workspace as extraction_root:
            self._advance(reached, Stage.WORKSPACE_ACQUIRED)

            try:
                release = ReleaseReader(archive_path, extraction_root, self.extractor).read()
            except (ExtractionError, MalformedReleaseError) as e:
                self._fail(Stage.EXTRACTED, e, f"Release archive '{archive_path}' is not a release")
            self._advance(reached, Stage.EXTRACTED)

            try:
                ReleaseValidator(release).validate_or_raise()
            except ValidationFailedError as e:
                self._fail(
                    Stage.VALIDATED, e, f"Release archive '{archive_path}' is not a valid release"
                )
            self._advance(reached, Stage.VALIDATED)
            self._advance(reached, Stage.DONE)

        duration = time.monotonic() - start_time
        result = PreflightResult(
            archive_path=archive_path,
            manifest_path=manifest_path,
            release=release,
            started_at=started_at,
            ended_at=datetime.now(timezone.utc),
            duration_seconds=duration,
            stages=reached,
        )

        logger.info(
            f"Pre-flight passed for {release.name}/{release.version}",
            extra={
                "event": "preflight_completed",
                "metadata": {"duration_seconds": duration, "release": release.to_dict()},
            },
        )
        return result

    def _check_exists(self, stage: Stage, path: str, label: str) -> None:
        try:
            self.file_validator.exists(path)
        except NotFoundError as e:
            self._fail(stage, e, f"{label} does not exist")
        except PathAccessError as e:
            self._fail(stage, e, f"{label} is not accessible")

    def _acquire_workspace(self) -> ScratchWorkspace:
        try:
            return acquire_workspace(self.workspace_prefix, base_dir=self.config.get_workspace_dir())
        except WorkspaceCreationError as e:
            self._fail(Stage.WORKSPACE_ACQUIRED, e, "Could not create a temporary directory")

    def _advance(self, reached: List[Stage], stage: Stage) -> None:
        if next_stage(reached[-1]) is not stage:
            raise RuntimeError(f"Illegal transition {reached[-1].value} -> {stage.value}")
        reached.append(stage)
        logger.debug(
            f"Stage {stage.value} passed",
            extra={"stage": stage.value, "event": "stage_passed"},
        )

    def _fail(self, stage: Stage, cause: PreflightError, message: str) -> NoReturn:
        self.ui.error(message)
        logger.error(
            f"Pre-flight failed at {stage.value}: {cause}",
            extra={
                "stage": stage.value,
                "event": "stage_failed",
                "metadata": {"error_type": type(cause).__name__, "error": str(cause)},
            },
        )
        raise StagedError(stage, cause) from cause


def run_preflight(
    archive_path: Optional[Union[str, Path]],
    manifest_path: Optional[Union[str, Path]],
    extractor: Optional[Extractor] = None,
    ui: Optional[UI] = None,
    config: Optional[PreflightConfig] = None,
) -> PreflightResult:
    """
    Run pre-flight checks with explicit inputs.

    Unlike PreflightPipeline(), this does not read the persisted
    configuration unless `config` is given.

    Raises:
        StagedError: On the first failing stage
    """
    pipeline = PreflightPipeline(
        config=config or PreflightConfig(),
        extractor=extractor,
        ui=ui,
    )
    return pipeline.run(archive_path, manifest_path)

"""
Stage enum defining the pre-flight state machine.

Runs advance strictly in declaration order:

    start -> args_checked -> archive_exists -> manifest_path_set
          -> manifest_exists -> workspace_acquired -> extracted
          -> validated -> done

A failing guard moves the run to the absorbing failed state, tagged with the
stage whose guard did not pass.
"""

from enum import Enum


class Stage(str, Enum):
    """States of a single pre-flight run."""
    START = "start"
    ARGS_CHECKED = "args_checked"
    ARCHIVE_EXISTS = "archive_exists"
    MANIFEST_PATH_SET = "manifest_path_set"
    MANIFEST_EXISTS = "manifest_exists"
    WORKSPACE_ACQUIRED = "workspace_acquired"
    EXTRACTED = "extracted"
    VALIDATED = "validated"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.DONE, Stage.FAILED)


# Transition order; FAILED is reachable from any non-terminal state.
STAGE_ORDER = (
    Stage.START,
    Stage.ARGS_CHECKED,
    Stage.ARCHIVE_EXISTS,
    Stage.MANIFEST_PATH_SET,
    Stage.MANIFEST_EXISTS,
    Stage.WORKSPACE_ACQUIRED,
    Stage.EXTRACTED,
    Stage.VALIDATED,
    Stage.DONE,
)


def next_stage(stage: Stage) -> Stage:
    """Return the state that follows `stage` on the success path.

    Raises:
        ValueError: If `stage` is terminal
    """
    if stage.is_terminal:
        raise ValueError(f"Stage '{stage.value}' is terminal")
    return STAGE_ORDER[STAGE_ORDER.index(stage) + 1]

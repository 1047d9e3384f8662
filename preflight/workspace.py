"""
Scratch workspace lifecycle.

Each pre-flight run extracts into its own uniquely named temporary directory.
The directory is removed when the run ends, whether it succeeded or failed:

    with acquire_workspace("preflight-") as extraction_root:
        ...

Hosts that abandon a run (timeouts, cancellation) may call
ScratchWorkspace.release() from another thread; removal still happens once.
"""

import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

from preflight.errors import WorkspaceCreationError

logger = logging.getLogger(__name__)


class ScratchWorkspace:
    """A temporary directory owned by exactly one pre-flight run."""

    def __init__(self, path: Path):
        self.path = path
        self._released = False
        self._lock = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Recursively remove the workspace. Safe to call more than once."""
        with self._lock:
            if self._released:
                return
            self._released = True

        shutil.rmtree(self.path, ignore_errors=True)
        logger.debug(
            f"Released workspace {self.path}",
            extra={"event": "workspace_released", "metadata": {"path": str(self.path)}},
        )

    def __enter__(self) -> Path:
        return self.path

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"ScratchWorkspace(path={self.path}, released={self._released})"


def acquire_workspace(
    prefix: str,
    base_dir: Optional[Union[str, Path]] = None,
) -> ScratchWorkspace:
    """
    Create a new scratch workspace.

    Args:
        prefix: Directory name prefix (a unique suffix is always appended)
        base_dir: Parent directory (defaults to the system temp dir)

    Returns:
        ScratchWorkspace for the new directory

    Raises:
        WorkspaceCreationError: If the directory could not be created
    """
    try:
        path = tempfile.mkdtemp(prefix=prefix, dir=base_dir)
    except OSError as e:
        raise WorkspaceCreationError(
            f"Creating scratch workspace with prefix '{prefix}': {e}", cause=e
        ) from e

    logger.debug(
        f"Acquired workspace {path}",
        extra={"event": "workspace_acquired", "metadata": {"path": path}},
    )
    return ScratchWorkspace(Path(path))

"""
Path existence checks run before any extraction happens.
"""

import os
from pathlib import Path
from typing import Union

from preflight.errors import NotFoundError, PathAccessError


class FileValidator:
    """Checks that operator-supplied paths resolve to filesystem entries."""

    def exists(self, path: Union[str, Path]) -> None:
        """
        Confirm `path` exists.

        Args:
            path: File or directory path

        Raises:
            NotFoundError: If nothing exists at `path`
            PathAccessError: If the path could not be checked (permissions, I/O,
                a name the OS rejects such as one with a NUL byte)
        """
        try:
            os.stat(path)
        except FileNotFoundError as e:
            raise NotFoundError(str(path), cause=e) from e
        except NotADirectoryError as e:
            # a parent component is a regular file
            raise NotFoundError(str(path), cause=e) from e
        except OSError as e:
            raise PathAccessError(str(path), cause=e) from e
        except ValueError as e:
            # os.stat rejects embedded NUL bytes before reaching the filesystem
            raise PathAccessError(str(path), cause=e) from e

"""Archive extraction capability.

The pipeline treats extraction as opaque: anything with an
`extract(archive_path, target_dir)` method will do. TarExtractor is the
default and handles plain, gzip, bzip2 and xz tarballs.
"""

import logging
import tarfile
from pathlib import Path
from typing import Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@runtime_checkable
class Extractor(Protocol):
    """Protocol for archive decoders."""

    def extract(self, archive_path: PathLike, target_dir: PathLike) -> None:
        """Unpack `archive_path` into `target_dir`.

        Raises:
            Exception: Any failure; callers wrap it with stage context
        """
        ...


class TarExtractor:
    """Extractor backed by the tarfile module."""

    def extract(self, archive_path: PathLike, target_dir: PathLike) -> None:
        target = Path(target_dir)
        target.mkdir(parents=True, exist_ok=True)

        logger.debug(
            f"Extracting {archive_path} into {target}",
            extra={"event": "extract_started", "metadata": {"archive": str(archive_path)}},
        )

        with tarfile.open(archive_path, "r:*") as tar:
            # "data" filter (3.10.12+, 3.11.4+) keeps every member inside target
            tar.extractall(target, filter="data")

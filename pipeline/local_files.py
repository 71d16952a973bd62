"""Scoped local temp files used while transferring CSVs."""
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


@contextmanager
def temp_csv_path(prefix: str, temp_dir: Optional[Path] = None) -> Iterator[Path]:
    """
    Yield the path of a fresh, empty local temp file and delete it on exit,
    whether the block succeeds or raises. Failure to delete is logged and
    never replaces the block's own outcome.
    """
    if temp_dir is not None:
        Path(temp_dir).mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=".csv", dir=temp_dir)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
            logger.debug("Removed temp file %s", path)
        except OSError as exc:
            logger.warning("Failed to remove temp file %s: %s", path, exc)

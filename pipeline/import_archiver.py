"""
Moves consumed inbound files into /processed/{entity}/ so they are not
imported twice.
"""
import logging
import posixpath
from typing import Optional

from .errors import RemoteErrorCode, RemoteFileError
from .layout import processed_dir
from .remote_channel import RemoteFileChannel

logger = logging.getLogger(__name__)


class ImportArchiver:

    def __init__(self, channel: RemoteFileChannel) -> None:
        self.channel = channel

    def archive(self, remote_path: str, entity_type: str) -> Optional[str]:
        """
        Move remote_path into the processed directory for entity_type,
        keeping its filename. Returns the new path, or None if the source no
        longer exists (for example because a concurrent run already moved it).
        """
        if not entity_type or "/" in entity_type:
            raise ValueError(f"Invalid entity type label: {entity_type!r}")

        target_dir = processed_dir(entity_type)
        with self.channel.session():
            self.channel.mkdir(target_dir, recursive=True)
            if not self.channel.exists(remote_path):
                logger.warning("Nothing to archive — %s no longer exists", remote_path)
                return None
            target = posixpath.join(target_dir, posixpath.basename(remote_path))
            try:
                self.channel.rename(remote_path, target)
            except RemoteFileError as exc:
                # Moved away between the check and the rename
                if exc.code is RemoteErrorCode.NOT_FOUND and not self.channel.exists(remote_path):
                    logger.warning("Nothing to archive — %s was moved by another run", remote_path)
                    return None
                raise

        logger.info("Archived %s to %s", remote_path, target)
        return target

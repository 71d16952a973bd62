"""
Bulk snapshot exporter.

Writes the full current contents of a catalog collection to a new
timestamped file under /out/{entity}/. Snapshots are never merged with
earlier exports; every run adds one more file. The consolidated file in the
same directory remains the authoritative partner feed, and snapshots are
point-in-time copies of it for audit and replay.
"""
import logging
import posixpath
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from models.records import SNAPSHOT_ENTITY_TYPES, get_schema
from .errors import RemoteFileError
from .flat_codec import FlatRecordCodec
from .layout import entity_dir, is_snapshot_name, snapshot_path
from .local_files import temp_csv_path
from .remote_channel import RemoteFileChannel

logger = logging.getLogger(__name__)


class BulkSnapshotExporter:
    """
    Exports catalog collections as timestamped CSV snapshots and rotates
    old snapshots when a retention count is configured.
    """

    def __init__(
        self,
        channel: RemoteFileChannel,
        catalog,
        temp_dir: Optional[Path] = None,
        retention_count: int = 0,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.channel = channel
        self.catalog = catalog
        self.temp_dir = temp_dir
        self.retention_count = retention_count
        self._now = now

    def export(self, entity_type: str) -> Optional[str]:
        """
        Export one collection. Returns the remote path written, or None when
        the collection is empty (nothing is uploaded in that case).
        """
        if entity_type not in SNAPSHOT_ENTITY_TYPES:
            raise ValueError(
                f"{entity_type!r} cannot be exported. "
                f"Must be one of {', '.join(SNAPSHOT_ENTITY_TYPES)}"
            )
        schema = get_schema(entity_type)
        rows = self.catalog.list_collection(entity_type)
        if not rows:
            logger.info("No %s to export — skipping snapshot", entity_type)
            return None

        remote_path = snapshot_path(entity_type, self._now())
        codec = FlatRecordCodec(schema.fieldnames)

        logger.info("Exporting %d %s to %s", len(rows), entity_type, remote_path)
        with self.channel.session():
            with temp_csv_path(f"{entity_type}_", self.temp_dir) as local:
                codec.write_file(local, [schema.to_record(r) for r in rows])
                self.channel.mkdir(entity_dir(entity_type), recursive=True)
                self.channel.put(local, remote_path)
            self.rotate_snapshots(entity_type)

        return remote_path

    def export_all(self, entity_types: Optional[Iterable[str]] = None) -> dict[str, Optional[str]]:
        """Export each collection in turn, one after another."""
        results: dict[str, Optional[str]] = {}
        for entity_type in entity_types or SNAPSHOT_ENTITY_TYPES:
            results[entity_type] = self.export(entity_type)
        return results

    def rotate_snapshots(self, entity_type: str) -> list[str]:
        """
        Remove old snapshots of entity_type, keeping only the newest N.
        Returns the paths removed. Listing and removal failures are logged,
        not raised, since the new snapshot is already uploaded by then.
        """
        retention = self.retention_count
        if retention <= 0:
            return []

        directory = entity_dir(entity_type)
        try:
            entries = self.channel.list(directory)
        except RemoteFileError as exc:
            logger.warning("Failed to list %s for snapshot rotation: %s", directory, exc)
            return []
        # The timestamp in the name sorts chronologically
        snapshots = sorted(
            (e.name for e in entries if is_snapshot_name(entity_type, e.name)),
            reverse=True,
        )
        removed: list[str] = []
        for name in snapshots[retention:]:
            path = posixpath.join(directory, name)
            logger.info("Rotating out old snapshot: %s", path)
            try:
                self.channel.remove(path)
                removed.append(path)
            except RemoteFileError as exc:
                logger.warning("Failed to delete old snapshot %s: %s", path, exc)
        return removed

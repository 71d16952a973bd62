"""
Upsert-by-key merge into a single consolidated remote CSV.

For each call the whole remote file is downloaded (or an empty file assumed
if it does not exist yet), decoded, merged with the new record(s) by natural
key, re-encoded and uploaded over the original. The declared fields define
the file: columns in the remote file that are not declared are dropped on
rewrite.

The remote filesystem offers no locking. Before uploading, the file's size
and modification time are compared with what was observed at download; if
another writer got there first the merge is abandoned with a `conflict`
error instead of overwriting their update. The check narrows the race
window but cannot close it, so callers must still keep to one writer per
consolidated file.
"""
import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

from models.records import (
    CONSOLIDATED_ENTITY_TYPES,
    FlatRecord,
    get_schema,
    to_text,
)
from .errors import RemoteErrorCode, RemoteFileError
from .flat_codec import FlatRecordCodec
from .layout import consolidated_path
from .local_files import temp_csv_path
from .remote_channel import RemoteEntry, RemoteFileChannel

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Outcome of one download/merge/upload cycle."""
    path: str
    row_count: int
    inserted: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)

    @property
    def action(self) -> str:
        """'inserted' or 'replaced' for a single-record upsert, 'merged' otherwise."""
        if len(self.inserted) + len(self.replaced) != 1:
            return "merged"
        return "inserted" if self.inserted else "replaced"


def merge_records(
    existing: list[FlatRecord],
    key_field: str,
    fieldnames: Sequence[str],
    incoming: Iterable[dict],
) -> tuple[list[FlatRecord], list[str], list[str]]:
    """
    Merge incoming records into existing rows by key, preserving row order.

    A matching row is replaced in place; an unknown key is appended. If the
    existing rows already hold a key more than once, the first occurrence
    wins and later ones are dropped. Returns (rows, inserted_keys, replaced_keys).
    """
    merged: list[FlatRecord] = []
    index: dict[str, int] = {}
    for row in existing:
        key = row.get(key_field, "")
        if key in index:
            logger.warning("Dropping duplicate row for %s=%s", key_field, key)
            continue
        index[key] = len(merged)
        merged.append(row)

    inserted: list[str] = []
    replaced: list[str] = []
    for record in incoming:
        key = to_text(record.get(key_field))
        row = {f: to_text(record.get(f)) for f in fieldnames}
        if key in index:
            merged[index[key]] = row
            if key not in inserted and key not in replaced:
                replaced.append(key)
        else:
            index[key] = len(merged)
            merged.append(row)
            inserted.append(key)
    return merged, inserted, replaced


class ConsolidatedFileMerger:
    """Maintains consolidated remote files holding one row per natural key."""

    def __init__(self, channel: RemoteFileChannel, temp_dir: Optional[Path] = None) -> None:
        self.channel = channel
        self.temp_dir = temp_dir

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def upsert(
        self,
        remote_path: str,
        key_field: str,
        fieldnames: Sequence[str],
        record: dict,
    ) -> MergeResult:
        """Insert or replace a single record in the consolidated file at remote_path."""
        return self.upsert_many(remote_path, key_field, fieldnames, [record])

    def upsert_many(
        self,
        remote_path: str,
        key_field: str,
        fieldnames: Sequence[str],
        records: Iterable[dict],
    ) -> MergeResult:
        """
        Merge several records in one download/upload cycle. When the batch
        holds the same key twice, the later record wins.
        """
        if key_field not in fieldnames:
            raise ValueError(f"Key field {key_field!r} is not one of the declared fields")
        records = list(records)
        for record in records:
            if not to_text(record.get(key_field)):
                raise ValueError(f"Record has no value for key field {key_field!r}")

        codec = FlatRecordCodec(fieldnames)
        with self.channel.session():
            with temp_csv_path("merge_", self.temp_dir) as local:
                baseline = self._download(remote_path, local)
                existing = codec.read_file(local) if baseline is not None else []

                rows, inserted, replaced = merge_records(existing, key_field, fieldnames, records)
                codec.write_file(local, rows)

                self._ensure_unchanged(remote_path, baseline)
                if baseline is None:
                    self.channel.mkdir(posixpath.dirname(remote_path), recursive=True)
                self.channel.put(local, remote_path)

        logger.info(
            "Consolidated %s: %d inserted, %d replaced, %d rows",
            remote_path, len(inserted), len(replaced), len(rows),
        )
        return MergeResult(path=remote_path, row_count=len(rows), inserted=inserted, replaced=replaced)

    def upsert_entity(self, entity_type: str, record: dict) -> MergeResult:
        """Upsert one catalog row into /out/{entity}/{entity}.csv."""
        schema = self._consolidated_schema(entity_type)
        return self.upsert(
            consolidated_path(entity_type), schema.key_field, schema.fieldnames,
            schema.to_record(record),
        )

    def sync_entity(self, entity_type: str, catalog, key: Optional[str] = None) -> Optional[MergeResult]:
        """
        Push the catalog's current rows of entity_type (or only the row whose
        key equals `key`) into the consolidated file. Returns None if there
        was nothing to push.
        """
        schema = self._consolidated_schema(entity_type)
        rows = catalog.list_collection(entity_type)
        if key is not None:
            rows = [r for r in rows if to_text(r.get(schema.key_field)) == key]
        if not rows:
            logger.info("No %s rows to consolidate%s", entity_type, f" for {key}" if key else "")
            return None
        return self.upsert_many(
            consolidated_path(entity_type), schema.key_field, schema.fieldnames,
            [schema.to_record(r) for r in rows],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _consolidated_schema(entity_type: str):
        if entity_type not in CONSOLIDATED_ENTITY_TYPES:
            raise ValueError(
                f"{entity_type!r} has no consolidated file. "
                f"Must be one of {', '.join(CONSOLIDATED_ENTITY_TYPES)}"
            )
        return get_schema(entity_type)

    def _stat_or_none(self, remote_path: str) -> Optional[RemoteEntry]:
        try:
            return self.channel.stat(remote_path)
        except RemoteFileError as exc:
            if exc.code is RemoteErrorCode.NOT_FOUND:
                return None
            raise

    def _download(self, remote_path: str, local: Path) -> Optional[RemoteEntry]:
        """
        Fetch remote_path into local. Returns the remote stat taken before the
        download, or None if the file does not exist (the only tolerated failure).
        """
        baseline = self._stat_or_none(remote_path)
        if baseline is None:
            logger.info("Consolidated file %s not found — starting empty", remote_path)
            return None
        try:
            self.channel.get(remote_path, local)
        except RemoteFileError as exc:
            if exc.code is not RemoteErrorCode.NOT_FOUND:
                raise
            logger.info("Consolidated file %s vanished before download — starting empty", remote_path)
            return None
        return baseline

    def _ensure_unchanged(self, remote_path: str, baseline: Optional[RemoteEntry]) -> None:
        current = self._stat_or_none(remote_path)
        if baseline is None and current is None:
            return
        if (
            baseline is not None
            and current is not None
            and current.size == baseline.size
            and current.modify_time == baseline.modify_time
        ):
            return
        raise RemoteFileError(
            f"Consolidated file {remote_path} changed during merge",
            code=RemoteErrorCode.CONFLICT,
            operation="put",
            path=remote_path,
            detail=f"before={baseline!r} after={current!r}",
        )

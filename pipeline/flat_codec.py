"""
Delimited-text codec for flat records.

Encodes a list of records into CSV with a header row in a declared column
order, and decodes CSV back into records. Uses the csv module's standard
quoting, so values containing the delimiter, quotes or newlines survive a
round trip.
"""
import csv
import io
import logging
from pathlib import Path
from typing import Iterable, Sequence

from models.records import FlatRecord, to_text
from .errors import EncodingError

logger = logging.getLogger(__name__)


class FlatRecordCodec:
    """
    Reads and writes flat records with a fixed column order.

    Decoding maps columns by header name, so a file whose header carries
    extra columns (or the declared columns in another order) still decodes.
    A header missing any declared column is rejected.
    """

    def __init__(self, fieldnames: Sequence[str], delimiter: str = ","):
        if not fieldnames:
            raise ValueError("FlatRecordCodec needs at least one field")
        self.fieldnames = tuple(fieldnames)
        self.delimiter = delimiter

    def encode(self, records: Iterable[dict]) -> str:
        """Encode records as text with a header row. Unknown keys are ignored."""
        buf = io.StringIO()
        writer = csv.writer(buf, delimiter=self.delimiter, lineterminator="\n")
        writer.writerow(self.fieldnames)
        for record in records:
            writer.writerow([to_text(record.get(f)) for f in self.fieldnames])
        return buf.getvalue()

    def decode(self, text: str) -> list[FlatRecord]:
        """
        Decode text into records. Empty text and a header-only file both
        yield an empty list.
        """
        if not text.strip():
            return []

        reader = csv.reader(io.StringIO(text, newline=""), delimiter=self.delimiter)
        try:
            header = next(reader)
        except StopIteration:
            return []
        except csv.Error as exc:
            raise EncodingError(f"Unreadable header: {exc}", detail=str(exc)) from exc

        header = [h.strip() for h in header]
        if header and header[0].startswith("\ufeff"):
            header[0] = header[0][1:]
        missing = [f for f in self.fieldnames if f not in header]
        if missing:
            raise EncodingError(
                f"Header is missing declared fields: {', '.join(missing)}",
                detail=f"header={header}",
            )

        records: list[FlatRecord] = []
        try:
            for line_no, row in enumerate(reader, start=2):
                if not row:
                    continue  # blank line
                if len(row) > len(header):
                    raise EncodingError(
                        f"Row {line_no} has {len(row)} fields, header has {len(header)}",
                        detail=self.delimiter.join(row)[:200],
                    )
                padded = row + [""] * (len(header) - len(row))
                by_name = dict(zip(header, padded))
                records.append({f: by_name[f] for f in self.fieldnames})
        except csv.Error as exc:
            raise EncodingError(f"Malformed CSV: {exc}", detail=str(exc)) from exc
        return records

    def read_file(self, path: Path) -> list[FlatRecord]:
        """Decode a local file. A missing file is an error; an empty one is not."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise EncodingError(f"File {path} is not valid UTF-8", detail=str(exc)) from exc
        return self.decode(text)

    def write_file(self, path: Path, records: Iterable[dict]) -> int:
        """Encode records into a local file, replacing it. Returns the row count."""
        records = list(records)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.encode(records), encoding="utf-8", newline="")
        logger.debug("Wrote %s (%d rows)", path, len(records))
        return len(records)

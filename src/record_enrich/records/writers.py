from __future__ import annotations

import csv
import io
import json
from typing import Any, Callable, Dict, Iterable, List, Mapping, Protocol, Sequence

from ..util.errors import ConfigError, RecordIOError
from ..util.serialization import record_json_dumps, sanitize_for_json


class RecordSetWriter(Protocol):
    name: str
    mime_type: str
    extension: str

    def write(self, records: Sequence[Mapping[str, Any]]) -> bytes:
        ...


class JsonLinesRecordSetWriter:
    name = "jsonl"
    mime_type = "application/x-ndjson"
    extension = "jsonl"

    def write(self, records: Sequence[Mapping[str, Any]]) -> bytes:
        try:
            return "".join(record_json_dumps(dict(r)) + "\n" for r in records).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise RecordIOError(f"Record cannot be encoded as JSON: {e}") from e


class JsonRecordSetWriter:
    name = "json"
    mime_type = "application/json"
    extension = "json"

    def write(self, records: Sequence[Mapping[str, Any]]) -> bytes:
        try:
            payload = json.dumps([sanitize_for_json(dict(r)) for r in records], ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise RecordIOError(f"Records cannot be encoded as JSON: {e}") from e
        return payload.encode("utf-8")


def _header(records: Iterable[Mapping[str, Any]]) -> List[str]:
    columns: Dict[str, None] = {}
    for rec in records:
        for key in rec.keys():
            columns.setdefault(str(key), None)
    return list(columns)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return record_json_dumps(value)
    return str(value)


class CsvRecordSetWriter:
    """Header is the union of field names in first-seen order; nested values are JSON-encoded."""

    name = "csv"
    mime_type = "text/csv"
    extension = "csv"

    def write(self, records: Sequence[Mapping[str, Any]]) -> bytes:
        buf = io.StringIO(newline="")
        columns = _header(records)
        writer = csv.writer(buf)
        if columns:
            writer.writerow(columns)
        for rec in records:
            writer.writerow([_cell(rec.get(c)) for c in columns])
        return buf.getvalue().encode("utf-8")


WRITERS: Dict[str, Callable[[], RecordSetWriter]] = {
    JsonLinesRecordSetWriter.name: JsonLinesRecordSetWriter,
    JsonRecordSetWriter.name: JsonRecordSetWriter,
    CsvRecordSetWriter.name: CsvRecordSetWriter,
}


def get_writer(name: str) -> RecordSetWriter:
    factory = WRITERS.get(name)
    if factory is None:
        raise ConfigError(f"Unknown record writer '{name}'. Known writers: {', '.join(sorted(WRITERS))}")
    return factory()

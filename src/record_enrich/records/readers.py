from __future__ import annotations

import csv
import io
import json
from typing import Any, Callable, Dict, List, Protocol

from ..util.errors import ConfigError, RecordIOError

Record = Dict[str, Any]


class RecordReader(Protocol):
    name: str

    def read(self, content: bytes) -> List[Record]:
        ...


def _decode(content: bytes, encoding: str) -> str:
    try:
        return content.decode(encoding)
    except UnicodeDecodeError as e:
        raise RecordIOError(f"Input is not valid {encoding}: {e}") from e


class JsonLinesRecordReader:
    name = "jsonl"

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def read(self, content: bytes) -> List[Record]:
        records: List[Record] = []
        for lineno, line in enumerate(_decode(content, self.encoding).splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise RecordIOError(f"Invalid JSON on line {lineno}: {e}") from e
            if not isinstance(obj, dict):
                raise RecordIOError(f"Line {lineno} is not a JSON object")
            records.append(obj)
        return records


class JsonRecordReader:
    """Reads a JSON array of objects, or a single object."""

    name = "json"

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def read(self, content: bytes) -> List[Record]:
        text = _decode(content, self.encoding)
        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RecordIOError(f"Invalid JSON input: {e}") from e
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise RecordIOError("JSON input must be an object or an array of objects")
        return list(data)


class CsvRecordReader:
    """Reads CSV with a header row; empty cells become null."""

    name = "csv"

    def __init__(self, encoding: str = "utf-8", delimiter: str = ",") -> None:
        self.encoding = encoding
        self.delimiter = delimiter

    def read(self, content: bytes) -> List[Record]:
        text = _decode(content, self.encoding)
        reader = csv.DictReader(io.StringIO(text, newline=""), delimiter=self.delimiter)
        records: List[Record] = []
        try:
            for row in reader:
                if None in row:
                    raise RecordIOError(f"Row {reader.line_num} has more values than the header")
                records.append({k: (v if v != "" else None) for k, v in row.items()})
        except csv.Error as e:
            raise RecordIOError(f"Invalid CSV input: {e}") from e
        return records


READERS: Dict[str, Callable[[], RecordReader]] = {
    JsonLinesRecordReader.name: JsonLinesRecordReader,
    JsonRecordReader.name: JsonRecordReader,
    CsvRecordReader.name: CsvRecordReader,
}


def get_reader(name: str) -> RecordReader:
    factory = READERS.get(name)
    if factory is None:
        raise ConfigError(f"Unknown record reader '{name}'. Known readers: {', '.join(sorted(READERS))}")
    return factory()

from __future__ import annotations

import json

import pytest

from record_enrich.records.readers import CsvRecordReader, JsonLinesRecordReader, JsonRecordReader, get_reader
from record_enrich.records.writers import CsvRecordSetWriter, JsonRecordSetWriter, get_writer
from record_enrich.util.errors import ConfigError, RecordIOError


def test_jsonl_reader_skips_blank_lines() -> None:
    records = JsonLinesRecordReader().read(b'{"a": 1}\n\n{"a": 2}\n')
    assert records == [{"a": 1}, {"a": 2}]


@pytest.mark.parametrize("content", [b"{bad\n", b"[1, 2]\n", b"\xff\xfe"])
def test_jsonl_reader_rejects_bad_input(content: bytes) -> None:
    with pytest.raises(RecordIOError):
        JsonLinesRecordReader().read(content)


def test_json_reader_accepts_object_or_array() -> None:
    reader = JsonRecordReader()
    assert reader.read(b'{"a": 1}') == [{"a": 1}]
    assert reader.read(b'[{"a": 1}, {"b": 2}]') == [{"a": 1}, {"b": 2}]
    assert reader.read(b"  ") == []
    with pytest.raises(RecordIOError):
        reader.read(b"[1]")


def test_csv_reader_maps_empty_cells_to_null() -> None:
    records = CsvRecordReader().read(b"id,name\n1,\n2,bob\n")
    assert records == [{"id": "1", "name": None}, {"id": "2", "name": "bob"}]


def test_csv_reader_rejects_ragged_rows() -> None:
    with pytest.raises(RecordIOError):
        CsvRecordReader().read(b"id\n1,2\n")


def test_csv_writer_unions_header_and_encodes_nested_values() -> None:
    content = CsvRecordSetWriter().write([{"a": 1, "tags": ["x"]}, {"b": None, "a": 2}])
    assert content.decode("utf-8").splitlines() == ["a,tags,b", '1,"[""x""]",', "2,,"]


def test_json_writer_output_is_an_array() -> None:
    content = JsonRecordSetWriter().write([{"a": 1}])
    assert json.loads(content) == [{"a": 1}]


def test_jsonl_writer_raises_on_unencodable_value() -> None:
    with pytest.raises(RecordIOError):
        get_writer("jsonl").write([{"a": object()}])


def test_unknown_reader_and_writer_names() -> None:
    with pytest.raises(ConfigError):
        get_reader("xml")
    with pytest.raises(ConfigError):
        get_writer("xml")

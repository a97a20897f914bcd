from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal

from record_enrich.util.errors import (
    AllMustPassError,
    ConfigError,
    ExitCode,
    LookupFailure,
    PathSyntaxError,
    RecordIOError,
    as_exit_code,
)
from record_enrich.util.serialization import record_json_dumps, sanitize_for_json, stable_json_dumps


def test_sanitize_for_json_converts_lookup_values() -> None:
    value = {
        "when": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        "day": date(2024, 1, 2),
        "amount": Decimal("1.50"),
        "raw": b"abc",
        "tags": ("a", "b"),
    }
    assert sanitize_for_json(value) == {
        "when": "2024-01-02T03:04:05+00:00",
        "day": "2024-01-02",
        "amount": "1.50",
        "raw": "abc",
        "tags": ["a", "b"],
    }


def test_record_json_keeps_field_order_and_stable_json_sorts() -> None:
    record = {"b": 1, "a": "é"}
    assert record_json_dumps(record) == '{"b":1,"a":"é"}'
    assert list(json.loads(stable_json_dumps(record))) == ["a", "b"]
    assert stable_json_dumps(record).startswith('{\n  "a"')


def test_exit_codes() -> None:
    assert as_exit_code(ConfigError("x")) == ExitCode.CONFIG_ERROR
    assert as_exit_code(PathSyntaxError("x")) == ExitCode.CONFIG_ERROR
    assert as_exit_code(ValueError("x")) == ExitCode.CONFIG_ERROR
    assert as_exit_code(LookupFailure("x")) == ExitCode.LOOKUP_ERROR
    assert as_exit_code(RecordIOError("x")) == ExitCode.IO_ERROR
    assert as_exit_code(FileNotFoundError("x")) == ExitCode.IO_ERROR
    assert as_exit_code(AllMustPassError("x")) == ExitCode.RUNTIME_ERROR
    assert as_exit_code(RuntimeError("x")) == 1

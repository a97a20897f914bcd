from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any


def sanitize_for_json(value: Any) -> Any:
    """
    Convert common non-JSON types produced by lookups into serializable forms.
    """
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_json(v) for v in value]
    return value


def record_json_dumps(record: Any) -> str:
    """Compact JSON that keeps the record's own field order."""
    return json.dumps(sanitize_for_json(record), ensure_ascii=False, separators=(",", ":"))


def stable_json_dumps(obj: Any) -> str:
    """Deterministic JSON for summaries: sorted keys, indented."""
    return json.dumps(sanitize_for_json(obj), sort_keys=True, indent=2, ensure_ascii=False)

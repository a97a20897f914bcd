from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

import pytest

from record_enrich.engine.executor import EnrichmentExecutor, EnrichmentOutcome, OperationFailure
from record_enrich.lookup import LookupServiceRegistry
from record_enrich.operations.model import ErrorStrategy, Operation, build_operations
from record_enrich.operations.parser import group_operations
from record_enrich.path.cache import RecordPathCache
from record_enrich.util.errors import AllMustPassError, LookupFailure


class _NoKeyService:
    def required_keys(self) -> Set[str]:
        return set()

    def lookup(self, coordinates, attributes) -> Optional[Any]:
        return "Hello, world"


class _FailingService:
    def required_keys(self) -> Set[str]:
        return set()

    def lookup(self, coordinates, attributes) -> Optional[Any]:
        raise LookupFailure("backend unavailable")


class _MultiKeyService:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def required_keys(self) -> Set[str]:
        return {"first", "middle", "last"}

    def lookup(self, coordinates, attributes) -> Optional[Any]:
        self.calls.append(dict(coordinates))
        return " ".join(str(coordinates[k]) for k in ("first", "middle", "last"))


def _operations(entries: Dict[str, str], **services: Any) -> List[Operation]:
    registry = LookupServiceRegistry()
    for name, service in services.items():
        registry.register(name, service)
    return build_operations(group_operations(entries), registry)


def _example_entries(**overrides: str) -> Dict[str, str]:
    entries = {
        "complex.lookup_service": "multiKeyService",
        "complex.record_path": "/full_name",
        "complex.first": "/first_name",
        "complex.middle": "/middle_name",
        "complex.last": "/last_name",
        "simple.lookup_service": "noKeyService",
        "simple.record_path": "/message",
    }
    entries.update(overrides)
    return entries


def _person() -> Dict[str, Any]:
    return {
        "first_name": "John",
        "middle_name": "Q.",
        "last_name": "Public",
        "full_name": None,
        "message": None,
    }


def test_example_record_is_enriched() -> None:
    ops = _operations(_example_entries(), noKeyService=_NoKeyService(), multiKeyService=_MultiKeyService())
    record = _person()

    outcome = EnrichmentExecutor(ops).execute(record, {})

    assert outcome is EnrichmentOutcome.ENRICHED
    assert record["full_name"] == "John Q. Public"
    assert record["message"] == "Hello, world"


def test_example_required_failure_marks_not_enriched() -> None:
    ops = _operations(
        _example_entries(**{"simple.must_pass": "true"}),
        noKeyService=_FailingService(),
        multiKeyService=_MultiKeyService(),
    )
    record = _person()

    outcome = EnrichmentExecutor(ops, ErrorStrategy.ANY_CAN_PASS).execute(record, {})

    assert outcome is EnrichmentOutcome.NOT_ENRICHED
    assert len(record) == 5
    assert record["message"] is None
    assert record["full_name"] == "John Q. Public"


def test_required_failure_stops_remaining_operations() -> None:
    multi = _MultiKeyService()
    entries = {
        "simple.lookup_service": "noKeyService",
        "simple.record_path": "/message",
        "complex.lookup_service": "multiKeyService",
        "complex.record_path": "/full_name",
        "complex.first": "/first_name",
        "complex.middle": "/middle_name",
        "complex.last": "/last_name",
    }
    ops = _operations(entries, noKeyService=_FailingService(), multiKeyService=multi)
    record = _person()

    outcome = EnrichmentExecutor(ops).execute(record, {})

    assert outcome is EnrichmentOutcome.NOT_ENRICHED
    assert multi.calls == []
    assert record["full_name"] is None


def test_optional_failure_is_skipped_and_field_unmodified() -> None:
    ops = _operations(
        _example_entries(**{"simple.must_pass": "false"}),
        noKeyService=_FailingService(),
        multiKeyService=_MultiKeyService(),
    )
    record = _person()

    outcome = EnrichmentExecutor(ops).execute(record, {})

    assert outcome is EnrichmentOutcome.ENRICHED
    assert record["message"] is None
    assert record["full_name"] == "John Q. Public"


def test_all_must_pass_aborts_on_any_failure() -> None:
    ops = _operations(
        _example_entries(**{"simple.must_pass": "false"}),
        noKeyService=_FailingService(),
        multiKeyService=_MultiKeyService(),
    )
    with pytest.raises(AllMustPassError, match="All must pass"):
        EnrichmentExecutor(ops, ErrorStrategy.ALL_MUST_PASS).execute(_person(), {})


def test_missing_target_path_is_a_failure() -> None:
    ops = _operations(
        {"simple.lookup_service": "noKeyService", "simple.record_path": "/not_there"},
        noKeyService=_NoKeyService(),
    )
    executor = EnrichmentExecutor(ops)
    record = {"first_name": "John"}

    with pytest.raises(OperationFailure, match="not in schema"):
        executor.apply(ops[0], record, {})
    assert executor.execute(record, {}) is EnrichmentOutcome.NOT_ENRICHED
    assert "not_there" not in record


def test_none_lookup_result_is_a_failure() -> None:
    class _EmptyService(_NoKeyService):
        def lookup(self, coordinates, attributes) -> Optional[Any]:
            return None

    ops = _operations(
        {"simple.lookup_service": "empty", "simple.record_path": "/message"},
        empty=_EmptyService(),
    )
    record = {"message": "unchanged"}

    assert EnrichmentExecutor(ops).execute(record, {}) is EnrichmentOutcome.NOT_ENRICHED
    assert record["message"] == "unchanged"


def test_missing_coordinate_path_resolves_to_null() -> None:
    multi = _MultiKeyService()
    ops = _operations(_example_entries(), noKeyService=_NoKeyService(), multiKeyService=multi)
    record = {"first_name": "Ann", "last_name": "Lee", "full_name": None, "message": None}

    EnrichmentExecutor(ops).execute(record, {})

    assert multi.calls == [{"first": "Ann", "middle": None, "last": "Lee"}]
    assert record["full_name"] == "Ann None Lee"


def test_attributes_are_passed_to_lookup() -> None:
    seen: List[Dict[str, str]] = []

    class _AttrService(_NoKeyService):
        def lookup(self, coordinates, attributes) -> Optional[Any]:
            seen.append(dict(attributes))
            return attributes.get("filename")

    ops = _operations(
        {"src.lookup_service": "attr", "src.record_path": "/source"},
        attr=_AttrService(),
    )
    record = {"source": None}

    EnrichmentExecutor(ops).execute(record, {"filename": "batch.jsonl"})

    assert seen == [{"filename": "batch.jsonl"}]
    assert record["source"] == "batch.jsonl"


def test_executor_reuses_compiled_paths() -> None:
    cache = RecordPathCache(capacity=10)
    ops = _operations(_example_entries(), noKeyService=_NoKeyService(), multiKeyService=_MultiKeyService())
    executor = EnrichmentExecutor(ops, cache=cache)

    for _ in range(3):
        executor.execute(_person(), {})

    stats = cache.stats()
    assert stats.size == 5
    assert stats.misses == 5
    assert stats.hits == 10


def test_executor_keeps_injected_empty_cache() -> None:
    cache = RecordPathCache(capacity=3)
    executor = EnrichmentExecutor([], cache=cache)

    assert executor.cache is cache
    assert executor.cache.stats().capacity == 3

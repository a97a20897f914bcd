from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence

from ..logging import get_logger
from ..operations.model import ErrorStrategy, Operation
from ..path.cache import RecordPathCache
from ..util.errors import AllMustPassError, LookupFailure

LOG = get_logger(__name__)


class EnrichmentOutcome(str, Enum):
    ENRICHED = "enriched"
    NOT_ENRICHED = "not_enriched"


class OperationFailure(Exception):
    """A single operation could not produce or store its value."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"Operation '{operation}' failed: {message}")


class EnrichmentExecutor:
    """
    Applies the ordered operations to one record at a time.

    The executor holds no per-record state, so one instance may serve
    several input units concurrently as long as its lookups are thread-safe.
    """

    def __init__(
        self,
        operations: Sequence[Operation],
        strategy: ErrorStrategy = ErrorStrategy.ANY_CAN_PASS,
        cache: Optional[RecordPathCache] = None,
    ) -> None:
        self.operations = tuple(operations)
        self.strategy = strategy
        self.cache = cache if cache is not None else RecordPathCache()

    def coordinates_for(self, record: Mapping[str, Any], key_bindings: Mapping[str, str]) -> Dict[str, Any]:
        coordinates: Dict[str, Any] = {}
        for key, path in key_bindings.items():
            field = self.cache.resolve(path, record)
            coordinates[key] = field.get() if field is not None else None
        return coordinates

    def apply(self, operation: Operation, record: MutableMapping[str, Any], attributes: Mapping[str, str]) -> None:
        """Run one operation against the record; raise on any failure."""
        try:
            coordinates = self.coordinates_for(record, operation.key_bindings)
            result = operation.lookup.lookup(coordinates, attributes)
            if result is None:
                raise LookupFailure(f"Lookup service '{operation.lookup_name}' returned no value")
            target = self.cache.resolve(operation.record_path, record)
            if target is None:
                raise LookupFailure(f'Path "{operation.record_path}" not in schema.')
            target.set(result)
        except Exception as e:
            raise OperationFailure(operation.name, str(e)) from e

    def execute(self, record: MutableMapping[str, Any], attributes: Mapping[str, str]) -> EnrichmentOutcome:
        """
        Apply every operation in order. Under the 'all' strategy the first
        failure raises AllMustPassError; otherwise a failing required
        operation stops this record and marks it not enriched, while a
        failing optional one is skipped.
        """
        for operation in self.operations:
            try:
                self.apply(operation, record, attributes)
            except OperationFailure as failure:
                if self.strategy is ErrorStrategy.ALL_MUST_PASS:
                    raise AllMustPassError("All must pass, and failure encountered.") from failure
                if operation.required:
                    LOG.debug(
                        "Required operation failed; record not enriched",
                        extra={"operation": operation.name, "error": str(failure)},
                    )
                    return EnrichmentOutcome.NOT_ENRICHED
                LOG.debug(
                    "Optional operation failed; continuing",
                    extra={"operation": operation.name, "error": str(failure)},
                )
        return EnrichmentOutcome.ENRICHED

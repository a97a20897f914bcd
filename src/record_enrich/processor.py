from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from .config import EnrichConfig
from .engine.executor import EnrichmentExecutor, EnrichmentOutcome
from .engine.partition import BatchResult, InputUnit, OutputPartitioner
from .logging import get_logger, log_event
from .lookup import LookupServiceRegistry, build_registry
from .operations.model import Operation, build_operations
from .operations.parser import OperationGroups, group_operations
from .operations.validate import ValidationResult, validate_operations
from .path.cache import CacheStats, RecordPathCache
from .records.readers import RecordReader, get_reader
from .records.writers import get_writer
from .util.errors import ConfigError

LOG = get_logger(__name__)


class InvalidConfigurationError(ConfigError):
    """Raised when scheduling is refused because validation produced failures."""

    def __init__(self, results: List[ValidationResult]) -> None:
        self.results = list(results)
        lines = "\n".join(f"- {r}" for r in self.results)
        super().__init__(f"Configuration has {len(self.results)} validation failure(s):\n{lines}")


class MultiLookupProcessor:
    """
    Host-facing enrichment unit.

    Lifecycle: validate() at design time, schedule() once per configuration
    (builds the immutable operation list), then process() for every input
    unit. process() is safe to call from several threads at once; the
    compiled path cache is shared between them.
    """

    def __init__(
        self,
        config: EnrichConfig,
        registry: Optional[LookupServiceRegistry] = None,
        cache: Optional[RecordPathCache] = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else build_registry(config.lookup_services)
        self.groups: OperationGroups = group_operations(config.dynamic_options)
        self._cache = cache
        self._operations: Optional[List[Operation]] = None
        self._executor: Optional[EnrichmentExecutor] = None
        self._reader: Optional[RecordReader] = None
        self._partitioner: Optional[OutputPartitioner] = None
        self._schedule_lock = threading.Lock()

    def validate(self) -> List[ValidationResult]:
        return validate_operations(self.groups, self.registry)

    @property
    def is_scheduled(self) -> bool:
        return self._executor is not None

    @property
    def operations(self) -> List[Operation]:
        if self._operations is None:
            raise RuntimeError("Processor is not scheduled")
        return list(self._operations)

    def cache_stats(self) -> Optional[CacheStats]:
        if self._executor is None:
            return None
        return self._executor.cache.stats()

    def schedule(self) -> None:
        with self._schedule_lock:
            self._schedule()

    def _schedule(self) -> None:
        results = self.validate()
        if results:
            raise InvalidConfigurationError(results)
        operations = build_operations(self.groups, self.registry)
        cache = self._cache if self._cache is not None else RecordPathCache(self.config.path_cache_size)
        self._operations = operations
        self._reader = get_reader(self.config.reader)
        self._partitioner = OutputPartitioner(
            get_writer(self.config.writer),
            suppress_empty=self.config.suppress_empty,
        )
        # Set last: is_scheduled keys on the executor.
        self._executor = EnrichmentExecutor(operations, self.config.error_strategy, cache)
        LOG.info(
            "Processor scheduled",
            extra={
                "operations": [op.name for op in operations],
                "error_strategy": self.config.error_strategy.value,
            },
        )

    def _components(self) -> Tuple[EnrichmentExecutor, RecordReader, OutputPartitioner]:
        """Schedule on first use; concurrent first calls build one executor."""
        with self._schedule_lock:
            if self._executor is None:
                self._schedule()
            executor, reader, partitioner = self._executor, self._reader, self._partitioner
        if executor is None or reader is None or partitioner is None:
            raise RuntimeError("Processor is not scheduled")
        return executor, reader, partitioner

    def process(self, unit: InputUnit) -> BatchResult:
        """
        Enrich every record of the unit and partition the results. Any
        exception, including an 'all' strategy violation, discards the
        partial output and routes the unmodified input to failure.
        """
        executor, reader, partitioner = self._components()

        try:
            records = reader.read(unit.content)
            enriched: List[Dict[str, Any]] = []
            not_enriched: List[Dict[str, Any]] = []
            for record in records:
                outcome = executor.execute(record, unit.attributes)
                if outcome is EnrichmentOutcome.ENRICHED:
                    enriched.append(record)
                else:
                    not_enriched.append(record)
            result = partitioner.partition(unit, enriched, not_enriched)
        except Exception as e:
            LOG.error("Error handling enrichment.", exc_info=True, extra={"input": unit.name, "error": str(e)})
            return partitioner.failure(unit, e)

        log_event(
            LOG,
            logging.DEBUG,
            "Input unit processed",
            step="process",
            phase="complete",
            input=unit.name,
            enriched=result.enriched_count,
            not_enriched=result.not_enriched_count,
        )
        return result

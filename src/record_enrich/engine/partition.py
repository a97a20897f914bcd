from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..records.writers import RecordSetWriter

REL_ENRICHED = "enriched"
REL_NOT_ENRICHED = "not enriched"
REL_ORIGINAL = "original"
REL_FAILURE = "failure"

RECORD_COUNT_ATTR = "record.count"
MIME_TYPE_ATTR = "mime.type"


@dataclass(frozen=True)
class InputUnit:
    """One invocation's input: encoded records plus string attributes."""

    content: bytes
    attributes: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_path(cls, path: Path) -> "InputUnit":
        return cls(
            content=path.read_bytes(),
            attributes={
                "filename": path.name,
                "path": str(path.parent),
                "absolute.path": str(path.resolve().parent),
            },
        )

    @property
    def name(self) -> str:
        return str(self.attributes.get("filename") or "input")


@dataclass(frozen=True)
class OutputUnit:
    route: str
    content: bytes
    attributes: Mapping[str, str]
    records: Tuple[Dict[str, Any], ...] = ()

    @property
    def record_count(self) -> int:
        return int(self.attributes.get(RECORD_COUNT_ATTR, len(self.records)))


@dataclass
class BatchResult:
    outputs: List[OutputUnit] = field(default_factory=list)
    enriched_count: int = 0
    not_enriched_count: int = 0
    failed: bool = False
    error: Optional[str] = None

    def route(self, name: str) -> Optional[OutputUnit]:
        for unit in self.outputs:
            if unit.route == name:
                return unit
        return None

    @property
    def routes(self) -> List[str]:
        return [unit.route for unit in self.outputs]

    @property
    def record_count(self) -> int:
        return self.enriched_count + self.not_enriched_count


class OutputPartitioner:
    """
    Encodes the enriched and not-enriched record sets and decides which
    routes receive output for an input unit.
    """

    def __init__(self, writer: RecordSetWriter, *, suppress_empty: bool = False) -> None:
        self.writer = writer
        self.suppress_empty = suppress_empty

    def _record_output(self, route: str, unit: InputUnit, records: Sequence[Dict[str, Any]]) -> OutputUnit:
        attributes = dict(unit.attributes)
        attributes[RECORD_COUNT_ATTR] = str(len(records))
        attributes[MIME_TYPE_ATTR] = self.writer.mime_type
        return OutputUnit(
            route=route,
            content=self.writer.write(records),
            attributes=attributes,
            records=tuple(records),
        )

    def partition(
        self,
        unit: InputUnit,
        enriched: Sequence[Dict[str, Any]],
        not_enriched: Sequence[Dict[str, Any]],
    ) -> BatchResult:
        """
        Build the full set of outputs for a successfully processed unit.
        Encoding happens before anything is returned, so an encode error
        leaves no partial result behind.
        """
        outputs: List[OutputUnit] = []
        for route, records in ((REL_ENRICHED, enriched), (REL_NOT_ENRICHED, not_enriched)):
            if self.suppress_empty and not records:
                continue
            outputs.append(self._record_output(route, unit, records))
        outputs.append(OutputUnit(route=REL_ORIGINAL, content=unit.content, attributes=dict(unit.attributes)))
        return BatchResult(
            outputs=outputs,
            enriched_count=len(enriched),
            not_enriched_count=len(not_enriched),
        )

    def failure(self, unit: InputUnit, error: BaseException) -> BatchResult:
        return BatchResult(
            outputs=[OutputUnit(route=REL_FAILURE, content=unit.content, attributes=dict(unit.attributes))],
            failed=True,
            error=str(error) or type(error).__name__,
        )

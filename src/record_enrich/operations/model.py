from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping

from ..lookup import LookupServiceRegistry
from ..lookup.base import LookupService
from ..util.errors import ConfigError
from .parser import (
    LOOKUP_SERVICE,
    MUST_PASS,
    RECORD_PATH,
    OperationGroups,
    coordinate_bindings,
    parse_must_pass,
)


class ErrorStrategy(str, Enum):
    ANY_CAN_PASS = "any"
    ALL_MUST_PASS = "all"

    @classmethod
    def parse(cls, value: str) -> "ErrorStrategy":
        raw = str(value or "").strip().lower()
        for member in cls:
            if member.value == raw:
                return member
        raise ValueError(f"error_strategy must be one of: any, all; got {value!r}")


@dataclass(frozen=True)
class Operation:
    name: str
    required: bool
    key_bindings: Mapping[str, str]
    lookup: LookupService = field(compare=False)
    lookup_name: str
    record_path: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "key_bindings", MappingProxyType(dict(self.key_bindings)))


def build_operations(groups: OperationGroups, registry: LookupServiceRegistry) -> List[Operation]:
    """
    Turn grouped attributes into Operation objects, in configuration order.
    Groups are expected to have passed validate_operations(); anything that
    still cannot be built raises ConfigError.
    """
    operations: List[Operation] = []
    for name, attributes in groups.items():
        lookup_name = attributes.get(LOOKUP_SERVICE)
        if not lookup_name:
            raise ConfigError(f"Operation '{name}' has no lookup service configured")
        record_path = attributes.get(RECORD_PATH)
        if not record_path:
            raise ConfigError(f"Operation '{name}' is missing property \"{RECORD_PATH}\"")
        operations.append(
            Operation(
                name=name,
                required=parse_must_pass(attributes.get(MUST_PASS)),
                key_bindings=coordinate_bindings(attributes),
                lookup=registry.get(lookup_name),
                lookup_name=lookup_name,
                record_path=record_path,
            )
        )
    return operations

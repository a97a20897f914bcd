"""
Grouping of dynamic '<operation>.<attribute>' configuration entries.

Any configuration key outside the fixed option set is a dynamic entry. Its
name must split into exactly two segments; the first names the operation,
the second the attribute:

    lookup_service  name of the lookup service the operation calls
    must_pass       'true' (default) or 'false'
    record_path     path of the field the lookup result is written to
    <anything else> coordinate name, valued with the path it is read from
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..util.errors import ConfigError

LOOKUP_SERVICE = "lookup_service"
MUST_PASS = "must_pass"
RECORD_PATH = "record_path"
RESERVED_ATTRIBUTES = frozenset({LOOKUP_SERVICE, MUST_PASS, RECORD_PATH})

MUST_PASS_VALUES = ("true", "false")
MUST_PASS_DEFAULT = "true"

OperationGroups = Dict[str, Dict[str, str]]


@dataclass(frozen=True)
class OptionDescriptor:
    name: str
    operation: str
    attribute: str
    kind: str  # lookup_service | must_pass | record_path | coordinate
    allowable_values: Optional[Tuple[str, ...]] = None
    default: Optional[str] = None


def split_option_name(name: str) -> Tuple[str, str]:
    parts = name.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ConfigError(f'Name must be in format "<operation_name>.<property>", got "{name}"')
    return parts[0], parts[1]


def describe_dynamic_option(name: str) -> OptionDescriptor:
    """Definition-time check of a dynamic option name."""
    operation, attribute = split_option_name(name)
    if attribute == LOOKUP_SERVICE:
        return OptionDescriptor(name, operation, attribute, kind=LOOKUP_SERVICE)
    if attribute == MUST_PASS:
        return OptionDescriptor(
            name,
            operation,
            attribute,
            kind=MUST_PASS,
            allowable_values=MUST_PASS_VALUES,
            default=MUST_PASS_DEFAULT,
        )
    if attribute == RECORD_PATH:
        return OptionDescriptor(name, operation, attribute, kind=RECORD_PATH)
    return OptionDescriptor(name, operation, attribute, kind="coordinate")


def _option_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def group_operations(entries: Mapping[str, Any] | Iterable[Tuple[str, Any]]) -> OperationGroups:
    """
    Group dynamic entries by operation name, preserving first-seen order.
    Raises ConfigError on the first malformed name.
    """
    items = entries.items() if isinstance(entries, Mapping) else entries
    groups: OperationGroups = {}
    for name, value in items:
        descriptor = describe_dynamic_option(str(name))
        groups.setdefault(descriptor.operation, {})[descriptor.attribute] = _option_value(value)
    return groups


def coordinate_bindings(attributes: Mapping[str, str]) -> Dict[str, str]:
    return {k: v for k, v in attributes.items() if k not in RESERVED_ATTRIBUTES}


def parse_must_pass(raw: Optional[str]) -> bool:
    if raw is None:
        return True
    value = raw.strip().lower()
    if value not in MUST_PASS_VALUES:
        raise ConfigError(f"must_pass must be one of: {', '.join(MUST_PASS_VALUES)}; got {raw!r}")
    return value == "true"

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from ..lookup import LookupServiceRegistry
from .parser import (
    LOOKUP_SERVICE,
    MUST_PASS,
    MUST_PASS_VALUES,
    RECORD_PATH,
    RESERVED_ATTRIBUTES,
    OperationGroups,
    coordinate_bindings,
)


@dataclass(frozen=True)
class ValidationResult:
    subject: str
    explanation: str
    valid: bool = False

    def __str__(self) -> str:
        return f"{self.subject}: {self.explanation}"


def validate_option_values(groups: OperationGroups) -> List[ValidationResult]:
    """Per-option value checks: must_pass values and non-empty paths."""
    results: List[ValidationResult] = []
    for name, attributes in groups.items():
        must_pass = attributes.get(MUST_PASS)
        if must_pass is not None and must_pass.strip().lower() not in MUST_PASS_VALUES:
            results.append(
                ValidationResult(
                    f"{name}.{MUST_PASS}",
                    f"Value {must_pass!r} is not one of: {', '.join(MUST_PASS_VALUES)}",
                )
            )
        paths = dict(coordinate_bindings(attributes))
        if RECORD_PATH in attributes:
            paths[RECORD_PATH] = attributes[RECORD_PATH]
        for option, value in paths.items():
            if not value.strip():
                results.append(ValidationResult(f"{name}.{option}", f'Property "{option}" must not be empty'))
    return results


def validate_operations(groups: OperationGroups, registry: LookupServiceRegistry) -> List[ValidationResult]:
    """
    Cross-check every operation against its lookup service's required keys
    and structural completeness. All failures are collected; an empty list
    means the configuration is valid.
    """
    results: List[ValidationResult] = []
    for name, attributes in groups.items():
        lookup_name = attributes.get(LOOKUP_SERVICE)
        if lookup_name:
            service = registry.find(lookup_name)
            if service is None:
                results.append(
                    ValidationResult(name, f'Configured lookup service "{lookup_name}" is not registered.')
                )
            else:
                for key in sorted(service.required_keys()):
                    if key in RESERVED_ATTRIBUTES:
                        results.append(
                            ValidationResult(
                                name,
                                f'Configured lookup service requires reserved key "{key}", which cannot be bound as a coordinate',
                            )
                        )
                    elif key not in attributes:
                        results.append(
                            ValidationResult(name, f'Configured lookup service is missing required key "{key}"')
                        )
        else:
            results.append(ValidationResult(name, "No lookup service configured."))

        if attributes.get(RECORD_PATH) is None:
            results.append(ValidationResult(name, f'Missing property "{RECORD_PATH}"'))

    results.extend(validate_option_values(groups))
    return results

from __future__ import annotations

import pytest

from record_enrich.operations.parser import (
    MUST_PASS_DEFAULT,
    coordinate_bindings,
    describe_dynamic_option,
    group_operations,
    parse_must_pass,
    split_option_name,
)
from record_enrich.util.errors import ConfigError


def test_group_operations_by_prefix_in_first_seen_order() -> None:
    groups = group_operations(
        {
            "complex.lookup_service": "multiKeyService",
            "simple.lookup_service": "noKeyService",
            "complex.record_path": "/full_name",
            "simple.record_path": "/message",
            "complex.first": "/first_name",
        }
    )
    assert list(groups) == ["complex", "simple"]
    assert groups["complex"] == {
        "lookup_service": "multiKeyService",
        "record_path": "/full_name",
        "first": "/first_name",
    }
    assert groups["simple"] == {"lookup_service": "noKeyService", "record_path": "/message"}


def test_group_operations_is_idempotent() -> None:
    entries = [
        ("a.lookup_service", "svc"),
        ("a.record_path", "/x"),
        ("a.key", "/k"),
        ("b.lookup_service", "svc"),
        ("b.must_pass", False),
    ]
    assert group_operations(entries) == group_operations(entries)
    assert group_operations(entries)["b"]["must_pass"] == "false"


@pytest.mark.parametrize("name", ["noDot", "a.b.c", ".attr", "op.", ""])
def test_malformed_names_are_rejected(name: str) -> None:
    with pytest.raises(ConfigError, match="<operation_name>.<property>"):
        split_option_name(name)
    with pytest.raises(ConfigError):
        group_operations({name: "value"})


def test_describe_dynamic_option_kinds() -> None:
    assert describe_dynamic_option("op.lookup_service").kind == "lookup_service"
    assert describe_dynamic_option("op.record_path").kind == "record_path"
    must_pass = describe_dynamic_option("op.must_pass")
    assert must_pass.kind == "must_pass"
    assert must_pass.default == MUST_PASS_DEFAULT
    assert must_pass.allowable_values == ("true", "false")
    coord = describe_dynamic_option("op.first")
    assert coord.kind == "coordinate"
    assert coord.operation == "op"
    assert coord.attribute == "first"


def test_coordinate_bindings_exclude_reserved_attributes() -> None:
    attributes = {
        "lookup_service": "svc",
        "must_pass": "true",
        "record_path": "/out",
        "first": "/first_name",
        "last": "/last_name",
    }
    assert coordinate_bindings(attributes) == {"first": "/first_name", "last": "/last_name"}


def test_parse_must_pass() -> None:
    assert parse_must_pass(None) is True
    assert parse_must_pass("true") is True
    assert parse_must_pass(" FALSE ") is False
    with pytest.raises(ConfigError):
        parse_must_pass("maybe")

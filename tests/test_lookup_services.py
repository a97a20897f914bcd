from __future__ import annotations

import pytest

from record_enrich.lookup import (
    LookupServiceRegistry,
    build_lookup_service,
    build_registry,
    list_lookup_types,
    register_lookup_type,
)
from record_enrich.lookup.builtin import (
    ConstantLookupService,
    CsvFileLookupService,
    KeyValueLookupService,
    TemplateLookupService,
)
from record_enrich.util.errors import ConfigError, LookupFailure


def test_builtin_types_are_registered() -> None:
    assert {"constant", "key_value", "csv", "template"} <= set(list_lookup_types())


def test_constant_lookup() -> None:
    service = ConstantLookupService("Hello, world")
    assert service.required_keys() == set()
    assert service.lookup({}, {}) == "Hello, world"


def test_key_value_lookup() -> None:
    service = KeyValueLookupService({"US": "United States", 1: "one"})
    assert service.required_keys() == {"key"}
    assert service.lookup({"key": "US"}, {}) == "United States"
    assert service.lookup({"key": 1}, {}) == "one"
    assert service.lookup({"key": "FR"}, {}) is None
    with pytest.raises(LookupFailure):
        service.lookup({"key": None}, {})


def test_template_lookup_requires_placeholders() -> None:
    service = TemplateLookupService("{first} {middle} {last}")
    assert service.required_keys() == {"first", "middle", "last"}
    assert service.lookup({"first": "John", "middle": "Q.", "last": "Public"}, {}) == "John Q. Public"
    with pytest.raises(LookupFailure, match="middle"):
        service.lookup({"first": "John", "middle": None, "last": "Public"}, {})


def test_csv_lookup(tmp_path) -> None:
    path = tmp_path / "countries.csv"
    path.write_text("code,name\nUS,United States\nUS,Duplicate\nDE,Germany\n", encoding="utf-8")

    service = CsvFileLookupService(str(path), key_column="code", value_column="name")
    assert service.lookup({"key": "US"}, {}) == "United States"
    assert service.lookup({"key": "DE"}, {}) == "Germany"

    with pytest.raises(ConfigError, match="Duplicate"):
        CsvFileLookupService(str(path), key_column="code", value_column="name", ignore_duplicates=False)
    with pytest.raises(ConfigError, match="missing columns"):
        CsvFileLookupService(str(path), key_column="code", value_column="label")
    with pytest.raises(ConfigError, match="not found"):
        CsvFileLookupService(str(tmp_path / "nope.csv"), key_column="code", value_column="name")


def test_build_lookup_service_errors() -> None:
    with pytest.raises(ConfigError, match="unknown type"):
        build_lookup_service("svc", {"type": "redis"})
    with pytest.raises(ConfigError, match="Invalid options"):
        build_lookup_service("svc", {"type": "constant", "nope": 1})
    with pytest.raises(ConfigError):
        build_lookup_service("svc", "constant")  # type: ignore[arg-type]


def test_custom_lookup_type_can_be_registered() -> None:
    class _Upper:
        def __init__(self, field: str) -> None:
            self.field = field

        def required_keys(self):
            return {self.field}

        def lookup(self, coordinates, attributes):
            return str(coordinates[self.field]).upper()

    register_lookup_type("upper_test", _Upper)
    registry = build_registry({"shout": {"type": "upper_test", "field": "word"}})

    assert registry.registered_names() == ["shout"]
    assert registry.get("shout").lookup({"word": "hi"}, {}) == "HI"


def test_registry_rejects_non_services() -> None:
    registry = LookupServiceRegistry()
    with pytest.raises(ConfigError):
        registry.register("bad", object())  # type: ignore[arg-type]
    with pytest.raises(ConfigError, match="not registered"):
        registry.get("missing")
    registry.register("ok", ConstantLookupService(1))
    assert registry.is_registered("ok")
    registry.unregister("ok")
    assert registry.find("ok") is None

from __future__ import annotations

import csv
import string
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Set

from ..util.errors import ConfigError, LookupFailure
from .base import Attributes, Coordinates

KEY_COORDINATE = "key"


class ConstantLookupService:
    """Returns the same value for every lookup; requires no coordinates."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def required_keys(self) -> Set[str]:
        return set()

    def lookup(self, coordinates: Coordinates, attributes: Attributes) -> Optional[Any]:
        return self.value


class KeyValueLookupService:
    """Looks the 'key' coordinate up in a static mapping."""

    def __init__(self, entries: Mapping[str, Any]) -> None:
        if not isinstance(entries, Mapping):
            raise ConfigError("key_value lookup requires 'entries' to be a mapping")
        self._entries: Dict[str, Any] = {str(k): v for k, v in entries.items()}

    def required_keys(self) -> Set[str]:
        return {KEY_COORDINATE}

    def lookup(self, coordinates: Coordinates, attributes: Attributes) -> Optional[Any]:
        key = coordinates.get(KEY_COORDINATE)
        if key is None:
            raise LookupFailure("Coordinate 'key' is null")
        return self._entries.get(str(key))


class CsvFileLookupService:
    """
    Loads a CSV file once and maps the lookup-key column to the value column.
    Duplicate keys keep the first row unless ignore_duplicates is False, in
    which case loading fails.
    """

    def __init__(
        self,
        path: str,
        key_column: str,
        value_column: str,
        encoding: str = "utf-8",
        ignore_duplicates: bool = True,
    ) -> None:
        self.path = Path(path)
        self.key_column = key_column
        self.value_column = value_column
        self._entries = self._load(encoding, ignore_duplicates)

    def _load(self, encoding: str, ignore_duplicates: bool) -> Dict[str, str]:
        if not self.path.exists():
            raise ConfigError(f"CSV lookup file not found: {self.path}")
        entries: Dict[str, str] = {}
        with self.path.open("r", encoding=encoding, newline="") as f:
            reader = csv.DictReader(f)
            columns = set(reader.fieldnames or [])
            missing = [c for c in (self.key_column, self.value_column) if c not in columns]
            if missing:
                raise ConfigError(f"CSV lookup file {self.path} is missing columns: {', '.join(missing)}")
            for row in reader:
                key = row[self.key_column]
                if key in entries:
                    if ignore_duplicates:
                        continue
                    raise ConfigError(f"Duplicate key {key!r} in CSV lookup file {self.path}")
                entries[key] = row[self.value_column]
        return entries

    def required_keys(self) -> Set[str]:
        return {KEY_COORDINATE}

    def lookup(self, coordinates: Coordinates, attributes: Attributes) -> Optional[Any]:
        key = coordinates.get(KEY_COORDINATE)
        if key is None:
            raise LookupFailure("Coordinate 'key' is null")
        return self._entries.get(str(key))


class TemplateLookupService:
    """
    Renders a str.format template from the coordinates, e.g.
    "{first} {middle} {last}". Every placeholder is a required key.
    """

    def __init__(self, template: str) -> None:
        self.template = template
        try:
            self._keys = {
                field_name.split(".")[0].split("[")[0]
                for _, field_name, _, _ in string.Formatter().parse(template)
                if field_name
            }
        except ValueError as e:
            raise ConfigError(f"Invalid lookup template {template!r}: {e}") from e

    def required_keys(self) -> Set[str]:
        return set(self._keys)

    def lookup(self, coordinates: Coordinates, attributes: Attributes) -> Optional[Any]:
        missing = sorted(k for k in self._keys if coordinates.get(k) is None)
        if missing:
            raise LookupFailure(f"Template coordinates are null: {', '.join(missing)}")
        return self.template.format(**coordinates)


def register_builtin_lookup_types() -> None:
    from . import register_lookup_type

    register_lookup_type("constant", ConstantLookupService)
    register_lookup_type("key_value", KeyValueLookupService)
    register_lookup_type("csv", CsvFileLookupService)
    register_lookup_type("template", TemplateLookupService)

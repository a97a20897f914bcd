from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Mapping, Optional

from ..util.errors import ConfigError
from .base import LookupService

LookupFactory = Callable[..., LookupService]


class LookupServiceRegistry:
    """
    Registry of live lookup service instances, keyed by the name operations
    bind to through '<operation>.lookup_service'.
    """

    def __init__(self) -> None:
        self._services: Dict[str, LookupService] = {}
        self._lock = threading.Lock()

    def register(self, name: str, service: LookupService) -> None:
        if not isinstance(service, LookupService):
            raise ConfigError(f"Lookup service '{name}' does not implement required_keys()/lookup()")
        with self._lock:
            self._services[name] = service

    def unregister(self, name: str) -> None:
        with self._lock:
            self._services.pop(name, None)

    def is_registered(self, name: str) -> bool:
        return name in self._services

    def registered_names(self) -> list[str]:
        return sorted(self._services.keys())

    def find(self, name: str) -> Optional[LookupService]:
        return self._services.get(name)

    def get(self, name: str) -> LookupService:
        service = self._services.get(name)
        if service is None:
            raise ConfigError(f"Lookup service '{name}' is not registered")
        return service


_lookup_types: Dict[str, LookupFactory] = {}


def register_lookup_type(type_name: str, factory: LookupFactory) -> None:
    _lookup_types[type_name] = factory


def list_lookup_types() -> list[str]:
    return sorted(_lookup_types.keys())


def build_lookup_service(name: str, definition: Mapping[str, Any]) -> LookupService:
    """
    Instantiate a lookup service from a config definition:
        {"type": "<registered type>", **type-specific options}
    """
    if not isinstance(definition, Mapping):
        raise ConfigError(f"Lookup service '{name}' must be defined as a mapping")
    options = dict(definition)
    type_name = str(options.pop("type", "") or "").strip()
    factory = _lookup_types.get(type_name)
    if factory is None:
        known = ", ".join(list_lookup_types()) or "(none)"
        raise ConfigError(f"Lookup service '{name}' has unknown type '{type_name}'. Known types: {known}")
    try:
        return factory(**options)
    except TypeError as e:
        raise ConfigError(f"Invalid options for lookup service '{name}' ({type_name}): {e}") from e


def build_registry(definitions: Mapping[str, Mapping[str, Any]]) -> LookupServiceRegistry:
    registry = LookupServiceRegistry()
    for name, definition in definitions.items():
        registry.register(name, build_lookup_service(name, definition))
    return registry


from .builtin import register_builtin_lookup_types  # noqa: E402

register_builtin_lookup_types()

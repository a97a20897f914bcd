from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, Set, runtime_checkable

Coordinates = Dict[str, Any]
Attributes = Mapping[str, str]


@runtime_checkable
class LookupService(Protocol):
    """
    Lookup contract consumed by the enrichment engine.
    Implementations must be safe to call from several threads at once and
    signal an unresolvable lookup by raising LookupFailure (any exception is
    treated the same way by the executor).
    """

    def required_keys(self) -> Set[str]:
        ...

    def lookup(self, coordinates: Coordinates, attributes: Attributes) -> Optional[Any]:
        ...

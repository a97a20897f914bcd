from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    LOOKUP_ERROR = 3
    IO_ERROR = 4
    RUNTIME_ERROR = 5


class EnrichError(Exception):
    """Base error for the enrichment engine."""


class ConfigError(EnrichError):
    """Raised for configuration or argument issues."""


class LookupFailure(EnrichError):
    """Raised by a lookup service when it cannot resolve the coordinates."""


class PathSyntaxError(EnrichError):
    """Raised when a record path expression cannot be compiled."""


class RecordIOError(EnrichError):
    """Raised when records cannot be decoded or encoded."""


class FatalEnrichmentError(EnrichError):
    """Raised when a whole input unit must be routed to failure."""


class AllMustPassError(FatalEnrichmentError):
    """Raised when the 'all' error strategy sees any operation failure."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, PathSyntaxError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, LookupFailure):
        return int(ExitCode.LOOKUP_ERROR)
    if isinstance(exc, (RecordIOError, OSError)):
        return int(ExitCode.IO_ERROR)
    if isinstance(exc, EnrichError):
        return int(ExitCode.RUNTIME_ERROR)
    return 1

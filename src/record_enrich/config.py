from __future__ import annotations

import argparse
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .operations.model import ErrorStrategy
from .operations.parser import describe_dynamic_option
from .path.cache import DEFAULT_PATH_CACHE_SIZE
from .records.readers import READERS
from .records.writers import WRITERS
from .util.errors import ConfigError

# --------
# Defaults
# --------
DEFAULT_READER = "jsonl"
DEFAULT_WRITER = "jsonl"
DEFAULT_WORKERS = 4
ENV_PREFIX = "RECORD_ENRICH_"

FIXED_CONFIG_KEYS = {
    "reader",
    "writer",
    "error_strategy",
    "suppress_empty",
    "outdir",
    "workers",
    "log_level",
    "json_logs",
    "progress",
    "path_cache_size",
    "lookup_services",
    "operations",
}
BOOL_CONFIG_KEYS = {"suppress_empty", "json_logs", "progress"}
INT_CONFIG_KEYS = {"workers", "path_cache_size"}
STR_CONFIG_KEYS = {"reader", "writer", "error_strategy", "log_level", "outdir"}


@dataclass(frozen=True)
class EnrichConfig:
    # Record handling
    reader: str = DEFAULT_READER
    writer: str = DEFAULT_WRITER
    error_strategy: ErrorStrategy = ErrorStrategy.ANY_CAN_PASS
    suppress_empty: bool = False
    path_cache_size: int = DEFAULT_PATH_CACHE_SIZE

    # '<operation>.<attribute>' entries, in configuration order
    dynamic_options: Dict[str, str] = field(default_factory=dict)
    lookup_services: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # Run
    inputs: List[Path] = field(default_factory=list)
    outdir: Path = Path("out")
    workers: int = DEFAULT_WORKERS
    progress: bool = True

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _env_bool(name: str) -> Optional[bool]:
    raw = _env_str(name)
    if raw is None:
        return None
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be an integer")


def _dynamic_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _collect_dynamic(data: Dict[str, Any]) -> Dict[str, str]:
    """
    Dynamic entries come from a nested 'operations' mapping and from any
    top-level key outside the fixed option set. Names are checked here, at
    definition time.
    """
    dynamic: Dict[str, str] = {}
    nested = data.get("operations")
    if nested is not None:
        if not isinstance(nested, dict):
            raise ValueError("Config field 'operations' must be a mapping of operation -> attributes")
        for op_name, attributes in nested.items():
            if not isinstance(attributes, dict):
                raise ValueError(f"Operation '{op_name}' must be a mapping of attribute -> value")
            for attr, value in attributes.items():
                dynamic[f"{op_name}.{attr}"] = _dynamic_value(value)
    for key, value in data.items():
        if key not in FIXED_CONFIG_KEYS:
            dynamic[str(key)] = _dynamic_value(value)
    for name in dynamic:
        describe_dynamic_option(name)
    return dynamic


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in FIXED_CONFIG_KEYS or key == "operations" or value is None:
            continue
        if key == "lookup_services":
            if not isinstance(value, dict) or not all(isinstance(v, dict) for v in value.values()):
                raise ValueError("Config field 'lookup_services' must map service names to definitions")
            normalized[key] = {str(k): dict(v) for k, v in value.items()}
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in STR_CONFIG_KEYS:
            if not isinstance(value, str):
                raise ValueError(f"Config field '{key}' must be a string")
            normalized[key] = value
    normalized["dynamic_options"] = _collect_dynamic(data)
    return normalized


def _parse_set_options(pairs: Optional[List[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep:
            raise ConfigError(f"--set expects NAME=VALUE, got {pair!r}")
        name = name.strip()
        describe_dynamic_option(name)
        out[name] = value
    return out


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _timestamp_dir(base: Optional[Union[str, Path]]) -> Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return Path(base or "out") / ts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="record-enrich",
        description="Apply named lookup operations to record files and split them by enrichment outcome",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="YAML/JSON config file")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument("--reader", default=None, choices=sorted(READERS), help="Record reader (default jsonl)")
        p.add_argument("--writer", default=None, choices=sorted(WRITERS), help="Record writer (default jsonl)")
        p.add_argument(
            "--error-strategy",
            default=None,
            choices=[s.value for s in ErrorStrategy],
            help="any: failed records go to 'not enriched'; all: any failure fails the whole input",
        )
        p.add_argument(
            "--suppress-empty",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Do not emit enriched/not-enriched outputs that contain no records",
        )
        p.add_argument("--path-cache-size", type=int, default=None, help="Compiled record path cache capacity")
        p.add_argument(
            "--set",
            dest="set_options",
            action="append",
            metavar="OPERATION.ATTRIBUTE=VALUE",
            help="Add or override an operation option (repeatable)",
        )

    p_run = subparsers.add_parser("run", help="Enrich record files")
    add_common(p_run)
    p_run.add_argument("inputs", nargs="*", type=Path, help="Input record files")
    p_run.add_argument("--outdir", type=Path, default=None, help="Output base directory (out/TS)")
    p_run.add_argument("--workers", type=int, default=None, help=f"Parallel input files (default {DEFAULT_WORKERS})")
    p_run.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show progress bar and summary table",
    )

    p_val = subparsers.add_parser("validate", help="Validate operation configuration")
    add_common(p_val)
    return parser


def load_enrich_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[List[str]] = None,
) -> Tuple[str, EnrichConfig]:
    """
    Build EnrichConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.
    Dynamic operation options come from the config file and --set flags.

    Returns:
      (command, EnrichConfig) where command is run|validate
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command

    base: Dict[str, Any] = {
        "reader": DEFAULT_READER,
        "writer": DEFAULT_WRITER,
        "error_strategy": ErrorStrategy.ANY_CAN_PASS.value,
        "suppress_empty": False,
        "outdir": None,
        "workers": DEFAULT_WORKERS,
        "log_level": "INFO",
        "json_logs": False,
        "progress": True,
        "path_cache_size": DEFAULT_PATH_CACHE_SIZE,
        "lookup_services": {},
        "dynamic_options": {},
    }

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "reader": _env_str("READER"),
            "writer": _env_str("WRITER"),
            "error_strategy": _env_str("ERROR_STRATEGY"),
            "suppress_empty": _env_bool("SUPPRESS_EMPTY"),
            "outdir": _env_str("OUTDIR"),
            "workers": _env_int("WORKERS"),
            "log_level": _env_str("LOG_LEVEL"),
            "json_logs": _env_bool("JSON_LOGS"),
            "progress": _env_bool("PROGRESS"),
            "path_cache_size": _env_int("PATH_CACHE_SIZE"),
        }
    )

    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "reader": getattr(ns, "reader", None),
            "writer": getattr(ns, "writer", None),
            "error_strategy": getattr(ns, "error_strategy", None),
            "suppress_empty": getattr(ns, "suppress_empty", None),
            "outdir": getattr(ns, "outdir", None),
            "workers": getattr(ns, "workers", None),
            "log_level": getattr(ns, "log_level", None),
            "json_logs": getattr(ns, "json_logs", None),
            "progress": getattr(ns, "progress", None),
            "path_cache_size": getattr(ns, "path_cache_size", None),
        }
    )

    merged = {**base, **file_cfg, **env_cfg, **cli_cfg}
    dynamic = dict(file_cfg.get("dynamic_options") or {})
    dynamic.update(_parse_set_options(getattr(ns, "set_options", None)))

    reader = str(merged["reader"]).lower()
    writer = str(merged["writer"]).lower()
    if reader not in READERS:
        raise ValueError(f"Config field 'reader' must be one of: {', '.join(sorted(READERS))}")
    if writer not in WRITERS:
        raise ValueError(f"Config field 'writer' must be one of: {', '.join(sorted(WRITERS))}")

    workers = int(merged["workers"] or DEFAULT_WORKERS)
    path_cache_size = int(merged["path_cache_size"] or DEFAULT_PATH_CACHE_SIZE)
    if workers <= 0:
        raise ValueError(f"workers must be positive, got {workers}")
    if path_cache_size <= 0:
        raise ValueError(f"path_cache_size must be positive, got {path_cache_size}")

    outdir_raw = merged.get("outdir")
    outdir = _timestamp_dir(outdir_raw) if command == "run" else Path(outdir_raw or "out")

    cfg = EnrichConfig(
        reader=reader,
        writer=writer,
        error_strategy=ErrorStrategy.parse(merged["error_strategy"]),
        suppress_empty=bool(merged["suppress_empty"]),
        path_cache_size=path_cache_size,
        dynamic_options=dynamic,
        lookup_services=dict(merged["lookup_services"] or {}),
        inputs=list(getattr(ns, "inputs", None) or []),
        outdir=outdir,
        workers=workers,
        progress=bool(merged["progress"]),
        log_level=str(merged["log_level"] or "INFO").upper(),
        json_logs=bool(merged["json_logs"]),
    )
    return command, cfg


def dump_config(cfg: EnrichConfig) -> Dict[str, Any]:
    return {
        "reader": cfg.reader,
        "writer": cfg.writer,
        "error_strategy": cfg.error_strategy.value,
        "suppress_empty": cfg.suppress_empty,
        "path_cache_size": cfg.path_cache_size,
        "operations": sorted({name.split(".")[0] for name in cfg.dynamic_options}),
        "lookup_services": sorted(cfg.lookup_services),
        "inputs": [str(p) for p in cfg.inputs],
        "outdir": str(cfg.outdir),
        "workers": cfg.workers,
        "log_level": cfg.log_level,
        "json_logs": cfg.json_logs,
    }

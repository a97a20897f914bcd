from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import EnrichConfig, dump_config, load_enrich_config
from .engine.partition import REL_ENRICHED, REL_FAILURE, REL_NOT_ENRICHED, REL_ORIGINAL, BatchResult, InputUnit
from .logging import LogConfig, StepTimers, add_run_log_file, get_logger, log_event, setup_logging
from .processor import InvalidConfigurationError, MultiLookupProcessor
from .records.writers import get_writer
from .util.concurrency import parallel_map_ordered
from .util.errors import ConfigError, ExitCode, as_exit_code
from .util.rich_progress import RunProgress, render_run_summary_table
from .util.serialization import stable_json_dumps

LOG = get_logger(__name__)

OUT_SCHEMA_VERSION = "1"

ROUTE_DIRS: Dict[str, str] = {
    REL_ENRICHED: "enriched",
    REL_NOT_ENRICHED: "not_enriched",
    REL_ORIGINAL: "original",
    REL_FAILURE: "failure",
}


@dataclass(frozen=True)
class InputOutcome:
    input: Path
    result: BatchResult
    written: Tuple[Path, ...]


def _output_path(outdir: Path, route: str, source: Path, extension: str) -> Path:
    route_dir = outdir / ROUTE_DIRS[route]
    if route in (REL_ORIGINAL, REL_FAILURE):
        return route_dir / source.name
    return route_dir / f"{source.stem}.{extension}"


def _check_output_names(inputs: List[Path]) -> None:
    """Record outputs are named by input stem; two inputs sharing one would overwrite each other."""
    seen: Dict[str, Path] = {}
    clashes: List[str] = []
    for path in inputs:
        previous = seen.setdefault(path.stem, path)
        if previous is not path:
            clashes.append(f"{previous} and {path}")
    if clashes:
        raise ConfigError(f"Inputs would write to the same output files: {'; '.join(clashes)}")


def write_outputs(outdir: Path, source: Path, result: BatchResult, extension: str) -> List[Path]:
    written: List[Path] = []
    for unit in result.outputs:
        path = _output_path(outdir, unit.route, source, extension)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(unit.content)
        written.append(path)
    return written


def _run_metrics(outcomes: List[InputOutcome], processor: MultiLookupProcessor) -> Dict[str, Any]:
    per_input: List[Dict[str, Any]] = []
    for outcome in outcomes:
        res = outcome.result
        per_input.append(
            {
                "input": str(outcome.input),
                "status": "FAILED" if res.failed else "OK",
                "records": res.record_count,
                "enriched": res.enriched_count,
                "not_enriched": res.not_enriched_count,
                "routes": res.routes,
                "error": res.error,
                "outputs": [str(p) for p in outcome.written],
            }
        )
    metrics: Dict[str, Any] = {
        "inputs": len(outcomes),
        "failed_inputs": sum(1 for o in outcomes if o.result.failed),
        "enriched_records": sum(o.result.enriched_count for o in outcomes),
        "not_enriched_records": sum(o.result.not_enriched_count for o in outcomes),
        "operations": [op.name for op in processor.operations],
        "per_input": per_input,
    }
    stats = processor.cache_stats()
    if stats is not None:
        metrics["path_cache"] = {"hits": stats.hits, "misses": stats.misses, "size": stats.size}
    return metrics


def _write_run_summary(outdir: Path, metrics: Dict[str, Any], cfg: EnrichConfig) -> Path:
    summary = dict(metrics)
    summary["schema_version"] = OUT_SCHEMA_VERSION
    summary["config"] = dump_config(cfg)
    path = outdir / "run_summary.json"
    path.write_text(stable_json_dumps(summary), encoding="utf-8")
    return path


def cmd_validate(cfg: EnrichConfig) -> int:
    processor = MultiLookupProcessor(cfg)
    results = processor.validate()
    if not results:
        names = ", ".join(processor.groups) or "(none)"
        print(f"OK: configuration valid; operations: {names}")
        return 0
    print(f"INVALID: {len(results)} validation failure(s)")
    for r in results:
        print(f"- {r.subject}: {r.explanation}")
    return int(ExitCode.CONFIG_ERROR)


def cmd_run(cfg: EnrichConfig) -> int:
    if not cfg.inputs:
        raise ConfigError("run requires at least one input file")
    missing = [str(p) for p in cfg.inputs if not p.is_file()]
    if missing:
        raise ConfigError(f"Input file(s) not found: {', '.join(missing)}")
    _check_output_names(cfg.inputs)

    processor = MultiLookupProcessor(cfg)
    processor.schedule()
    extension = get_writer(cfg.writer).extension

    cfg.outdir.mkdir(parents=True, exist_ok=True)
    add_run_log_file(cfg.outdir / "logs" / "run.log")

    timers = StepTimers()
    log_event(
        LOG,
        logging.INFO,
        "Enrichment started",
        step="run",
        phase="start",
        timers=timers,
        inputs=len(cfg.inputs),
        outdir=str(cfg.outdir),
    )

    def _process_one(path: Path) -> InputOutcome:
        result = processor.process(InputUnit.from_path(path))
        written = write_outputs(cfg.outdir, path, result, extension)
        return InputOutcome(input=path, result=result, written=tuple(written))

    with RunProgress(enabled=cfg.progress) as progress:
        progress.start_enrich(total=len(cfg.inputs))
        outcomes = parallel_map_ordered(
            _process_one,
            cfg.inputs,
            cfg.workers,
            on_result=lambda o: progress.advance_enrich(detail=o.input.name),
        )

    metrics = _run_metrics(outcomes, processor)
    _write_run_summary(cfg.outdir, metrics, cfg)
    status = "FAILED" if metrics["failed_inputs"] else "OK"
    render_run_summary_table(enabled=cfg.progress, status=status, metrics=metrics, outdir=str(cfg.outdir))

    log_event(
        LOG,
        logging.ERROR if metrics["failed_inputs"] else logging.INFO,
        "Enrichment complete",
        step="run",
        phase="complete",
        timers=timers,
        failed_inputs=metrics["failed_inputs"],
        enriched_records=metrics["enriched_records"],
        not_enriched_records=metrics["not_enriched_records"],
    )
    return int(ExitCode.RUNTIME_ERROR) if metrics["failed_inputs"] else 0


def main(argv: Optional[List[str]] = None) -> None:
    try:
        command, cfg = load_enrich_config(argv=argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "run":
            code = cmd_run(cfg)
        elif command == "validate":
            code = cmd_validate(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except InvalidConfigurationError as e:
        setup_logging(LogConfig())
        for r in e.results:
            LOG.error("Invalid operation configuration", extra={"subject": r.subject, "error": r.explanation})
        sys.exit(as_exit_code(e))
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()

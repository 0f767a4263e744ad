"""Run folders and report files for command-line batch runs."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from host_resolution.contracts import BatchRunResult, OutcomeCode


@dataclass
class RunPaths:
    run_id: str
    run_dir: Path
    artifacts_dir: Path
    assignments_path: Path
    metrics_path: Path
    summary_path: Path


def slugify(value: str) -> str:
    value = re.sub(r"[^a-z0-9]+", "-", value.strip().lower())
    return value.strip("-") or "run"


def prepare_run_dir(runs_root: str, name: str) -> RunPaths:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    run_id = f"{stamp}_{slugify(name)}"
    run_dir = Path(runs_root) / run_id
    artifacts_dir = run_dir / "artifacts"
    artifacts_dir.mkdir(parents=True, exist_ok=True)
    return RunPaths(
        run_id=run_id,
        run_dir=run_dir,
        artifacts_dir=artifacts_dir,
        assignments_path=artifacts_dir / "assignments.json",
        metrics_path=run_dir / "metrics.json",
        summary_path=run_dir / "summary.md",
    )


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)


def build_summary(run_id: str, transaction_name: str, result: BatchRunResult) -> str:
    counts = result.counts()
    skipped = (
        counts[OutcomeCode.MISSING_CENTERLINE.value] + counts[OutcomeCode.PROBE_FAILED.value]
    )
    return "\n".join(
        [
            f"# Run {run_id}",
            "",
            f"- Transaction: `{transaction_name}`",
            f"- Mode: {result.config.propagation_mode.value}",
            f"- Probe radius: {result.config.probe_radius:g}",
            f"- Duration: {result.elapsed_s:.2f}s",
            f"- Hosts cached: {result.cache_stats.get('cached', 0)}"
            f"/{result.cache_stats.get('scanned', 0)}",
            f"- Entities resolved: {counts[OutcomeCode.RESOLVED.value]}/{counts['entities']}",
            f"- Unresolved: {counts[OutcomeCode.UNRESOLVED.value]}",
            f"- Skipped (no centerline or probe): {skipped}",
            f"- Boolean calls: {result.resolver_stats.get('boolean_calls', 0)}"
            f" ({result.resolver_stats.get('boolean_errors', 0)} errors)",
            "",
        ]
    )

#!/usr/bin/env python3
"""Resolve linear entities in a JSON scene to their hosts and propagate."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from host_resolution import PropagationMode, run_batch
from host_resolution.audit import ResolutionAudit
from host_resolution.memory_model import MemoryTransaction
from host_resolution.run_files import build_summary, prepare_run_dir, write_json
from host_resolution.scene import load_scene

TRANSACTION_NAME = "WallId->RebarHostId"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Assign each linear entity the first host its probe intersects"
    )
    parser.add_argument("--scene", required=True, help="Path to JSON scene file")
    parser.add_argument("--name", default="host_resolution", help="Run name")
    parser.add_argument("--runs-dir", default="runs", help="Runs output root")
    parser.add_argument(
        "--probe-radius",
        type=float,
        default=None,
        help="Probe sphere radius in host length units (overrides scene config)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in PropagationMode],
        default=None,
        help="Propagation mode (overrides scene config)",
    )
    parser.add_argument(
        "--no-prefilter", action="store_true", help="Disable bounds prefilter"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    scene = load_scene(Path(args.scene))
    overrides = {}
    if args.probe_radius is not None:
        overrides["probe_radius"] = float(args.probe_radius)
    if args.mode is not None:
        overrides["propagation_mode"] = PropagationMode(args.mode)
    if args.no_prefilter:
        overrides["use_bounds_prefilter"] = False
    config = dataclasses.replace(scene.config, **overrides)

    run_paths = prepare_run_dir(args.runs_dir, args.name)
    audit = ResolutionAudit(run_id=run_paths.run_id, artifacts_dir=run_paths.artifacts_dir)

    transaction = MemoryTransaction(TRANSACTION_NAME)
    try:
        with transaction:
            result = run_batch(
                scene.hosts, scene.entities, transaction, config=config, audit=audit
            )
    finally:
        audit.record_transaction(transaction.name, transaction.status)
        audit.finalize()

    payload = result.to_payload()
    write_json(run_paths.assignments_path, {"assignments": payload["assignments"]})
    write_json(
        run_paths.metrics_path,
        {
            "run_id": run_paths.run_id,
            "transaction": TRANSACTION_NAME,
            "transaction_status": transaction.status,
            "elapsed_s": payload["elapsed_s"],
            "config": payload["config"],
            "counts": payload["counts"],
            "cache": payload["cache"],
            "resolver": payload["resolver"],
        },
    )
    run_paths.summary_path.write_text(
        build_summary(run_paths.run_id, TRANSACTION_NAME, result), encoding="utf-8"
    )

    counts = result.counts()
    print(f"Run ID: {run_paths.run_id}")
    print(f"Run dir: {run_paths.run_dir}")
    print(f"Resolved: {counts['resolved']}/{counts['entities']}")
    print(f"Unresolved: {counts['unresolved']}")
    print(f"Elapsed: {result.elapsed_s:.2f}s")
    print(f"Assignments: {run_paths.assignments_path}")
    print(f"Decision log: {audit.decision_log_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

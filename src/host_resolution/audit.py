"""Append-only decision log for host resolution runs."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Hashable, List, Optional

from host_resolution.contracts import HostAssignment, PropagationCode

SCHEMA_DECISION = "host_resolution.decision.v1"
SCHEMA_PHASE = "host_resolution.phase.v1"
SCHEMA_TRANSACTION = "host_resolution.transaction.v1"
SCHEMA_HASH_CHAIN = "host_resolution.hash_chain.v1"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _canonical_json(payload: Dict[str, object]) -> str:
    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str
    )


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ResolutionAudit:
    """Hash-chained JSONL log: one phase record per batch phase and one
    decision per resolved entity.
    """

    def __init__(self, run_id: str, artifacts_dir: Path):
        self.run_id = run_id
        self.artifacts_dir = Path(artifacts_dir)
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        self.decision_log_path = self.artifacts_dir / "decision_log.jsonl"
        self.hash_chain_path = self.artifacts_dir / "decision_hash_chain.json"
        self._sequence = 0
        self._prev_hash = "0" * 64
        self._chain: List[Dict[str, object]] = []

    @property
    def record_count(self) -> int:
        return self._sequence

    def _append(self, payload: Dict[str, object]) -> Dict[str, object]:
        self._sequence += 1
        payload.update(
            {
                "run_id": self.run_id,
                "seq": self._sequence,
                "timestamp_utc": _utc_now_iso(),
                "previous_hash": self._prev_hash,
            }
        )
        digest = sha256_text(_canonical_json(payload))
        payload["hash"] = digest

        with self.decision_log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, sort_keys=True, default=str) + "\n")

        self._chain.append(
            {"seq": self._sequence, "hash": digest, "previous_hash": self._prev_hash}
        )
        self._prev_hash = digest
        return payload

    def record_phase(
        self,
        *,
        phase_name: str,
        counts: Dict[str, int],
        notes: Optional[List[str]] = None,
    ) -> Dict[str, object]:
        return self._append(
            {
                "schema_version": SCHEMA_PHASE,
                "phase_name": phase_name,
                "counts": dict(counts),
                "notes": notes or [],
            }
        )

    def record_resolution(
        self,
        assignment: HostAssignment,
        candidate_ids: List[Hashable],
        propagation: PropagationCode,
    ) -> Dict[str, object]:
        tested = candidate_ids[: assignment.hosts_tested]
        return self._append(
            {
                "schema_version": SCHEMA_DECISION,
                "decision_type": "host_resolution",
                "entity_ids": [assignment.entity_id],
                "alternatives": tested,
                "selected": assignment.host_id if assignment.is_resolved else "unresolved",
                "reason_codes": [assignment.outcome.value, propagation.value],
                "numeric_evidence": {"hosts_tested": float(assignment.hosts_tested)},
            }
        )

    def record_transaction(self, name: str, status: str) -> Dict[str, object]:
        """Record how the caller's transaction ended; call before ``finalize``."""
        return self._append(
            {
                "schema_version": SCHEMA_TRANSACTION,
                "transaction_name": name,
                "status": status,
            }
        )

    def finalize(self) -> None:
        payload = {
            "schema_version": SCHEMA_HASH_CHAIN,
            "run_id": self.run_id,
            "final_hash": self._prev_hash,
            "record_count": self._sequence,
            "entries": self._chain,
        }
        self.hash_chain_path.write_text(
            json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
        )

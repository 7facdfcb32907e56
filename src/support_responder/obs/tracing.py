"""Per-turn tracing and routing metrics."""

from __future__ import annotations

import time
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

from support_responder.types import ReplyRoute


@dataclass(slots=True)
class TurnRecord:
    trace_id: str
    timestamp_utc: str
    session_id: str
    route: ReplyRoute
    score: float | None
    tokens_used: int
    latency_ms: float


class TraceStore:
    """In-memory turn storage for API-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, TurnRecord] = {}
        self._max_records = max_records

    def create_record(
        self,
        *,
        session_id: str,
        route: ReplyRoute,
        score: float | None,
        tokens_used: int,
        latency_ms: float,
    ) -> TurnRecord:
        trace_id = str(uuid.uuid4())
        record = TurnRecord(
            trace_id=trace_id,
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            session_id=session_id,
            route=route,
            score=score,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
        )
        self._records[trace_id] = record
        while len(self._records) > self._max_records:
            del self._records[next(iter(self._records))]
        return record

    def get(self, trace_id: str) -> TurnRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TurnRecord]:
        if limit <= 0:
            return []
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate routing, latency and token metrics for dashboard display."""
        records = list(self._records.values())
        routes = Counter(record.route for record in records)
        total = len(records)
        result: dict[str, float | int] = {
            "total_turns": total,
            **{f"{route.value}_turns": routes.get(route, 0) for route in ReplyRoute},
            "avg_latency_ms": 0.0,
            "p95_latency_ms": 0.0,
            "total_tokens": sum(record.tokens_used for record in records),
        }
        if total == 0:
            return result

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        result["avg_latency_ms"] = sum(latencies) / total
        result["p95_latency_ms"] = latencies[p95_index]
        return result


class Timer:
    """Simple context timer used by the responder."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0

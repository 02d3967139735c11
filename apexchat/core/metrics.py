from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0


class InMemoryRequestMetrics:
    def __init__(self) -> None:
        self._metrics: dict[tuple[str, str], EndpointMetric] = {}
        self._webhook_outcomes: dict[str, int] = {}
        self._transitions: dict[tuple[str, str], int] = {}
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        key = (endpoint, method)
        with self._lock:
            metric = self._metrics.setdefault(key, EndpointMetric())
            metric.total_requests += 1
            metric.total_duration_ms += duration_ms
            if status_code >= 400:
                metric.error_count += 1

    def record_webhook_outcome(self, outcome: str) -> None:
        with self._lock:
            self._webhook_outcomes[outcome] = self._webhook_outcomes.get(outcome, 0) + 1

    def record_transition(self, from_state: str, to_state: str) -> None:
        key = (from_state, to_state)
        with self._lock:
            self._transitions[key] = self._transitions.get(key, 0) + 1

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            result: dict[str, dict[str, float | int]] = {}
            for (endpoint, method), metric in self._metrics.items():
                avg = metric.total_duration_ms / metric.total_requests if metric.total_requests else 0.0
                result[f"{method} {endpoint}"] = {
                    "total_requests": metric.total_requests,
                    "total_duration_ms": round(metric.total_duration_ms, 2),
                    "avg_duration_ms": round(avg, 2),
                    "error_count": metric.error_count,
                }
            return result

    def snapshot_webhook(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {
                "outcomes": dict(self._webhook_outcomes),
                "transitions": {
                    f"{from_state}->{to_state}": count
                    for (from_state, to_state), count in self._transitions.items()
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._webhook_outcomes.clear()
            self._transitions.clear()


request_metrics = InMemoryRequestMetrics()

import threading
from typing import Any, Dict, List


class MetricsTracker:
    """Request counters and latencies, process lifetime only."""

    def __init__(self):

        self._lock = threading.Lock()
        self.reset()

    def reset(self):

        self._metrics = {

            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,

            "total_latency": 0.0,
            "avg_latency": 0.0,

            # kept for the p95 calculation
            "latencies": [],

        }

    def record_success(self, latency: float):

        with self._lock:

            self._metrics["total_requests"] += 1

            self._metrics["successful_requests"] += 1

            self._metrics["total_latency"] += latency

            self._metrics["avg_latency"] = (
                self._metrics["total_latency"]
                / self._metrics["total_requests"]
            )

            self._metrics["latencies"].append(latency)

    def record_failure(self):

        with self._lock:

            self._metrics["total_requests"] += 1

            self._metrics["failed_requests"] += 1

    def get_latency_percentile(self, percentile: float) -> float:

        with self._lock:
            latencies: List[float] = list(self._metrics["latencies"])

        if not latencies:
            return 0.0

        sorted_latencies = sorted(latencies)

        index = int(len(sorted_latencies) * percentile / 100)

        index = min(index, len(sorted_latencies) - 1)

        return sorted_latencies[index]

    def get_metrics(self) -> Dict[str, Any]:

        with self._lock:

            snapshot = {
                key: value
                for key, value in self._metrics.items()
                if key != "latencies"
            }

        snapshot["p95_latency"] = self.get_latency_percentile(95)

        return snapshot


metrics_tracker = MetricsTracker()

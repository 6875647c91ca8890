"""In-process counters rendered in the Prometheus text format.

Three families are kept: HTTP traffic per route template, HTTP error
responses per status code and settlement attempts per payment path and
outcome. Request latency is exposed as a summary's ``_sum`` and ``_count``.
"""

import threading
import time
from collections import Counter
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

Labels = Tuple[Tuple[str, str], ...]

FAMILIES = {
    "http_requests_total": ("counter", "HTTP requests by method and route"),
    "http_errors_total": ("counter", "HTTP responses with status >= 400"),
    "http_request_duration_seconds": ("summary", "HTTP request latency"),
    "settlements_total": ("counter", "Settlement attempts by payment path and outcome"),
}


def route_template(path: str) -> str:
    """``/api/orders/42/status`` -> ``/api/orders/:id/status``."""
    return "/".join(":id" if segment.isdigit() else segment for segment in path.split("/"))


def _format_labels(labels: Labels) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{name}="{value}"' for name, value in labels) + "}"


class MetricsCollector:
    def __init__(self):
        self._counts: Counter = Counter()
        self._latency_sum: dict = {}
        self._lock = threading.Lock()

    def _inc(self, family: str, labels: Labels, by: int = 1) -> None:
        self._counts[(family, labels)] += by

    def record_request(self, method: str, path: str, status: int, duration: float) -> None:
        labels = (("method", method), ("path", route_template(path)))
        with self._lock:
            self._inc("http_requests_total", labels)
            self._latency_sum[labels] = self._latency_sum.get(labels, 0.0) + duration
            if status >= 400:
                self._inc("http_errors_total", (("status", str(status)),))

    def record_settlement(self, path: str, outcome: str) -> None:
        """Count one settlement attempt. ``path`` is wallet|gateway."""
        with self._lock:
            self._inc("settlements_total", (("path", path), ("outcome", outcome)))

    def _samples(self, family: str) -> Iterable[str]:
        if family == "http_request_duration_seconds":
            for labels, total in sorted(self._latency_sum.items()):
                count = self._counts[("http_requests_total", labels)]
                yield f"{family}_sum{_format_labels(labels)} {total:.4f}"
                yield f"{family}_count{_format_labels(labels)} {count}"
            return
        for (name, labels), value in sorted(self._counts.items()):
            if name == family:
                yield f"{family}{_format_labels(labels)} {value}"

    def get_prometheus_metrics(self) -> str:
        out = []
        with self._lock:
            for family, (kind, help_text) in FAMILIES.items():
                out.append(f"# HELP {family} {help_text}")
                out.append(f"# TYPE {family} {kind}")
                out.extend(self._samples(family))
        return "\n".join(out) + "\n"


metrics = MetricsCollector()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Times every request except the scrape endpoint itself."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            metrics.record_request(request.method, request.url.path, status, time.perf_counter() - started)

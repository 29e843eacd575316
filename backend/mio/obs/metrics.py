"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"mio_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"mio_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

MATCH_SEARCHES = Counter(
	"mio_match_searches_total",
	"Match searches by outcome",
	["result"],
)

MATCH_SEARCH_LATENCY = Histogram(
	"mio_match_search_duration_seconds",
	"Wall time of admitted match searches",
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

MATCH_CANDIDATES = Histogram(
	"mio_match_search_candidates",
	"Candidates gathered from the preference index per search",
	buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500),
)

MATCHES_CREATED = Counter(
	"mio_matches_created_total",
	"Match pairs created",
	["level"],
)

UNMATCH_TOTAL = Counter(
	"mio_unmatch_total",
	"Unmatch operations",
)

BLOCKS_TOTAL = Counter(
	"mio_blocks_total",
	"Block operations",
	["action"],
)

PARTIAL_WRITES = Counter(
	"mio_partial_writes_total",
	"Two-party operations that only partially completed",
	["op"],
)

FAVORITES_TOTAL = Counter(
	"mio_favorites_total",
	"Favorite mutations by outcome",
	["action", "result"],
)

REDIS_UP = Gauge(
	"mio_redis_up",
	"Redis availability as seen by the readiness probe",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_match_search(result: str) -> None:
	MATCH_SEARCHES.labels(result=result).inc()


def observe_match_search(elapsed_seconds: float, candidates: int) -> None:
	MATCH_SEARCH_LATENCY.observe(elapsed_seconds)
	MATCH_CANDIDATES.observe(candidates)


def inc_match_created(level: str) -> None:
	MATCHES_CREATED.labels(level=level).inc()


def inc_unmatch() -> None:
	UNMATCH_TOTAL.inc()


def inc_block(action: str) -> None:
	BLOCKS_TOTAL.labels(action=action).inc()


def inc_partial_write(op: str) -> None:
	PARTIAL_WRITES.labels(op=op).inc()


def inc_favorite(action: str, result: str) -> None:
	FAVORITES_TOTAL.labels(action=action, result=result).inc()


def mark_redis(up: bool) -> None:
	REDIS_UP.set(1 if up else 0)

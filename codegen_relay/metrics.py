from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info, make_asgi_app

REQUEST_COUNTER = Counter(
    "relay_requests_total",
    "Total number of relay requests processed",
    labelnames=("route", "status"),
)

REQUEST_LATENCY = Histogram(
    "relay_request_latency_seconds",
    "Relay request latency (seconds)",
    labelnames=("route",),
    buckets=(
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.0,
        5.0,
        10.0,
        20.0,
        30.0,
        60.0,
        120.0,
    ),
)

ACTIVE_CONNECTIONS = Gauge(
    "relay_active_connections",
    "Number of relay requests currently in flight",
)

UPSTREAM_REQUESTS = Counter(
    "relay_upstream_requests_total",
    "Outbound calls to the inference API by outcome",
    labelnames=("outcome",),
)

UPSTREAM_LATENCY = Histogram(
    "relay_upstream_latency_seconds",
    "Outbound inference call latency (seconds)",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0),
)

PROMPT_CHARS = Counter(
    "relay_prompt_chars_total",
    "Total characters of composed prompts sent upstream",
)

GENERATED_CHARS = Counter(
    "relay_generated_chars_total",
    "Total characters of generated text returned to callers",
)

SERVICE_INFO = Info("relay_service", "Code generation relay information")

metrics_app = make_asgi_app()


def record_request_metrics(prompt_chars: int, generated_chars: int) -> None:
    PROMPT_CHARS.inc(prompt_chars)
    GENERATED_CHARS.inc(generated_chars)


def update_service_info(model_name: str, version: str = "0.1.0") -> None:
    SERVICE_INFO.info({"model_name": model_name, "version": version})

from __future__ import annotations

import time
from typing import Any, Callable

import structlog

from codegen_relay.config import Settings
from codegen_relay.inference.client import InferenceClient

logger = structlog.get_logger()


class HealthChecker:
    """Local readiness checks. Never calls the upstream model."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.checks: dict[str, Callable[[InferenceClient | None], dict[str, Any]]] = {
            "api_key": self._check_api_key,
            "http_client": self._check_http_client,
        }

    def run_health_checks(self, client: InferenceClient | None = None) -> dict[str, Any]:
        results = {}
        for check_name, check_func in self.checks.items():
            try:
                results[check_name] = check_func(client)
            except Exception as e:
                logger.exception(f"Health check {check_name} failed", error=str(e))
                results[check_name] = {"healthy": False, "error": str(e)}

        overall_healthy = all(check["healthy"] for check in results.values())
        return {
            "status": "ok" if overall_healthy else "degraded",
            "model": self.settings.model_name,
            "checks": results,
            "timestamp": time.time(),
        }

    def _check_api_key(self, client: InferenceClient | None) -> dict[str, Any]:
        if not self.settings.api_key:
            return {"healthy": False, "message": "HUGGINGFACE_API_KEY is not set"}
        return {"healthy": True}

    def _check_http_client(self, client: InferenceClient | None) -> dict[str, Any]:
        if client is None:
            return {"healthy": False, "message": "Inference client not initialized"}
        if client.is_closed:
            return {"healthy": False, "message": "Inference client is closed"}
        return {"healthy": True}

"""
Grafana OTLP Metrics Exporter
==============================

Pushes triage metrics to Grafana Cloud via OTLP.

Metrics exported:
- llm_tokens_total: Total tokens used (prompt + completion)
- llm_latency_ms: LLM request latency in milliseconds
- semantic_cache_checks: One data point per semantic cache check, tagged
  with its outcome (hit, miss, lookup_failed)
"""

import base64
import time
from typing import Optional, Dict, List, Any

import httpx

from issue_triage.config import settings
from issue_triage.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class GrafanaOTLPExporter:
    """
    Export metrics to Grafana Cloud via OTLP HTTP endpoint.

    Uses OpenTelemetry Protocol (OTLP) JSON format for gauges.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None
    ):
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def _gauge(
        self,
        name: str,
        unit: str,
        value: int,
        timestamp_ns: int,
        attributes: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        return {
            "name": name,
            "unit": unit,
            "gauge": {
                "dataPoints": [
                    {
                        "asInt": value,
                        "timeUnixNano": timestamp_ns,
                        "attributes": attributes
                    }
                ]
            }
        }

    def _attributes(self, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        attributes = [{"key": "service", "value": {"stringValue": settings.app_name}}]
        for key, value in values.items():
            attributes.append({"key": key, "value": {"stringValue": str(value)}})
        return attributes

    async def _push(self, metrics: List[Dict[str, Any]]) -> bool:
        payload = {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            {"key": "service.name", "value": {"stringValue": settings.app_name}},
                            {"key": "service.version", "value": {"stringValue": settings.app_version}},
                            {"key": "deployment.environment", "value": {"stringValue": settings.environment}},
                        ]
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("Error exporting metrics to Grafana", extra={"error": str(e)})
            return False

        if response.status_code in (200, 202):
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url
            }
        )
        return False

    async def export_llm_metrics(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        operation: str = "chat_completion"
    ) -> bool:
        """
        Export LLM usage metrics to Grafana.

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attributes = self._attributes({"model": model, "operation": operation})

        return await self._push([
            self._gauge("llm_tokens_total", "1", prompt_tokens + completion_tokens, timestamp_ns, attributes),
            self._gauge("llm_latency_ms", "ms", latency_ms, timestamp_ns, attributes),
        ])

    async def export_cache_outcome(self, outcome: str, similarity: Optional[float] = None) -> bool:
        """
        Export a single semantic cache check outcome.

        Args:
            outcome: hit, miss or lookup_failed
            similarity: Similarity of the best match, when one was found
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attributes = self._attributes({"outcome": outcome})
        metrics = [self._gauge("semantic_cache_checks", "1", 1, timestamp_ns, attributes)]
        if similarity is not None:
            metrics.append(self._gauge(
                "semantic_cache_similarity_pct", "%", round(similarity * 100), timestamp_ns, attributes
            ))
        return await self._push(metrics)


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> Optional[GrafanaOTLPExporter]:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter

"""
Shared metrics configuration for the Confidential Eligibility layer.
"""

from typing import Dict, Optional, Sequence, Tuple, Type, Union

from prometheus_client import Counter, Histogram, Info, CollectorRegistry

Metric = Union[Counter, Histogram]

# name -> (type, help, labels)
_METRIC_DEFINITIONS: Dict[str, Tuple[Type[Metric], str, Sequence[str]]] = {
    "http_requests_total": (Counter, "Total HTTP requests", ("method", "endpoint", "status_code")),
    "http_request_duration_seconds": (Histogram, "HTTP request duration in seconds", ("method", "endpoint")),
    "health_check_total": (Counter, "Total health check requests", ("status",)),
    "errors_total": (Counter, "Total errors", ("error_type", "service")),
    "ledger_calls_total": (Counter, "Total ledger calls", ("operation", "status")),
    "ledger_call_duration_seconds": (Histogram, "Ledger call duration in seconds", ("operation",)),
    "rule_updates_total": (Counter, "Total rule set replacements", ("path",)),
    # Outcome is committed/aborted only; the verdict itself stays encrypted
    "eligibility_checks_total": (Counter, "Total eligibility checks", ("status",)),
    "acl_grants_total": (Counter, "Total ACL grants issued", ("capability",)),
}


class MetricsCollector:
    """Prometheus metrics for one service.

    Each collector owns its registry so that several services (or test
    fixtures) can live in one process without duplicate-timeseries errors.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Metric] = {
            name: metric_type(name, description, list(labels), registry=self.registry)
            for name, (metric_type, description, labels) in _METRIC_DEFINITIONS.items()
        }

        service_info = Info("service_info", "Service information", registry=self.registry)
        service_info.info({"service": service_name, "version": "1.0.0"})

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str):
        self._metrics["errors_total"].labels(error_type=error_type, service=self.service_name).inc()

    def record_ledger_call(self, operation: str, status: str, duration: float):
        """Record one committed or aborted ledger call."""
        self._metrics["ledger_calls_total"].labels(operation=operation, status=status).inc()
        self._metrics["ledger_call_duration_seconds"].labels(operation=operation).observe(duration)

    def record_rule_update(self, path: str):
        self._metrics["rule_updates_total"].labels(path=path).inc()

    def record_eligibility_check(self, status: str):
        self._metrics["eligibility_checks_total"].labels(status=status).inc()

    def record_acl_grant(self, capability: str):
        self._metrics["acl_grants_total"].labels(capability=capability).inc()

    def sample_value(self, metric_name: str, **labels) -> float:
        """Read the current value of a counter sample, 0.0 when unseen."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

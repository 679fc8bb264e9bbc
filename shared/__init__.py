"""
Shared utilities for the Confidential Eligibility layer.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and caller correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing config
- errors: Canonical error types and responses
- base_service: FastAPI service shell with health, metrics and error handlers

Do not import from service_* packages into shared/.
"""

__version__ = "1.0.0"

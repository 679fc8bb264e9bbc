"""
FastAPI service shell shared by Confidential Eligibility services.

A service subclasses ``BaseService``, adds its routes to ``self.app`` and
optionally overrides ``_check_dependencies``. The shell provides health and
metrics endpoints, request-id propagation, request metrics and the mapping
from ``EligibilityLayerException`` to JSON error bodies.
"""

import os
import time
from typing import Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from shared import __version__
from shared.config import ServiceConfig, get_config
from shared.errors import EligibilityLayerException
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector
from shared.tracing import configure_tracing

REQUEST_ID_HEADER = "X-Request-ID"


class HealthResponse(BaseModel):
    service: str
    status: str
    uptime_seconds: float
    dependencies: Dict[str, str]
    version: str
    commit: str


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)

        configure_logging(service_name, self.config.log_level)
        if self.config.enable_tracing:
            configure_tracing(service_name, self.config.otel_exporter, self.config.enable_console_tracing)

        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self._started_at = time.monotonic()

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        local = self.config.env == "local"
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Confidential Eligibility - {self.service_name.title()} Service",
            version=__version__,
            docs_url="/docs" if local else None,
            redoc_url="/redoc" if local else None,
        )

    def _setup_middleware(self):
        """CORS plus request id, metrics and access logging per request."""
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def observe_request(request: Request, call_next):
            started = time.perf_counter()
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            try:
                response = await call_next(request)
                duration = time.perf_counter() - started

                self.metrics.record_http_request(request.method, request.url.path, response.status_code, duration)
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                clear_context()

    def _setup_routes(self):
        """Health, metrics and error mapping shared by every service."""

        @self.app.get("/health", response_model=HealthResponse)
        async def health_check():
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={"service": self.service_name, "status": "error", "error": str(e)}
                )

            self.metrics.record_health_check("ok")
            return HealthResponse(
                service=self.service_name,
                status="ok",
                uptime_seconds=time.monotonic() - self._started_at,
                dependencies=dependencies,
                version=__version__,
                commit=os.getenv("GIT_COMMIT", "unknown"),
            )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus exposition of this service's registry."""
            return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

        @self.app.exception_handler(EligibilityLayerException)
        async def layer_exception_handler(request: Request, exc: EligibilityLayerException):
            self.logger.warning(
                "Request rejected",
                code=exc.code,
                message=exc.message,
                details=exc.details,
                path=request.url.path
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

        @self.app.exception_handler(Exception)
        async def unexpected_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=exc)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(self.app, host=self.config.host, port=self.config.port, log_level=self.config.log_level.lower())

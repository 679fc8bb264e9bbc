"""
Shared configuration management for the Confidential Eligibility layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ELIGIBILITY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Observability
    enable_tracing: bool = Field(default=False)
    otel_exporter: Optional[str] = Field(default=None)
    enable_console_tracing: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "eligibility"
    port: int = 8020
    host: str = "0.0.0.0"

    # Ledger identities
    contract_address: str = Field(default="0x00000000000000000000000000000000e11e1b1e")
    deployer_address: str = Field(default="0x000000000000000000000000000000000000d3e9")

    # Caller authentication
    jwt_secret: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")

    # Rule administration; None derives the value from env
    allow_plaintext_rules: Optional[bool] = Field(default=None)

    # Reference backend storage key, 64 hex chars; random when unset
    backend_key: Optional[str] = Field(default=None)

    # Input proof HMAC key, 64 hex chars; random when unset
    proof_key: Optional[str] = Field(default=None)

    # Uploaded inputs waiting to be bound by a call; oldest are evicted first
    max_uploads: int = Field(default=10000, ge=1)

    # Server-side input encryption; None derives the value from env
    allow_input_encryption: Optional[bool] = Field(default=None)

    @property
    def plaintext_rules_enabled(self) -> bool:
        """Whether the development-only cleartext rule path is accepted."""
        if self.allow_plaintext_rules is not None:
            return self.allow_plaintext_rules
        return self.env != "production"

    @property
    def input_encryption_enabled(self) -> bool:
        """Whether the service encrypts applicant-supplied values itself."""
        if self.allow_input_encryption is not None:
            return self.allow_input_encryption
        return self.env != "production"


def get_config(service_name: str = "eligibility", port: int = 8020, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)

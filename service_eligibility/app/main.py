"""
Eligibility service for the Confidential Eligibility layer.
"""

from typing import Optional

from fastapi import Depends, Header, Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import AuthorizationError
from .auth import CallerAuthenticator
from .contract import EligibilityContract
from .fhe.backend import LocalConfidentialBackend
from .fhe.inputs import EncryptedInputBuilder
from .models import (
    EligibilityCheckRequest, EligibilityCheckResponse, EncryptedInputRequest,
    EncryptedInputResponse, EncryptedRulesRequest,
    EventListResponse, OwnerResponse, OwnershipTransferRequest, PlainRulesRequest,
    RuleHandlesResponse, VersionResponse, decode_hex
)


def _key(value: Optional[str]) -> Optional[bytes]:
    return bytes.fromhex(value) if value else None


class EligibilityService(BaseService):
    """Eligibility service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 backend: Optional[LocalConfidentialBackend] = None):
        super().__init__("eligibility", 8020, config or get_config("eligibility", 8020))

        self.backend = backend or LocalConfidentialBackend(
            storage_key=_key(self.config.backend_key),
            proof_key=_key(self.config.proof_key),
            max_uploads=self.config.max_uploads
        )
        self.authenticator = CallerAuthenticator(self.config.jwt_secret, self.config.jwt_algorithm)
        self.contract = EligibilityContract(
            self.backend,
            self.config.contract_address,
            self.config.deployer_address,
            allow_plaintext_rules=self.config.plaintext_rules_enabled,
            metrics=self.metrics
        )

        if self.config.plaintext_rules_enabled:
            self.logger.warning("Plaintext rule endpoint enabled", env=self.config.env)
        if self.config.input_encryption_enabled:
            self.logger.warning("Server-side input encryption enabled", env=self.config.env)

        self._setup_eligibility_routes()

    def _setup_eligibility_routes(self):
        """Set up eligibility-specific routes."""

        async def current_caller(authorization: Optional[str] = Header(None)) -> str:
            return self.authenticator.authenticate(authorization)

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "eligibility",
                "message": "Confidential Eligibility - Eligibility Service",
                "version": self.contract.version(),
                "contract": self.contract.address,
                "capabilities": ["encrypted_rules", "encrypted_evaluation", "acl_grants", "audit_log"]
            }

        @self.app.get("/eligibility/version", response_model=VersionResponse)
        async def version():
            return VersionResponse(version=self.contract.version())

        @self.app.get("/eligibility/owner", response_model=OwnerResponse)
        async def owner():
            return OwnerResponse(owner=self.contract.owner())

        @self.app.get("/eligibility/rules", response_model=RuleHandlesResponse)
        async def get_rule_handles():
            """Current threshold handles; safe to publish."""
            return RuleHandlesResponse.from_handles(self.contract.get_rule_handles())

        @self.app.get("/eligibility/events", response_model=EventListResponse)
        async def get_events(
            kind: Optional[str] = Query(None, description="Filter by record kind"),
            since: int = Query(0, ge=0, description="Only records after this sequence number")
        ):
            records = self.contract.event_records(kind=kind, since=since)
            return EventListResponse(
                events=[record.model_dump(mode="json") for record in records],
                total=len(records)
            )

        @self.app.post("/eligibility/rules/encrypted", response_model=RuleHandlesResponse)
        async def set_rules_encrypted(request: EncryptedRulesRequest, caller: str = Depends(current_caller)):
            min_age, max_claims, min_score = request.handles()
            handles = self.contract.set_rules_encrypted(
                caller, min_age, max_claims, min_score, decode_hex(request.proof, "proof")
            )
            return RuleHandlesResponse.from_handles(handles)

        @self.app.post("/eligibility/rules/plain", response_model=RuleHandlesResponse)
        async def set_rules_plain(request: PlainRulesRequest, caller: str = Depends(current_caller)):
            """Development only: thresholds are visible in the request body."""
            handles = self.contract.set_rules_plain(
                caller, request.min_age, request.max_claims, request.min_score
            )
            return RuleHandlesResponse.from_handles(handles)

        @self.app.post("/eligibility/rules/public", response_model=RuleHandlesResponse)
        async def make_rules_public(caller: str = Depends(current_caller)):
            return RuleHandlesResponse.from_handles(self.contract.make_rules_public(caller))

        @self.app.post("/eligibility/rules/reset", response_model=RuleHandlesResponse)
        async def reset_rules(caller: str = Depends(current_caller)):
            return RuleHandlesResponse.from_handles(self.contract.reset_rules_to_defaults(caller))

        @self.app.post("/eligibility/ownership/transfer", response_model=OwnerResponse)
        async def transfer_ownership(request: OwnershipTransferRequest, caller: str = Depends(current_caller)):
            self.contract.transfer_ownership(caller, request.new_owner)
            return OwnerResponse(owner=self.contract.owner())

        @self.app.post("/eligibility/inputs", response_model=EncryptedInputResponse)
        async def encrypt_inputs(request: EncryptedInputRequest, caller: str = Depends(current_caller)):
            """Development only: encrypt values for the caller and return handles plus proof."""
            if not self.config.input_encryption_enabled:
                raise AuthorizationError("Server-side input encryption is disabled")

            builder = EncryptedInputBuilder(self.backend, self.contract.address, caller)
            for item in request.values:
                builder.add(item.fhe_type(), item.value)
            enc = builder.encrypt()
            self.logger.info("Inputs encrypted", count=len(enc.handles))
            return EncryptedInputResponse(
                handles=[handle.hex() for handle in enc.handles],
                proof="0x" + enc.input_proof.hex()
            )

        @self.app.post("/eligibility/check", response_model=EligibilityCheckResponse)
        async def check_eligibility(request: EligibilityCheckRequest, caller: str = Depends(current_caller)):
            age, claims, score = request.handles()
            verdict = self.contract.check_eligibility(
                caller, age, claims, score, decode_hex(request.proof, "proof")
            )
            return EligibilityCheckResponse(applicant=caller, verdict_handle=verdict.hex())

    async def _check_dependencies(self):
        """Report the confidential backend as the only dependency."""
        return {"confidential_backend": "ok" if self.backend is not None else "error"}


def create_app(config: Optional[ServiceConfig] = None):
    """Create eligibility service application."""
    service = EligibilityService(config)
    return service.app


if __name__ == "__main__":
    service = EligibilityService()
    service.run()

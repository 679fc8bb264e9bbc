"""
Access control over ciphertext handles.
"""

from typing import Optional

from shared.errors import ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..fhe.backend import ConfidentialBackend
from ..fhe.handles import AclCapability, AclGrant, CiphertextHandle

PUBLIC_PRINCIPAL = "*"


class AccessControlManager:
    """Issues grants through the backend on behalf of the contract.

    Every handle the contract produces must receive ``grant_self_reuse``
    before the producing call returns, otherwise the backend refuses it in
    any later call. Grants only ever widen; there is no revoke.
    """

    def __init__(self, backend: ConfidentialBackend, contract_address: str,
                 metrics: Optional[MetricsCollector] = None):
        self.backend = backend
        self.contract_address = contract_address
        self.metrics = metrics
        self.logger = get_logger("eligibility.acl")

    def grant_self_reuse(self, handle: CiphertextHandle) -> AclGrant:
        self.backend.allow_this(self.contract_address, handle)
        return self._issued(handle, self.contract_address, AclCapability.SELF_REUSE)

    def grant_decrypt(self, handle: CiphertextHandle, principal: str) -> AclGrant:
        if not principal:
            raise ValidationError("Decrypt grant requires a principal", details={"handle": handle.hex()})
        self.backend.allow(self.contract_address, handle, principal)
        return self._issued(handle, principal, AclCapability.PRINCIPAL_DECRYPT)

    def grant_public(self, handle: CiphertextHandle) -> AclGrant:
        self.backend.make_publicly_decryptable(self.contract_address, handle)
        return self._issued(handle, PUBLIC_PRINCIPAL, AclCapability.PUBLIC_DECRYPT)

    def is_allowed(self, handle: CiphertextHandle, principal: str) -> bool:
        return self.backend.is_allowed(handle, principal)

    def is_public(self, handle: CiphertextHandle) -> bool:
        return self.backend.is_publicly_decryptable(handle)

    def _issued(self, handle: CiphertextHandle, principal: str, capability: AclCapability) -> AclGrant:
        if self.metrics:
            self.metrics.record_acl_grant(capability.value)
        self.logger.debug(
            "ACL grant issued",
            handle=handle.hex(),
            principal=principal,
            capability=capability.value
        )
        return AclGrant(handle=handle, principal=principal, capability=capability)

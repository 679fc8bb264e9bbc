"""
Out-of-band decryption relayer.
"""

from shared.errors import AuthorizationError
from shared.logging import get_logger
from .backend import LocalConfidentialBackend, PlainValue
from .handles import CiphertextHandle


class DecryptionRelayer:
    """Releases cleartext only to principals holding a decrypt grant.

    User decryption needs a grant for both the requesting principal and the
    contract that produced the value, as on the relaying protocol the core
    targets. Public decryption needs the handle's public mark.
    """

    def __init__(self, backend: LocalConfidentialBackend):
        self.backend = backend
        self.logger = get_logger("eligibility.relayer")

    def user_decrypt(self, handle: CiphertextHandle, principal: str, contract_address: str) -> PlainValue:
        for party in (principal, contract_address):
            if not self.backend.is_allowed(handle, party):
                self.logger.warning(
                    "User decryption refused",
                    handle=handle.hex(),
                    principal=principal,
                    missing_grant=party
                )
                raise AuthorizationError(
                    "Principal is not allowed to decrypt handle",
                    details={"handle": handle.hex(), "principal": party}
                )

        self.logger.info("User decryption released", handle=handle.hex(), principal=principal)
        return self.backend.decrypt(handle)

    def public_decrypt(self, handle: CiphertextHandle) -> PlainValue:
        if not self.backend.is_publicly_decryptable(handle):
            raise AuthorizationError(
                "Handle is not publicly decryptable",
                details={"handle": handle.hex()}
            )
        return self.backend.decrypt(handle)

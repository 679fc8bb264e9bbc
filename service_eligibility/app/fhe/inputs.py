"""
Client-side construction of encrypted inputs.
"""

from dataclasses import dataclass
from typing import List, Tuple

from .backend import LocalConfidentialBackend, PlainValue
from .handles import CiphertextHandle, FheType


@dataclass(frozen=True)
class EncryptedInput:
    """External handles plus the single proof covering all of them."""
    handles: Tuple[CiphertextHandle, ...]
    input_proof: bytes


class EncryptedInputBuilder:
    """Collects cleartext values for one (contract, user) pair and encrypts them as a batch.

    Usage::

        enc = EncryptedInputBuilder(backend, contract, applicant).add8(30).add8(1).add16(720).encrypt()
        contract.check_eligibility(applicant, *enc.handles, enc.input_proof)
    """

    def __init__(self, backend: LocalConfidentialBackend, contract_address: str, user_address: str):
        self.backend = backend
        self.contract_address = contract_address
        self.user_address = user_address
        self._values: List[Tuple[FheType, PlainValue]] = []

    def add(self, fhe_type: FheType, value: PlainValue) -> "EncryptedInputBuilder":
        self._values.append((fhe_type, value))
        return self

    def add_bool(self, value: bool) -> "EncryptedInputBuilder":
        return self.add(FheType.EBOOL, value)

    def add8(self, value: int) -> "EncryptedInputBuilder":
        return self.add(FheType.EUINT8, value)

    def add16(self, value: int) -> "EncryptedInputBuilder":
        return self.add(FheType.EUINT16, value)

    def encrypt(self) -> EncryptedInput:
        handles, proof = self.backend.encrypt_inputs(
            self.contract_address,
            self.user_address,
            self._values
        )
        return EncryptedInput(handles=tuple(handles), input_proof=proof)

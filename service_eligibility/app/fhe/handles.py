"""
Ciphertext handle and ACL data types shared by the backend and the core.
"""

import os
from dataclasses import dataclass
from enum import Enum, IntEnum

from shared.errors import ValidationError

HANDLE_SIZE = 32
HANDLE_VERSION = 0
_ID_SIZE = HANDLE_SIZE - 2


class FheType(IntEnum):
    """Encrypted value types, numbered like the on-chain type tags."""
    EBOOL = 0
    EUINT8 = 2
    EUINT16 = 3

    @property
    def bits(self) -> int:
        return {FheType.EBOOL: 1, FheType.EUINT8: 8, FheType.EUINT16: 16}[self]

    @property
    def max_value(self) -> int:
        return (1 << self.bits) - 1


class AclCapability(str, Enum):
    """Grant kinds issued on ciphertext handles."""
    SELF_REUSE = "self_reuse"
    PRINCIPAL_DECRYPT = "principal_decrypt"
    PUBLIC_DECRYPT = "public_decrypt"


@dataclass(frozen=True)
class CiphertextHandle:
    """Opaque reference to a backend-held encrypted value.

    Bytes 0..29 identify the ciphertext, byte 30 carries the type tag and
    byte 31 the handle format version. The handle itself reveals nothing
    about the plaintext and is safe to log.
    """
    raw: bytes

    def __post_init__(self):
        if len(self.raw) != HANDLE_SIZE:
            raise ValidationError(
                "Malformed ciphertext handle",
                details={"length": len(self.raw)}
            )
        try:
            FheType(self.raw[_ID_SIZE])
        except ValueError:
            raise ValidationError(
                "Unknown ciphertext type tag",
                details={"type_tag": self.raw[_ID_SIZE]}
            ) from None

    @classmethod
    def generate(cls, fhe_type: FheType) -> "CiphertextHandle":
        return cls(os.urandom(_ID_SIZE) + bytes([fhe_type, HANDLE_VERSION]))

    @classmethod
    def from_hex(cls, value: str) -> "CiphertextHandle":
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValidationError("Ciphertext handle is not valid hex") from None
        return cls(raw)

    @property
    def fhe_type(self) -> FheType:
        return FheType(self.raw[_ID_SIZE])

    def hex(self) -> str:
        return "0x" + self.raw.hex()

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"CiphertextHandle({self.hex()})"


@dataclass(frozen=True)
class AclGrant:
    """A (handle, principal, capability) permission record."""
    handle: CiphertextHandle
    principal: str
    capability: AclCapability

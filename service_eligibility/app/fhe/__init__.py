"""
Confidential-computation backend package.

The eligibility core treats encrypted computation as an external
capability. This package defines that capability and ships an in-process
reference implementation:

- handles: CiphertextHandle, FheType and ACL grant types.
- backend: ConfidentialBackend protocol and LocalConfidentialBackend.
- inputs: client-side EncryptedInputBuilder producing handles plus one proof.
- relayer: DecryptionRelayer for out-of-band user and public decryption.
"""

from .handles import AclCapability, AclGrant, CiphertextHandle, FheType
from .backend import ConfidentialBackend, LocalConfidentialBackend
from .inputs import EncryptedInput, EncryptedInputBuilder
from .relayer import DecryptionRelayer

__all__ = [
    "AclCapability", "AclGrant", "CiphertextHandle", "FheType",
    "ConfidentialBackend", "LocalConfidentialBackend",
    "EncryptedInput", "EncryptedInputBuilder", "DecryptionRelayer",
]

"""
Request and response models for the Eligibility Service API.

Handles and proofs travel as ``0x``-prefixed hex strings.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from shared.errors import ValidationError
from .fhe.handles import CiphertextHandle, FheType


def decode_hex(value: str, field: str) -> bytes:
    """Decode a ``0x`` hex string, raising ValidationError on bad input."""
    text = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValidationError(f"Field '{field}' is not valid hex", details={"field": field}) from None


class RuleHandlesResponse(BaseModel):
    """Current rule set handles."""
    min_age: str = Field(..., description="Minimum age threshold handle")
    max_claims: str = Field(..., description="Maximum prior claims threshold handle")
    min_score: str = Field(..., description="Minimum credit score threshold handle")

    @classmethod
    def from_handles(cls, handles: Tuple[CiphertextHandle, CiphertextHandle, CiphertextHandle]) -> "RuleHandlesResponse":
        min_age, max_claims, min_score = handles
        return cls(min_age=min_age.hex(), max_claims=max_claims.hex(), min_score=min_score.hex())


class EncryptedRulesRequest(BaseModel):
    """Request model for replacing the rules with encrypted thresholds."""
    min_age: str = Field(..., description="External handle of the minimum age (euint8)")
    max_claims: str = Field(..., description="External handle of the maximum claims (euint8)")
    min_score: str = Field(..., description="External handle of the minimum score (euint16)")
    proof: str = Field(..., description="Input proof covering all three handles")

    def handles(self) -> Tuple[CiphertextHandle, CiphertextHandle, CiphertextHandle]:
        return (
            CiphertextHandle.from_hex(self.min_age),
            CiphertextHandle.from_hex(self.max_claims),
            CiphertextHandle.from_hex(self.min_score),
        )


class PlainRulesRequest(BaseModel):
    """Development-only request with cleartext thresholds."""
    min_age: int = Field(..., description="Minimum age, 0-255")
    max_claims: int = Field(..., description="Maximum prior claims, 0-255")
    min_score: int = Field(..., description="Minimum credit score, 0-65535")


class OwnershipTransferRequest(BaseModel):
    """Request model for ownership transfer."""
    new_owner: Optional[str] = Field(None, description="Principal that becomes the owner")


class OwnerResponse(BaseModel):
    owner: Optional[str]


class VersionResponse(BaseModel):
    version: str


class InputValue(BaseModel):
    """One cleartext value and the encrypted type it becomes."""
    type: Literal["ebool", "euint8", "euint16"] = Field(..., description="Encrypted type")
    value: int = Field(..., description="Cleartext value, range-checked against the type")

    def fhe_type(self) -> FheType:
        return FheType[self.type.upper()]


class EncryptedInputRequest(BaseModel):
    """Values to encrypt for the calling principal, in handle order."""
    values: List[InputValue]


class EncryptedInputResponse(BaseModel):
    """External handles plus the proof that binds them to the caller."""
    handles: List[str]
    proof: str


class EligibilityCheckRequest(BaseModel):
    """Applicant request with encrypted attributes."""
    age: str = Field(..., description="External handle of the age (euint8)")
    claims: str = Field(..., description="External handle of prior claims (euint8)")
    score: str = Field(..., description="External handle of the credit score (euint16)")
    proof: str = Field(..., description="Input proof covering all three handles")

    def handles(self) -> Tuple[CiphertextHandle, CiphertextHandle, CiphertextHandle]:
        return (
            CiphertextHandle.from_hex(self.age),
            CiphertextHandle.from_hex(self.claims),
            CiphertextHandle.from_hex(self.score),
        )


class EligibilityCheckResponse(BaseModel):
    """Encrypted verdict; decryptable only by the applicant."""
    applicant: str
    verdict_handle: str


class EventListResponse(BaseModel):
    events: List[Dict[str, Any]]
    total: int

"""
Rule data models for the Eligibility Service.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from ..fhe.handles import CiphertextHandle, FheType


class Threshold(str, Enum):
    """Threshold slots of the rule set."""
    MIN_AGE = "min_age"
    MAX_CLAIMS = "max_claims"
    MIN_SCORE = "min_score"


THRESHOLD_TYPES: Dict[Threshold, FheType] = {
    Threshold.MIN_AGE: FheType.EUINT8,
    Threshold.MAX_CLAIMS: FheType.EUINT8,
    Threshold.MIN_SCORE: FheType.EUINT16,
}

# Permissive: every valid applicant passes
DEFAULT_THRESHOLDS: Dict[Threshold, int] = {
    Threshold.MIN_AGE: 0,
    Threshold.MAX_CLAIMS: FheType.EUINT8.max_value,
    Threshold.MIN_SCORE: 0,
}


@dataclass(frozen=True)
class RuleSet:
    """The three encrypted thresholds currently governing evaluation."""
    min_age: CiphertextHandle
    max_claims: CiphertextHandle
    min_score: CiphertextHandle

    def handles(self) -> Tuple[CiphertextHandle, CiphertextHandle, CiphertextHandle]:
        return self.min_age, self.max_claims, self.min_score


@dataclass(frozen=True)
class ApplicantInput:
    """External encrypted attributes plus their joint proof; lives for one call."""
    age: CiphertextHandle
    claims: CiphertextHandle
    score: CiphertextHandle
    proof: bytes


# Encrypted types of age, claims and score
APPLICANT_TYPES: Tuple[FheType, FheType, FheType] = (FheType.EUINT8, FheType.EUINT8, FheType.EUINT16)

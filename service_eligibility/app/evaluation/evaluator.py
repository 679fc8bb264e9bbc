"""
Encrypted eligibility evaluation.
"""

from shared.errors import ValidationError
from shared.logging import get_logger
from ..access.acl import AccessControlManager
from ..audit.events import ApplicationChecked, EventLog
from ..fhe.backend import ConfidentialBackend
from ..fhe.handles import CiphertextHandle
from ..rules.models import APPLICANT_TYPES, ApplicantInput
from ..rules.store import RuleStore


class EligibilityEvaluator:
    """Computes ``(age >= min_age AND claims <= max_claims) AND score >= min_score`` on ciphertexts.

    The evaluator never decrypts and never branches on a value. The verdict
    is returned and recorded in the audit log but never stored; callers
    must keep the handle from the return value or the record.
    """

    def __init__(self, backend: ConfidentialBackend, rules: RuleStore,
                 acl: AccessControlManager, events: EventLog):
        self.backend = backend
        self.rules = rules
        self.acl = acl
        self.events = events
        self.logger = get_logger("eligibility.evaluator")

    @property
    def executor(self) -> str:
        return self.acl.contract_address

    def check(self, caller: str, age: CiphertextHandle, claims: CiphertextHandle,
              score: CiphertextHandle, proof: bytes) -> CiphertextHandle:
        if not proof:
            raise ValidationError("empty proof")

        applicant = self._bind(caller, ApplicantInput(age=age, claims=claims, score=score, proof=proof))
        rules = self.rules.current()

        cond_age = self.backend.ge(self.executor, applicant.age, rules.min_age)
        cond_claims = self.backend.le(self.executor, applicant.claims, rules.max_claims)
        cond_score = self.backend.ge(self.executor, applicant.score, rules.min_score)

        # Fixed combination order keeps the operation sequence deterministic
        verdict = self.backend.and_(
            self.executor,
            self.backend.and_(self.executor, cond_age, cond_claims),
            cond_score
        )

        self.acl.grant_self_reuse(verdict)
        self.acl.grant_decrypt(verdict, caller)

        self.events.emit(ApplicationChecked, applicant=caller, verdict_handle=verdict)
        self.logger.info("Eligibility evaluated", applicant=caller, verdict_handle=verdict.hex())
        return verdict

    def _bind(self, caller: str, applicant: ApplicantInput) -> ApplicantInput:
        """Materialize the three external inputs against their joint proof."""
        age, claims, score = (
            self.backend.from_external(self.executor, caller, handle, applicant.proof, fhe_type)
            for handle, fhe_type in zip((applicant.age, applicant.claims, applicant.score), APPLICANT_TYPES)
        )
        return ApplicantInput(age=age, claims=claims, score=score, proof=applicant.proof)

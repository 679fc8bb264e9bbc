"""
Encrypted threshold storage for the Eligibility Service.
"""

from typing import Dict, Optional, Tuple

from shared.errors import AuthorizationError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..access.acl import AccessControlManager
from ..access.ownership import OwnershipGuard
from ..audit.events import EventLog, RulesUpdated
from ..fhe.backend import ConfidentialBackend
from ..fhe.handles import CiphertextHandle
from .models import DEFAULT_THRESHOLDS, THRESHOLD_TYPES, RuleSet, Threshold


class RuleStore:
    """Holds the current RuleSet and its lifecycle.

    The rule set is always fully defined: it starts at the permissive
    defaults and every mutation replaces all three handles at once. Old
    handles are simply dropped; their grants stay as they were.
    """

    def __init__(self, backend: ConfidentialBackend, acl: AccessControlManager,
                 guard: OwnershipGuard, events: EventLog,
                 allow_plaintext: bool = True, metrics: Optional[MetricsCollector] = None):
        self.backend = backend
        self.acl = acl
        self.guard = guard
        self.events = events
        self.allow_plaintext = allow_plaintext
        self.metrics = metrics
        self.logger = get_logger("eligibility.rules")
        self._rules: Optional[RuleSet] = None
        self._saved_rules: Optional[RuleSet] = None

    @property
    def executor(self) -> str:
        return self.acl.contract_address

    def current(self) -> RuleSet:
        if self._rules is None:
            raise RuntimeError("Rule store used before initialization")
        return self._rules

    def initialize_defaults(self) -> RuleSet:
        """Install the default rule set; runs once, inside the deployment call."""
        if self._rules is not None:
            raise AuthorizationError("Rule store is already initialized")
        return self._replace(self._trivial_rules(DEFAULT_THRESHOLDS), "initial")

    def set_encrypted(self, caller: str, min_age: CiphertextHandle, max_claims: CiphertextHandle,
                      min_score: CiphertextHandle, proof: bytes) -> RuleSet:
        self.guard.require_owner(caller, "set_rules_encrypted")
        if not proof:
            raise ValidationError("empty proof")

        inputs = {
            Threshold.MIN_AGE: min_age,
            Threshold.MAX_CLAIMS: max_claims,
            Threshold.MIN_SCORE: min_score,
        }
        bound = {
            slot: self.backend.from_external(self.executor, caller, handle, proof, THRESHOLD_TYPES[slot])
            for slot, handle in inputs.items()
        }
        return self._replace(self._rule_set(bound), "encrypted")

    def set_plain(self, caller: str, min_age: int, max_claims: int, min_score: int) -> RuleSet:
        """Development-only: build thresholds from cleartext constants.

        UNSAFE for production. The stored thresholds are ciphertexts, but the
        cleartext values travel in the call's public data and in this
        component's arguments.
        """
        self.guard.require_owner(caller, "set_rules_plain")
        if not self.allow_plaintext:
            raise AuthorizationError("Plaintext rule updates are disabled")

        self.logger.warning("Plaintext rule path used; threshold values are exposed in call data")
        values = {
            Threshold.MIN_AGE: min_age,
            Threshold.MAX_CLAIMS: max_claims,
            Threshold.MIN_SCORE: min_score,
        }
        return self._replace(self._trivial_rules(values), "plain")

    def reset_to_defaults(self, caller: str) -> RuleSet:
        self.guard.require_owner(caller, "reset_rules_to_defaults")
        return self._replace(self._trivial_rules(DEFAULT_THRESHOLDS), "reset")

    def get_handles(self) -> Tuple[CiphertextHandle, CiphertextHandle, CiphertextHandle]:
        return self.current().handles()

    def make_public(self, caller: str) -> RuleSet:
        self.guard.require_owner(caller, "make_rules_public")
        rules = self.current()
        for handle in rules.handles():
            self.acl.grant_public(handle)
        self.logger.info("Rule thresholds marked publicly decryptable",
                         handles=[h.hex() for h in rules.handles()])
        return rules

    def _trivial_rules(self, values: Dict[Threshold, int]) -> RuleSet:
        return self._rule_set({
            slot: self.backend.trivial_encrypt(self.executor, values[slot], THRESHOLD_TYPES[slot])
            for slot in Threshold
        })

    @staticmethod
    def _rule_set(handles: Dict[Threshold, CiphertextHandle]) -> RuleSet:
        return RuleSet(
            min_age=handles[Threshold.MIN_AGE],
            max_claims=handles[Threshold.MAX_CLAIMS],
            min_score=handles[Threshold.MIN_SCORE],
        )

    def _replace(self, rules: RuleSet, path: str) -> RuleSet:
        for handle in rules.handles():
            self.acl.grant_self_reuse(handle)

        self._rules = rules
        self.events.emit(
            RulesUpdated,
            min_age_handle=rules.min_age,
            max_claims_handle=rules.max_claims,
            min_score_handle=rules.min_score,
        )

        if self.metrics:
            self.metrics.record_rule_update(path)
        self.logger.info("Rule set replaced", path=path)
        return rules

    def begin(self) -> None:
        self._saved_rules = self._rules

    def commit(self) -> None:
        self._saved_rules = None

    def rollback(self) -> None:
        self._rules = self._saved_rules
        self._saved_rules = None

"""
Confidential eligibility contract: the administrative, public-read and
applicant surfaces over one serialized ledger.
"""

from typing import List, Optional, Tuple

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .. import __version__
from .access.acl import AccessControlManager
from .access.ownership import OwnershipGuard
from .audit.events import AuditRecord, EventLog
from .evaluation.evaluator import EligibilityEvaluator
from .fhe.backend import ConfidentialBackend
from .fhe.handles import CiphertextHandle
from .ledger import Ledger
from .rules.store import RuleStore

CONTRACT_NAME = "ConfidentialEligibility"

RuleHandles = Tuple[CiphertextHandle, CiphertextHandle, CiphertextHandle]


class EligibilityContract:
    """Wires the guard, ACL manager, rule store, evaluator and event log.

    Construction is itself a ledger call made by the deployer: it sets the
    owner and installs the permissive default rules. Every mutating method
    below is exactly one ledger call and either fully commits or leaves no
    trace.
    """

    def __init__(self, backend: ConfidentialBackend, contract_address: str, deployer: str,
                 allow_plaintext_rules: bool = True, metrics: Optional[MetricsCollector] = None):
        self.address = contract_address
        self.backend = backend
        self.metrics = metrics
        self.logger = get_logger("eligibility.contract")

        self.events = EventLog()
        self.guard = OwnershipGuard(self.events)
        self.acl = AccessControlManager(backend, contract_address, metrics)
        self.rules = RuleStore(
            backend, self.acl, self.guard, self.events,
            allow_plaintext=allow_plaintext_rules,
            metrics=metrics
        )
        self.evaluator = EligibilityEvaluator(backend, self.rules, self.acl, self.events)
        self.ledger = Ledger([backend, self.guard, self.rules, self.events], metrics)

        with self.ledger.call("constructor", deployer):
            self.guard.initialize(deployer)
            self.rules.initialize_defaults()

        self.logger.info("Contract deployed", address=contract_address, owner=deployer)

    # Administrative surface

    def transfer_ownership(self, caller: str, new_owner: Optional[str]) -> None:
        with self.ledger.call("transfer_ownership", caller):
            self.guard.transfer_ownership(caller, new_owner)

    def set_rules_encrypted(self, caller: str, min_age: CiphertextHandle, max_claims: CiphertextHandle,
                            min_score: CiphertextHandle, proof: bytes) -> RuleHandles:
        with self.ledger.call("set_rules_encrypted", caller):
            return self.rules.set_encrypted(caller, min_age, max_claims, min_score, proof).handles()

    def set_rules_plain(self, caller: str, min_age: int, max_claims: int, min_score: int) -> RuleHandles:
        """Development only; see ``RuleStore.set_plain``."""
        with self.ledger.call("set_rules_plain", caller):
            return self.rules.set_plain(caller, min_age, max_claims, min_score).handles()

    def make_rules_public(self, caller: str) -> RuleHandles:
        with self.ledger.call("make_rules_public", caller):
            return self.rules.make_public(caller).handles()

    def reset_rules_to_defaults(self, caller: str) -> RuleHandles:
        with self.ledger.call("reset_rules_to_defaults", caller):
            return self.rules.reset_to_defaults(caller).handles()

    # Public read surface

    def get_rule_handles(self) -> RuleHandles:
        with self.ledger.read():
            return self.rules.get_handles()

    def owner(self) -> Optional[str]:
        with self.ledger.read():
            return self.guard.owner

    def version(self) -> str:
        return f"{CONTRACT_NAME} v{__version__}"

    def event_records(self, kind: Optional[str] = None, since: int = 0) -> List[AuditRecord]:
        with self.ledger.read():
            return self.events.records(kind=kind, since=since)

    # Applicant surface

    def check_eligibility(self, caller: str, age: CiphertextHandle, claims: CiphertextHandle,
                          score: CiphertextHandle, proof: bytes) -> CiphertextHandle:
        status = "aborted"
        try:
            with self.ledger.call("check_eligibility", caller):
                verdict = self.evaluator.check(caller, age, claims, score, proof)
            status = "committed"
            return verdict
        finally:
            if self.metrics:
                self.metrics.record_eligibility_check(status)

"""
Unit tests for the encrypted rule store.
"""

import pytest

from service_eligibility.app.contract import EligibilityContract
from service_eligibility.app.fhe.handles import FheType
from service_eligibility.app.fhe.inputs import EncryptedInputBuilder
from service_eligibility.app.rules.models import DEFAULT_THRESHOLDS, Threshold
from shared.errors import AuthorizationError, BackendRejection, ValidationError

from helpers import APPLICANT, CONTRACT, OWNER


class TestRuleStore:
    """Test cases for RuleStore through the contract surface."""

    def test_defaults_after_deployment(self, contract, public_rules):
        assert public_rules() == (0, 255, 0)
        assert DEFAULT_THRESHOLDS[Threshold.MAX_CLAIMS] == 255

    def test_default_handle_types(self, contract):
        min_age, max_claims, min_score = contract.get_rule_handles()

        assert min_age.fhe_type == FheType.EUINT8
        assert max_claims.fhe_type == FheType.EUINT8
        assert min_score.fhe_type == FheType.EUINT16

    def test_deployment_records(self, contract):
        kinds = [record.kind for record in contract.event_records()]

        assert kinds == ["OwnershipTransferred", "RulesUpdated"]

    def test_set_encrypted(self, contract, threshold_input, public_rules):
        enc = threshold_input(21, 3, 650)

        handles = contract.set_rules_encrypted(OWNER, *enc.handles, enc.input_proof)

        assert handles == contract.get_rule_handles()
        assert public_rules() == (21, 3, 650)

    def test_set_encrypted_replaces_all_handles(self, contract, threshold_input):
        before = contract.get_rule_handles()
        enc = threshold_input(21, 3, 650)

        after = contract.set_rules_encrypted(OWNER, *enc.handles, enc.input_proof)

        assert not set(before) & set(after)

    def test_set_encrypted_grants_self_reuse(self, contract, threshold_input, backend):
        enc = threshold_input(21, 3, 650)
        handles = contract.set_rules_encrypted(OWNER, *enc.handles, enc.input_proof)

        assert all(backend.is_allowed(h, CONTRACT) for h in handles)
        assert not any(backend.is_allowed(h, OWNER) for h in handles)

    def test_set_encrypted_emits_rules_updated(self, contract, threshold_input):
        enc = threshold_input(21, 3, 650)
        handles = contract.set_rules_encrypted(OWNER, *enc.handles, enc.input_proof)

        record = contract.event_records(kind="RulesUpdated")[-1]
        assert (record.min_age_handle, record.max_claims_handle, record.min_score_handle) == handles

    def test_set_encrypted_empty_proof(self, contract, threshold_input):
        enc = threshold_input(21, 3, 650)

        with pytest.raises(ValidationError, match="empty proof"):
            contract.set_rules_encrypted(OWNER, *enc.handles, b"")

    def test_set_encrypted_proof_for_other_user(self, contract, threshold_input):
        enc = threshold_input(21, 3, 650, user=APPLICANT)
        before = contract.get_rule_handles()

        with pytest.raises(ValidationError):
            contract.set_rules_encrypted(OWNER, *enc.handles, enc.input_proof)
        assert contract.get_rule_handles() == before

    def test_set_encrypted_partial_proof_coverage(self, contract, threshold_input, backend):
        first = threshold_input(21, 3, 650)
        extra = threshold_input(30, 1, 700)
        records = len(contract.event_records())

        with pytest.raises(ValidationError, match="not covered"):
            contract.set_rules_encrypted(OWNER, first.handles[0], first.handles[1], extra.handles[2], first.input_proof)
        assert len(contract.event_records()) == records

    def test_set_encrypted_type_mismatch(self, contract, backend):
        # min_score submitted as an 8-bit value
        enc = EncryptedInputBuilder(backend, CONTRACT, OWNER).add8(1).add8(1).add8(1).encrypt()

        with pytest.raises(ValidationError, match="type"):
            contract.set_rules_encrypted(OWNER, *enc.handles, enc.input_proof)

    def test_set_plain(self, contract, public_rules):
        contract.set_rules_plain(OWNER, 18, 2, 600)

        assert public_rules() == (18, 2, 600)

    @pytest.mark.parametrize("values", [(256, 0, 0), (0, 256, 0), (0, 0, 65536), (-1, 0, 0)])
    def test_set_plain_out_of_range(self, contract, values):
        before = contract.get_rule_handles()

        with pytest.raises(ValidationError):
            contract.set_rules_plain(OWNER, *values)
        assert contract.get_rule_handles() == before

    def test_set_plain_disabled(self, backend):
        contract = EligibilityContract(backend, CONTRACT, OWNER, allow_plaintext_rules=False)

        with pytest.raises(AuthorizationError):
            contract.set_rules_plain(OWNER, 18, 2, 600)

    def test_reset_to_defaults(self, contract, public_rules):
        contract.set_rules_plain(OWNER, 18, 2, 600)
        contract.reset_rules_to_defaults(OWNER)

        assert public_rules() == (0, 255, 0)

    def test_reset_is_idempotent(self, contract, public_rules):
        contract.reset_rules_to_defaults(OWNER)
        once = public_rules()
        contract.reset_rules_to_defaults(OWNER)
        twice = public_rules()

        assert once == twice == (0, 255, 0)

    def test_reset_emits_each_time(self, contract):
        contract.reset_rules_to_defaults(OWNER)
        contract.reset_rules_to_defaults(OWNER)

        assert len(contract.event_records(kind="RulesUpdated")) == 3

    def test_make_public_only_widens_current_handles(self, contract, backend):
        old = contract.get_rule_handles()
        contract.set_rules_plain(OWNER, 18, 2, 600)
        current = contract.make_rules_public(OWNER)

        assert all(backend.is_publicly_decryptable(h) for h in current)
        assert not any(backend.is_publicly_decryptable(h) for h in old)

    def test_superseded_handles_keep_grants(self, contract, backend):
        old = contract.get_rule_handles()
        contract.set_rules_plain(OWNER, 18, 2, 600)

        assert all(backend.is_allowed(h, CONTRACT) for h in old)

    def test_get_handles_is_public(self, contract):
        # Reading requires no caller at all
        assert len(contract.get_rule_handles()) == 3

    def test_rules_never_reference_unusable_handles(self, contract, backend):
        contract.set_rules_plain(OWNER, 18, 2, 600)

        backend.begin()
        try:
            for handle in contract.get_rule_handles():
                backend.ge(CONTRACT, handle, handle)
        except BackendRejection:
            pytest.fail("Stored threshold handle is stranded")
        finally:
            backend.rollback()

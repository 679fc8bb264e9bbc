"""
Unit tests for the contract facade, caller authentication and configuration.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError
from unittest.mock import patch

from service_eligibility.app.auth import CallerAuthenticator
from service_eligibility.app.contract import EligibilityContract
from service_eligibility.app.fhe.handles import FheType
from service_eligibility.app.rules.store import RuleStore
from shared.config import get_config
from shared.errors import AuthenticationError, AuthorizationError, BackendRejection, InvalidOwnerError, ValidationError

from helpers import APPLICANT, CONTRACT, OTHER_APPLICANT, OWNER


class TestEligibilityContract:
    """Test cases for EligibilityContract."""

    def test_version(self, contract):
        assert contract.version() == "ConfidentialEligibility v1.0.0"

    def test_owner_is_deployer(self, contract):
        assert contract.owner() == OWNER

    def test_empty_deployer_rejected(self, backend):
        with pytest.raises(AuthenticationError):
            EligibilityContract(backend, CONTRACT, "")

    def test_transfer_ownership(self, contract):
        contract.transfer_ownership(OWNER, APPLICANT)

        assert contract.owner() == APPLICANT
        with pytest.raises(AuthorizationError):
            contract.set_rules_plain(OWNER, 18, 2, 600)
        contract.set_rules_plain(APPLICANT, 18, 2, 600)

    def test_transfer_to_null_keeps_owner(self, contract):
        records = len(contract.event_records())

        with pytest.raises(InvalidOwnerError):
            contract.transfer_ownership(OWNER, None)

        assert contract.owner() == OWNER
        assert len(contract.event_records()) == records

    @pytest.mark.parametrize("operation,args", [
        ("set_rules_plain", (18, 2, 600)),
        ("make_rules_public", ()),
        ("reset_rules_to_defaults", ()),
        ("transfer_ownership", (OTHER_APPLICANT,)),
    ])
    def test_non_owner_changes_nothing(self, contract, backend, operation, args):
        rules = contract.get_rule_handles()
        acl = backend.acl_state()
        records = len(contract.event_records())

        with pytest.raises(AuthorizationError):
            getattr(contract, operation)(APPLICANT, *args)

        assert contract.get_rule_handles() == rules
        assert backend.acl_state() == acl
        assert len(contract.event_records()) == records
        assert contract.owner() == OWNER

    def test_non_owner_encrypted_rules_change_nothing(self, contract, backend, threshold_input):
        # The proof is valid for the applicant, so only ownership can refuse it
        enc = threshold_input(99, 0, 65535, user=APPLICANT)
        rules = contract.get_rule_handles()
        acl = backend.acl_state()
        records = len(contract.event_records())

        with pytest.raises(AuthorizationError):
            contract.set_rules_encrypted(APPLICANT, *enc.handles, enc.input_proof)

        assert contract.get_rule_handles() == rules
        assert backend.acl_state() == acl
        assert len(contract.event_records()) == records
        assert contract.owner() == OWNER
        assert backend.storage_stats()["uploads"] == 3

    def test_failure_after_replace_is_rolled_back(self, contract, backend):
        rules = contract.get_rule_handles()
        acl = backend.acl_state()
        records = len(contract.event_records())

        with patch.object(RuleStore, "_replace", side_effect=RuntimeError("interrupted")):
            with pytest.raises(RuntimeError):
                contract.set_rules_plain(OWNER, 18, 2, 600)

        assert contract.get_rule_handles() == rules
        assert backend.acl_state() == acl
        assert len(contract.event_records()) == records

    def test_stranded_handle_rejected_later(self, backend):
        # A computed handle never granted to anyone is unusable after its call
        backend.begin()
        stranded = backend.trivial_encrypt(CONTRACT, 1, FheType.EUINT8)
        backend.commit()

        backend.begin()
        try:
            with pytest.raises(BackendRejection):
                backend.ge(CONTRACT, stranded, stranded)
        finally:
            backend.rollback()

    def test_event_filtering(self, contract):
        contract.reset_rules_to_defaults(OWNER)

        updates = contract.event_records(kind="RulesUpdated")
        assert [record.sequence for record in updates] == [2, 3]
        assert contract.event_records(since=2)[0].sequence == 3

    @pytest.mark.parametrize("since", [-1, -100])
    def test_negative_since_rejected(self, contract, since):
        with pytest.raises(ValidationError, match="non-negative"):
            contract.event_records(since=since)

    def test_unknown_kind_rejected(self, contract):
        with pytest.raises(ValidationError):
            contract.event_records(kind="Nope")


class TestCallerAuthenticator:
    """Test cases for CallerAuthenticator."""

    @pytest.fixture
    def authenticator(self):
        return CallerAuthenticator("test-secret-eligibility-service-0123456789")

    def test_round_trip(self, authenticator):
        token = authenticator.issue_token(APPLICANT)
        assert authenticator.authenticate(f"Bearer {token}") == APPLICANT

    @pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer garbage"])
    def test_rejected_headers(self, authenticator, header):
        with pytest.raises(AuthenticationError):
            authenticator.authenticate(header)

    def test_wrong_secret(self, authenticator):
        token = CallerAuthenticator("another-secret-eligibility-service-98765").issue_token(APPLICANT)
        with pytest.raises(AuthenticationError):
            authenticator.authenticate(f"Bearer {token}")

    def test_missing_subject(self, authenticator):
        token = authenticator.issue_token("")
        with pytest.raises(AuthenticationError, match="no subject"):
            authenticator.authenticate(f"Bearer {token}")


class TestServiceConfig:
    """Test cases for ServiceConfig."""

    def test_plaintext_rules_follow_env(self):
        assert get_config(env="local").plaintext_rules_enabled is True
        assert get_config(env="production").plaintext_rules_enabled is False

    def test_plaintext_rules_override(self):
        assert get_config(env="production", allow_plaintext_rules=True).plaintext_rules_enabled is True
        assert get_config(env="local", allow_plaintext_rules=False).plaintext_rules_enabled is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ELIGIBILITY_CONTRACT_ADDRESS", CONTRACT)
        assert get_config().contract_address == CONTRACT

    def test_input_encryption_follows_env(self):
        assert get_config(env="local").input_encryption_enabled is True
        assert get_config(env="production").input_encryption_enabled is False
        assert get_config(env="production", allow_input_encryption=True).input_encryption_enabled is True

    def test_backend_keys_from_env(self, monkeypatch):
        monkeypatch.setenv("ELIGIBILITY_PROOF_KEY", "ab" * 32)
        monkeypatch.setenv("ELIGIBILITY_MAX_UPLOADS", "50")

        config = get_config()
        assert config.proof_key == "ab" * 32
        assert config.max_uploads == 50
        assert config.backend_key is None

    def test_max_uploads_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            get_config(max_uploads=0)

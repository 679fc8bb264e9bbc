"""
Shared fixtures for Eligibility Service tests.
"""

import pytest

from service_eligibility.app.contract import EligibilityContract
from service_eligibility.app.fhe.backend import LocalConfidentialBackend
from service_eligibility.app.fhe.inputs import EncryptedInput, EncryptedInputBuilder
from service_eligibility.app.fhe.relayer import DecryptionRelayer
from shared.metrics import get_metrics_collector

from helpers import APPLICANT, CONTRACT, OWNER


@pytest.fixture
def backend():
    """Create a fresh reference backend."""
    return LocalConfidentialBackend()


@pytest.fixture
def relayer(backend):
    """Create a decryption relayer over the backend."""
    return DecryptionRelayer(backend)


@pytest.fixture
def metrics():
    """Create an isolated metrics collector."""
    return get_metrics_collector("eligibility")


@pytest.fixture
def contract(backend, metrics):
    """Deploy a contract owned by OWNER."""
    return EligibilityContract(backend, CONTRACT, OWNER, metrics=metrics)


@pytest.fixture
def applicant_input(backend):
    """Encrypt (age, claims, score) for an applicant."""

    def _encrypt(age: int, claims: int, score: int, user: str = APPLICANT) -> EncryptedInput:
        return EncryptedInputBuilder(backend, CONTRACT, user).add8(age).add8(claims).add16(score).encrypt()

    return _encrypt


@pytest.fixture
def threshold_input(backend):
    """Encrypt (min_age, max_claims, min_score) for the owner."""

    def _encrypt(min_age: int, max_claims: int, min_score: int, user: str = OWNER) -> EncryptedInput:
        return EncryptedInputBuilder(backend, CONTRACT, user).add8(min_age).add8(max_claims).add16(min_score).encrypt()

    return _encrypt


@pytest.fixture
def check(contract, applicant_input, relayer):
    """Run a check and decrypt the verdict as the applicant."""

    def _check(age: int, claims: int, score: int, user: str = APPLICANT) -> bool:
        enc = applicant_input(age, claims, score, user)
        verdict = contract.check_eligibility(user, *enc.handles, enc.input_proof)
        return relayer.user_decrypt(verdict, user, CONTRACT)

    return _check


@pytest.fixture
def public_rules(contract, relayer):
    """Publish the current thresholds and return their cleartext values."""

    def _read():
        contract.make_rules_public(OWNER)
        return tuple(relayer.public_decrypt(h) for h in contract.get_rule_handles())

    return _read

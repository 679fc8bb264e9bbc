"""
Unit tests for the serialized commit-or-abort ledger.
"""

import pytest
from unittest.mock import MagicMock, call

from service_eligibility.app.ledger import Ledger
from shared.errors import AuthenticationError, ValidationError


class TestLedger:
    """Test cases for Ledger."""

    @pytest.fixture
    def participants(self):
        """Create two mock participants sharing one call recorder."""
        recorder = MagicMock()
        return recorder, [recorder.first, recorder.second]

    def test_successful_call_commits_all(self, participants, metrics):
        recorder, members = participants
        ledger = Ledger(members, metrics)

        with ledger.call("op", "0xcaller") as context:
            assert context.caller == "0xcaller"
            assert context.operation == "op"

        assert recorder.mock_calls == [
            call.first.begin(), call.second.begin(),
            call.first.commit(), call.second.commit(),
        ]
        assert metrics.sample_value("ledger_calls_total", operation="op", status="committed") == 1.0

    def test_failed_call_rolls_back_in_reverse(self, participants, metrics):
        recorder, members = participants
        ledger = Ledger(members, metrics)

        with pytest.raises(ValidationError):
            with ledger.call("op", "0xcaller"):
                raise ValidationError("bad input")

        assert recorder.mock_calls == [
            call.first.begin(), call.second.begin(),
            call.second.rollback(), call.first.rollback(),
        ]
        assert metrics.sample_value("ledger_calls_total", operation="op", status="aborted") == 1.0

    def test_failed_begin_rolls_back_started_participants(self, participants):
        recorder, members = participants
        members[1].begin.side_effect = RuntimeError("busy")
        ledger = Ledger(members)

        with pytest.raises(RuntimeError):
            with ledger.call("op", "0xcaller"):
                pass

        recorder.first.rollback.assert_called_once()
        recorder.second.rollback.assert_not_called()
        recorder.first.commit.assert_not_called()

    def test_empty_caller_rejected(self, participants):
        recorder, members = participants
        ledger = Ledger(members)

        with pytest.raises(AuthenticationError):
            with ledger.call("op", ""):
                pass

        assert recorder.mock_calls == []

    def test_call_ids_increase(self, participants):
        _, members = participants
        ledger = Ledger(members)

        with ledger.call("a", "0xcaller") as first:
            pass
        with ledger.call("b", "0xcaller") as second:
            pass

        assert second.call_id == first.call_id + 1
        assert ledger.call_count == 2

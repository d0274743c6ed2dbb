"""Tests for the per-target attempt state machine (sync_engine/domain/attempts.py)."""

import pytest

from sync_engine.domain.attempts import MAX_ATTEMPTS, advance, begin_attempts
from sync_engine.domain.types import AttemptState


class TestBeginAttempts:
    def test_starts_at_attempt_one(self):
        progress = begin_attempts()
        assert progress.state == AttemptState.ATTEMPTING
        assert progress.attempt == 1
        assert progress.max_attempts == MAX_ATTEMPTS == 2

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            begin_attempts(0)


class TestAdvance:
    def test_success_is_terminal(self):
        progress = advance(begin_attempts(), succeeded=True)
        assert progress.state == AttemptState.SUCCEEDED
        assert progress.is_terminal

    def test_failure_retries_below_max(self):
        first = begin_attempts()
        assert first.can_retry

        second = advance(first, succeeded=False)

        assert second.state == AttemptState.ATTEMPTING
        assert second.attempt == 2
        assert not second.can_retry

    def test_failure_at_max_fails(self):
        progress = advance(advance(begin_attempts(), False), False)
        assert progress.state == AttemptState.FAILED
        assert progress.attempt == 2
        assert progress.is_terminal

    def test_single_attempt_budget(self):
        progress = advance(begin_attempts(1), False)
        assert progress.state == AttemptState.FAILED

    @pytest.mark.parametrize("succeeded", [True, False])
    def test_cannot_advance_terminal_state(self, succeeded):
        done = advance(begin_attempts(1), succeeded)
        with pytest.raises(ValueError, match="Cannot advance"):
            advance(done, True)

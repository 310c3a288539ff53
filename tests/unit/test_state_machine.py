"""Unit tests for status transitions, phases and retry policy."""

from datetime import timedelta

import pytest

from reconciler.config.settings import Settings
from reconciler.models import LedgerStatus, TransactionRecord, TransactionStatus
from reconciler.services.reconciliation.policy import ReconciliationPolicy, RetryPolicy
from reconciler.services.reconciliation.state_machine import (
    Phase,
    can_transition,
    never_confirmed,
    not_found_after_retries,
    phase_of,
    stale_during_sweep,
    status_for_ledger,
)


class TestTransitions:
    """Tests for can_transition and status_for_ledger."""

    @pytest.mark.parametrize("target", list(TransactionStatus))
    def test_pending_moves_anywhere(self, target):
        assert can_transition(TransactionStatus.PENDING, target)

    @pytest.mark.parametrize("current", [TransactionStatus.COMPLETED, TransactionStatus.FAILED])
    @pytest.mark.parametrize("target", list(TransactionStatus))
    def test_terminal_never_moves(self, current, target):
        assert not can_transition(current, target)

    @pytest.mark.parametrize(
        ("ledger_status", "confirmations", "threshold", "expected"),
        [
            (LedgerStatus.CONFIRMED, 1, 1, TransactionStatus.COMPLETED),
            (LedgerStatus.CONFIRMED, 0, 1, TransactionStatus.PENDING),
            (LedgerStatus.CONFIRMED, 11, 12, TransactionStatus.PENDING),
            (LedgerStatus.PENDING, 0, 1, TransactionStatus.PENDING),
            (LedgerStatus.FAILED, 5, 1, TransactionStatus.FAILED),
        ],
    )
    def test_status_for_ledger(
        self, make_details, ledger_status, confirmations, threshold, expected
    ):
        details = make_details(status=ledger_status, confirmations=confirmations)
        assert status_for_ledger(details, threshold) is expected

    def test_reason_texts(self):
        assert not_found_after_retries(60) == (
            "Transaction not found on blockchain after 60 retries"
        )
        assert never_confirmed(10) == "Transaction found but not confirmed after 10 checks"
        assert stale_during_sweep(2.456) == (
            "Transaction not found on blockchain after 2.5 hours (stale)"
        )


class TestPhase:
    """Tests for derived lifecycle phases."""

    @pytest.mark.parametrize(
        ("status", "meta", "expected"),
        [
            ("pending", {"isPending": True}, Phase.AWAITING_DISCOVERY),
            ("pending", {"isPending": False}, Phase.AWAITING_CONFIRMATION),
            ("completed", {}, Phase.COMPLETED),
            ("failed", {"isPending": True}, Phase.FAILED),
        ],
    )
    def test_phase_of(self, status, meta, expected):
        record = TransactionRecord(status=status, meta=meta)
        assert phase_of(record) is expected


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    async def test_attempts_sleep_before_each(self, no_sleep):
        policy = RetryPolicy(max_attempts=3, delay=1.5, sleep=no_sleep)

        attempts = [attempt async for attempt in policy.attempts()]

        assert attempts == [1, 2, 3]
        assert no_sleep.delays == [1.5, 1.5, 1.5]
        assert policy.max_duration == 4.5

    @pytest.mark.parametrize(("max_attempts", "delay"), [(0, 1.0), (3, -1.0)])
    def test_rejects_invalid_values(self, max_attempts, delay):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=max_attempts, delay=delay)

    def test_from_settings(self):
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:",
            discovery_max_attempts=60,
            discovery_retry_delay=2.0,
            confirmation_max_attempts=10,
            confirmation_threshold=12,
            stale_after_hours=2.0,
        )

        policy = ReconciliationPolicy.from_settings(settings)

        assert policy.discovery.max_attempts == 60
        assert policy.discovery.max_duration == 120.0
        assert policy.confirmation.max_attempts == 10
        assert policy.confirmation_threshold == 12
        assert policy.stale_after == timedelta(hours=2)

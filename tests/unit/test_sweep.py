"""Unit tests for the stuck transaction sweep."""

from datetime import timedelta

import pytest

from reconciler.models import LedgerStatus, TransactionRecord
from reconciler.repositories.transaction_repository import TransactionRepository
from reconciler.schemas.transaction_metadata import TransactionMetadata
from reconciler.utils.datetime_utils import utc_now

WALLET_U = "0x1111111111111111111111111111111111111111"
WALLET_V = "0x2222222222222222222222222222222222222222"


def _hash(n: int) -> str:
    return "0x" + f"{n:064x}"


@pytest.fixture
def add_records(session_factory):
    """Insert records and return them."""

    async def _add(*records):
        async with session_factory() as session:
            session.add_all(records)
            await session.commit()
        return records

    return _add


@pytest.fixture
def placeholder(users):
    """Factory of placeholder records submitted by alice."""

    def _make(n: int, age: timedelta, **overrides) -> TransactionRecord:
        alice = users["alice"]
        values = {
            "tx_hash": _hash(n),
            "status": "pending",
            "from_user_id": alice.id,
            "to_user_id": alice.id,
            "submitted_by_user_id": alice.id,
            "from_address": "pending",
            "to_address": "pending",
            "amount": "0",
            "token_address": "0x0",
            "source_chain": "ethereum",
            "destination_chain": "ethereum",
            "meta": {"isPending": True, "networkId": 1, "networkName": "ethereum"},
            "created_at": utc_now() - age,
        }
        values.update(overrides)
        return TransactionRecord(**values)

    return _make


async def _reload(session_factory, record_id):
    async with session_factory() as session:
        return await TransactionRepository(session).get_by_id(record_id)


class TestStuckTransactionSweep:
    """Tests for StuckTransactionSweeper via the engine."""

    async def test_dry_run_changes_nothing(
        self,
        engine,
        ledger_reader,
        make_details,
        placeholder,
        add_records,
        session_factory,
        mock_notifier,
    ):
        """A stale record and one the ledger would find both stay as they are."""
        ledger_reader.responses = [None]
        ledger_reader.default = make_details()
        records = await add_records(
            placeholder(1, timedelta(hours=3)),
            placeholder(2, timedelta(hours=1)),
            placeholder(
                3,
                timedelta(minutes=10),
                source_chain="bsc",
                destination_chain="bsc",
                meta={"isPending": True, "projectId": "p-42"},
            ),
        )

        result = await engine.sweep_stuck_transactions(dry_run=True)

        assert result.skipped == 3
        assert result.fixed == result.failed == result.errors == 0
        assert result.report.dry_run
        assert [s.reason for s in result.report.skipped_records] == ["dry run"] * 3
        assert ledger_reader.calls == []
        mock_notifier.notify_completed.assert_not_awaited()

        for record in records:
            stored = await _reload(session_factory, record.id)
            assert stored.status == "pending"
            assert stored.from_address == "pending"
            assert stored.amount == "0"
            assert stored.meta == record.meta

    async def test_root_metadata_keys_survive_sweep(
        self, engine, ledger_reader, make_details, placeholder, add_records, session_factory
    ):
        """Rows written before extensions existed keep their caller keys."""
        ledger_reader.default = make_details()
        (record,) = await add_records(
            placeholder(
                1,
                timedelta(hours=1),
                meta={
                    "isPending": True,
                    "networkId": 1,
                    "type": "payment",
                    "projectId": "p-42",
                    "client": "ios",
                },
            )
        )

        result = await engine.sweep_stuck_transactions()

        assert result.fixed == 1
        stored = await _reload(session_factory, record.id)
        meta = TransactionMetadata.from_raw(stored.meta)
        assert stored.status == "completed"
        assert meta.extensions == {
            "type": "payment",
            "projectId": "p-42",
            "client": "ios",
        }

    async def test_stale_failure_keeps_root_metadata_keys(
        self, engine, placeholder, add_records, session_factory
    ):
        (record,) = await add_records(
            placeholder(
                1,
                timedelta(hours=3),
                meta={"isPending": True, "networkId": 1, "projectId": "p-42"},
            )
        )

        await engine.sweep_stuck_transactions()

        stored = await _reload(session_factory, record.id)
        assert stored.status == "failed"
        assert stored.meta["extensions"] == {"projectId": "p-42"}

    async def test_notifier_failure_keeps_completion(
        self,
        engine,
        ledger_reader,
        make_details,
        placeholder,
        add_records,
        session_factory,
        mock_notifier,
    ):
        mock_notifier.notify_completed.side_effect = RuntimeError("telegram down")
        ledger_reader.default = make_details()
        (record,) = await add_records(placeholder(1, timedelta(hours=1)))

        result = await engine.sweep_stuck_transactions()

        assert result.fixed == 1
        assert result.errors == 0
        mock_notifier.notify_completed.assert_awaited_once()
        stored = await _reload(session_factory, record.id)
        assert stored.status == "completed"

    async def test_max_records_zero_processes_nothing(
        self, engine, ledger_reader, placeholder, add_records
    ):
        await add_records(
            placeholder(1, timedelta(hours=3)),
            placeholder(2, timedelta(hours=2)),
            placeholder(3, timedelta(hours=1)),
        )

        result = await engine.sweep_stuck_transactions(dry_run=True, max_records=0)

        assert result.report.total == 0
        assert ledger_reader.calls == []

    async def test_stale_record_failed(
        self, engine, placeholder, add_records, session_factory
    ):
        (record,) = await add_records(placeholder(1, timedelta(hours=3)))

        result = await engine.sweep_stuck_transactions()

        assert result.failed == 1
        stored = await _reload(session_factory, record.id)
        meta = TransactionMetadata.from_raw(stored.meta)
        assert stored.status == "failed"
        assert meta.diagnostics.error == (
            "Transaction not found on blockchain after 3.0 hours (stale)"
        )
        assert meta.diagnostics.hours_since_creation == pytest.approx(3.0, abs=0.01)
        assert meta.diagnostics.fixed_by == "sweep"
        assert meta.diagnostics.fixed_at is not None

    async def test_recent_record_left_pending(
        self, engine, placeholder, add_records, session_factory
    ):
        (record,) = await add_records(placeholder(1, timedelta(minutes=30)))

        result = await engine.sweep_stuck_transactions()

        assert result.skipped == 1
        assert result.report.skipped_records[0].reason == (
            "not found, within staleness window"
        )
        stored = await _reload(session_factory, record.id)
        assert stored.status == "pending"

    async def test_found_record_completed(
        self,
        engine,
        ledger_reader,
        make_details,
        placeholder,
        add_records,
        session_factory,
        users,
        mock_notifier,
    ):
        ledger_reader.default = make_details()
        (record,) = await add_records(placeholder(1, timedelta(hours=1)))

        result = await engine.sweep_stuck_transactions()

        assert result.fixed == 1
        stored = await _reload(session_factory, record.id)
        meta = TransactionMetadata.from_raw(stored.meta)
        assert stored.status == "completed"
        assert stored.from_address == WALLET_U
        assert stored.to_address == WALLET_V
        assert stored.from_user_id == users["alice"].id
        assert stored.to_user_id == users["bob"].id
        assert not meta.is_pending
        assert meta.diagnostics.fixed_by == "sweep"
        mock_notifier.notify_completed.assert_awaited_once()

    async def test_below_threshold_refreshed_not_completed(
        self, engine, ledger_reader, make_details, placeholder, add_records, session_factory
    ):
        ledger_reader.default = make_details(confirmations=0)
        (record,) = await add_records(placeholder(1, timedelta(hours=1)))

        result = await engine.sweep_stuck_transactions()

        assert result.skipped == 1
        assert result.report.skipped_records[0].reason == "found, awaiting confirmation"
        stored = await _reload(session_factory, record.id)
        assert stored.status == "pending"
        assert stored.to_address == WALLET_V
        assert not TransactionMetadata.from_raw(stored.meta).is_pending

    async def test_reverted_record_failed(
        self, engine, ledger_reader, make_details, placeholder, add_records, session_factory
    ):
        ledger_reader.default = make_details(status=LedgerStatus.FAILED)
        (record,) = await add_records(placeholder(1, timedelta(hours=1)))

        result = await engine.sweep_stuck_transactions()

        assert result.failed == 1
        stored = await _reload(session_factory, record.id)
        meta = TransactionMetadata.from_raw(stored.meta)
        assert meta.diagnostics.error == "Transaction reverted on chain"

    async def test_terminal_records_untouched(
        self, engine, ledger_reader, make_details, placeholder, add_records, session_factory
    ):
        """Completed native transfers carry token 0x0 but never move."""
        ledger_reader.default = make_details(status=LedgerStatus.FAILED)
        (record,) = await add_records(
            placeholder(
                1,
                timedelta(hours=5),
                status="completed",
                from_address=WALLET_U,
                to_address=WALLET_V,
                amount="100",
                meta={"networkId": 1},
            )
        )

        result = await engine.sweep_stuck_transactions()

        assert result.report.total == 0
        assert ledger_reader.calls == []
        stored = await _reload(session_factory, record.id)
        assert stored.status == "completed"

    async def test_error_counted_and_sweep_continues(
        self, engine, ledger_reader, make_details, placeholder, add_records
    ):
        ledger_reader.responses = [RuntimeError("rpc exploded")]
        ledger_reader.default = make_details()
        await add_records(
            placeholder(1, timedelta(hours=2)),
            placeholder(2, timedelta(hours=1)),
        )

        result = await engine.sweep_stuck_transactions()

        assert result.errors == 1
        assert result.fixed == 1
        assert result.report.errors[0].tx_hash == _hash(1)
        assert result.report.errors[0].error == "rpc exploded"
        assert result.report.stats_for("ethereum").errors == 1
        assert result.report.stats_for("ethereum").fixed == 1

    async def test_network_from_chain_name(
        self, engine, ledger_reader, placeholder, add_records
    ):
        """Records without networkId fall back to source_chain."""
        await add_records(
            placeholder(
                1,
                timedelta(minutes=10),
                source_chain="bsc",
                destination_chain="bsc",
                meta={"isPending": True},
            )
        )

        result = await engine.sweep_stuck_transactions()

        assert ledger_reader.calls == [("bsc", _hash(1))]
        assert result.report.stats_for("bsc").total == 1

    async def test_unresolvable_network_skipped(
        self, engine, ledger_reader, placeholder, add_records
    ):
        await add_records(
            placeholder(
                1,
                timedelta(hours=5),
                source_chain="polygon",
                destination_chain="polygon",
                meta={"isPending": True},
            )
        )

        result = await engine.sweep_stuck_transactions()

        assert result.skipped == 1
        assert result.report.skipped_records[0].reason == "unresolvable network"
        assert result.report.stats_for(None).skipped == 1
        assert ledger_reader.calls == []

    async def test_max_records_oldest_first(
        self, engine, ledger_reader, placeholder, add_records
    ):
        await add_records(
            placeholder(1, timedelta(minutes=10)),
            placeholder(2, timedelta(minutes=30)),
            placeholder(3, timedelta(minutes=20)),
        )

        result = await engine.sweep_stuck_transactions(max_records=2)

        assert result.report.total == 2
        assert [call[1] for call in ledger_reader.calls] == [_hash(2), _hash(3)]

    async def test_report_to_dict(self, engine, placeholder, add_records):
        await add_records(placeholder(1, timedelta(hours=3)))

        result = await engine.sweep_stuck_transactions()
        summary = result.to_dict()

        assert summary["failed"] == 1
        assert summary["report"]["total"] == 1
        assert summary["report"]["networks"]["ethereum"]["failed"] == 1
        assert summary["report"]["duration_ms"] >= 0
        assert summary["report"]["finished_at"] is not None

"""Tests for the Supabase-backed claim log."""

from unittest.mock import MagicMock

from quiz_faucet.claim_log import CLAIM_LOG_TABLE, ClaimLogService
from quiz_faucet.settlement import Failed, Rejected, Success

from conftest import WALLET

TX_HASH = "0x" + "ab" * 32


def _service(supabase):
    return ClaimLogService(client_factory=lambda: supabase, explorer_tx_url="https://explorer/tx/")


class TestRecordOutcome:

    def test_success_row(self):
        supabase = MagicMock()
        _service(supabase).record_outcome(WALLET, 84, Success(TX_HASH))

        supabase.table.assert_called_with(CLAIM_LOG_TABLE)
        row = supabase.table.return_value.insert.call_args.args[0]
        assert row["wallet_address"] == WALLET.lower()
        assert row["score"] == 84
        assert row["status"] == "success"
        assert row["transaction_hash"] == TX_HASH
        assert row["reason"] is None

    def test_rejected_and_failed_rows_carry_reason(self):
        supabase = MagicMock()
        service = _service(supabase)

        service.record_outcome(WALLET, 90, Rejected("limit reached"))
        service.record_outcome(WALLET, 90, Failed("timeout"))

        rows = [c.args[0] for c in supabase.table.return_value.insert.call_args_list]
        assert [(r["status"], r["reason"], r["transaction_hash"]) for r in rows] == [
            ("rejected", "limit reached", None),
            ("failed", "timeout", None),
        ]

    def test_database_error_is_swallowed(self):
        supabase = MagicMock()
        supabase.table.return_value.insert.return_value.execute.side_effect = RuntimeError("db down")
        assert _service(supabase).record_outcome(WALLET, 84, Success(TX_HASH)) is None

    def test_disabled_without_supabase(self):
        assert _service(None).record_outcome(WALLET, 84, Success(TX_HASH)) is None


class TestClaimHistory:

    def test_rows_get_explorer_links(self):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value.eq.return_value.order.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[
            {"status": "success", "transaction_hash": TX_HASH},
            {"status": "rejected", "transaction_hash": None},
        ])

        history = _service(supabase).get_claim_history(WALLET, limit=5)

        supabase.table.return_value.select.return_value.eq.assert_called_with("wallet_address", WALLET.lower())
        assert history[0]["explorer_url"] == "https://explorer/tx/" + TX_HASH
        assert "explorer_url" not in history[1]

    def test_disabled_without_supabase(self):
        assert _service(None).get_claim_history(WALLET) == []

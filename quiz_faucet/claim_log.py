import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from config import CLAIM_LOG_CONFIG
from supabase_client import get_supabase_client, safe_supabase_operation
from .contract_service import mask_wallet_address
from .settlement import Failed, Rejected, SettlementOutcome, Success

logger = logging.getLogger(__name__)

CLAIM_LOG_TABLE = CLAIM_LOG_CONFIG['TABLE']


class ClaimLogService:
    """Best-effort audit trail of settlement attempts; never affects an outcome"""

    def __init__(self, client_factory=get_supabase_client, explorer_tx_url: str = ''):
        self.client_factory = client_factory
        self.explorer_tx_url = explorer_tx_url

    def record_outcome(self, wallet_address: str, score: int, outcome: SettlementOutcome):
        supabase = self.client_factory()
        if not supabase:
            return None

        entry = {
            'wallet_address': wallet_address.lower(),
            'score': score,
            'status': outcome.status,
            'transaction_hash': outcome.tx_hash if isinstance(outcome, Success) else None,
            'reason': outcome.reason if isinstance(outcome, Rejected)
            else outcome.cause if isinstance(outcome, Failed) else None,
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

        result = safe_supabase_operation(
            lambda: supabase.table(CLAIM_LOG_TABLE).insert(entry).execute(),
            fallback_result=None,
            operation_name="record faucet claim outcome"
        )
        if result is not None:
            logger.info(f"✅ Claim outcome logged: {outcome.status} for {mask_wallet_address(wallet_address)}")
        return result

    def get_claim_history(self, wallet_address: str, limit: int = None) -> List[Dict[str, Any]]:
        """Most recent claim attempts for a wallet, newest first"""
        limit = limit or CLAIM_LOG_CONFIG['HISTORY_LIMIT']
        supabase = self.client_factory()
        if not supabase:
            return []

        result = safe_supabase_operation(
            lambda: supabase.table(CLAIM_LOG_TABLE)
                .select('*')
                .eq('wallet_address', wallet_address.lower())
                .order('timestamp', desc=True)
                .limit(limit)
                .execute(),
            fallback_result=None,
            operation_name="get faucet claim history"
        )

        history = []
        for row in (result.data if result else None) or []:
            entry = dict(row)
            if entry.get('transaction_hash'):
                entry['explorer_url'] = f"{self.explorer_tx_url}{entry['transaction_hash']}"
            history.append(entry)
        return history

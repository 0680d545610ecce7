import logging
import time

from supabase import create_client, Client

from config import CLAIM_LOG_CONFIG

logger = logging.getLogger(__name__)

_client: Client = None
_disabled = False


def get_supabase_client(retries=3, config=None):
    """Shared Supabase client for the claim log, or None when logging is disabled"""
    global _client, _disabled

    if _client is not None:
        return _client
    if _disabled:
        return None

    config = config if config is not None else CLAIM_LOG_CONFIG
    url = config.get('SUPABASE_URL')
    key = config.get('SUPABASE_KEY')
    if not url or not key:
        logger.debug("Supabase not configured - claim log disabled")
        return None

    for attempt in range(1, retries + 1):
        try:
            _client = create_client(url, key)
            logger.info("✅ Claim log connected to Supabase")
            return _client
        except Exception as e:
            logger.error(f"❌ Supabase connection failed (attempt {attempt}/{retries}): {e}")
            if attempt < retries:
                time.sleep(1)

    logger.error("💡 Check SUPABASE_URL and SUPABASE_ANON_KEY - claim log disabled until restart")
    _disabled = True
    return None


def safe_supabase_operation(operation, fallback_result=None, operation_name="database operation"):
    """
    Run a Supabase call; the claim log must never break a request.

    Returns the operation's result, or fallback_result if it raised.
    """
    try:
        return operation()
    except Exception as e:
        logger.error(f"❌ Error in {operation_name}: {e}")
        return fallback_result


# Claim log table (run once in the Supabase SQL editor):
"""
CREATE TABLE IF NOT EXISTS faucet_claim_log (
    id BIGSERIAL PRIMARY KEY,
    wallet_address TEXT NOT NULL,
    score SMALLINT NOT NULL CHECK (score BETWEEN 0 AND 100),
    status TEXT NOT NULL CHECK (status IN ('success', 'rejected', 'failed')),
    transaction_hash TEXT,
    reason TEXT,
    timestamp TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_faucet_claim_log_wallet_time
    ON faucet_claim_log (wallet_address, timestamp DESC);
"""

"""
Reward settlement

The eligibility gate reads the faucet's claim state; the coordinator runs one
settlement attempt: eligibility first, then a single claim submission, then a
bounded wait for the receipt. The faucet contract is the final authority on
limits. Nothing here locks or caches ledger state, so two concurrent attempts
for the same wallet may both pass the gate and only the ledger write decides.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from config import QUIZ_FAUCET_CONFIG
from .contract_service import mask_wallet_address
from .exceptions import LedgerError, LedgerTimeoutError, LedgerUnreachable

logger = logging.getLogger(__name__)

# Ledger calls are blocking web3 requests. A timed-out write keeps running in
# its worker (a submitted transaction cannot be withdrawn), so writes get their
# own pool and stuck receipt waits never delay eligibility reads.
_read_executor = ThreadPoolExecutor(
    max_workers=QUIZ_FAUCET_CONFIG['LEDGER_READ_WORKERS'], thread_name_prefix='faucet-ledger-read'
)
_write_executor = ThreadPoolExecutor(
    max_workers=QUIZ_FAUCET_CONFIG['LEDGER_WRITE_WORKERS'], thread_name_prefix='faucet-ledger-write'
)

LIMIT_REACHED = 'limit reached'
SCORE_TOO_LOW = 'score below pass threshold'
TIMEOUT = 'timeout'


@dataclass(frozen=True)
class ClaimStatus:
    remaining_claims: int
    can_claim: bool
    last_claim_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'remainingClaims': self.remaining_claims,
            'lastClaimTime': self.last_claim_time.isoformat() if self.last_claim_time else None,
            'canClaim': self.can_claim
        }

    @classmethod
    def from_ledger(cls, raw) -> 'ClaimStatus':
        """Parse a ledger getStatus payload; lastClaimTimestamp 0 means never claimed"""
        if not isinstance(raw, dict):
            raise LedgerUnreachable('Ledger returned an unreadable claim status')

        remaining = raw.get('remainingClaims')
        can_claim = raw.get('canClaim')
        last_ts = raw.get('lastClaimTimestamp') or 0

        if isinstance(remaining, bool) or not isinstance(remaining, int) or remaining < 0:
            raise LedgerUnreachable(f'Ledger returned invalid remainingClaims: {remaining!r}')
        if not isinstance(can_claim, bool):
            raise LedgerUnreachable(f'Ledger returned invalid canClaim: {can_claim!r}')
        if isinstance(last_ts, bool) or not isinstance(last_ts, int) or last_ts < 0:
            raise LedgerUnreachable(f'Ledger returned invalid lastClaimTimestamp: {last_ts!r}')

        last_claim_time = datetime.fromtimestamp(last_ts, tz=timezone.utc) if last_ts > 0 else None
        return cls(remaining_claims=remaining, can_claim=can_claim, last_claim_time=last_claim_time)


class SettlementOutcome:
    """Result of one settlement attempt: Success, Rejected or Failed"""

    status = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self, Success)


@dataclass(frozen=True)
class Success(SettlementOutcome):
    tx_hash: str
    block_number: Optional[int] = None
    explorer_url: Optional[str] = None
    status = 'success'


@dataclass(frozen=True)
class Rejected(SettlementOutcome):
    reason: str
    status = 'rejected'


@dataclass(frozen=True)
class Failed(SettlementOutcome):
    cause: str
    status = 'failed'

    @property
    def timed_out(self) -> bool:
        """The transaction may still land; callers must not report it as not granted"""
        return self.cause == TIMEOUT


class SettlementState(Enum):
    IDLE = 'idle'
    ELIGIBILITY_CHECKED = 'eligibility_checked'
    SUBMITTED = 'submitted'
    SETTLED = 'settled'
    REJECTED = 'rejected'
    FAILED = 'failed'


TERMINAL_STATES = {SettlementState.SETTLED, SettlementState.REJECTED, SettlementState.FAILED}


async def _run_ledger_call(executor, func, *args, timeout: float):
    loop = asyncio.get_running_loop()
    return await asyncio.wait_for(loop.run_in_executor(executor, func, *args), timeout=timeout)


class ClaimEligibilityGate:
    """Advisory, read-only eligibility check against the faucet"""

    def __init__(self, ledger, timeout: float = 15.0):
        self.ledger = ledger
        self.timeout = timeout

    async def check_eligibility(self, identity: str) -> ClaimStatus:
        """
        Read the claim status for an identity

        Raises:
            LedgerUnreachable: the read failed or timed out; eligibility is unknown
        """
        try:
            raw = await _run_ledger_call(_read_executor, self.ledger.get_status, identity, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"⏱️ Claim status read timed out for {mask_wallet_address(identity)}")
            raise LedgerUnreachable(f"Claim status read timed out after {self.timeout}s") from e
        except LedgerUnreachable:
            raise
        except Exception as e:
            logger.error(f"❌ Error fetching claim status for {mask_wallet_address(identity)}: {e}")
            raise LedgerUnreachable(f"Failed to read claim status: {e}") from e

        status = ClaimStatus.from_ledger(raw)
        logger.info(
            f"🔍 Claim status for {mask_wallet_address(identity)}: "
            f"canClaim={status.can_claim}, remaining={status.remaining_claims}"
        )
        return status


class SettlementAttempt:
    """One user-initiated claim; terminal states are never left"""

    def __init__(self, identity: str, final_score: int, passed: bool):
        self.identity = identity
        self.final_score = final_score
        self.passed = passed
        self.state = SettlementState.IDLE
        self.claim_status = None
        self.outcome = None

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, state: SettlementState):
        if self.is_finished:
            raise RuntimeError(f"Settlement attempt already finished in state {self.state.value}")
        logger.debug(f"🔁 Settlement {mask_wallet_address(self.identity)}: {self.state.value} -> {state.value}")
        self.state = state

    def finish(self, outcome: SettlementOutcome) -> SettlementOutcome:
        if isinstance(outcome, Success):
            self.advance(SettlementState.SETTLED)
        elif isinstance(outcome, Rejected):
            self.advance(SettlementState.REJECTED)
        else:
            self.advance(SettlementState.FAILED)
        self.outcome = outcome
        return outcome


class RewardSettlementCoordinator:
    """Runs settlement attempts: eligibility, one submission, bounded wait"""

    def __init__(self, ledger, gate: ClaimEligibilityGate = None, write_timeout: float = 120.0):
        self.ledger = ledger
        self.gate = gate or ClaimEligibilityGate(ledger)
        self.write_timeout = write_timeout

    async def settle(self, identity: str, final_score: int, passed: bool) -> SettlementOutcome:
        """Start a brand-new attempt and run it to a terminal outcome"""
        return await self.run(SettlementAttempt(identity, final_score, passed))

    async def run(self, attempt: SettlementAttempt) -> SettlementOutcome:
        if attempt.state is not SettlementState.IDLE:
            raise RuntimeError("Settlement attempts can only be run once; start a new attempt to retry")

        masked = mask_wallet_address(attempt.identity)

        if not attempt.passed:
            logger.info(f"🚫 Settlement rejected for {masked}: score {attempt.final_score} below threshold")
            return attempt.finish(Rejected(SCORE_TOO_LOW))

        try:
            attempt.claim_status = await self.gate.check_eligibility(attempt.identity)
        except LedgerUnreachable as e:
            # Unknown eligibility is never treated as eligible
            return attempt.finish(Failed(str(e)))

        attempt.advance(SettlementState.ELIGIBILITY_CHECKED)

        if not attempt.claim_status.can_claim:
            logger.info(f"🚫 Settlement rejected for {masked}: daily claim limit reached")
            return attempt.finish(Rejected(LIMIT_REACHED))

        attempt.advance(SettlementState.SUBMITTED)

        try:
            receipt = await _run_ledger_call(
                _write_executor, self.ledger.submit_claim, attempt.identity, attempt.final_score,
                timeout=self.write_timeout
            )
        except (asyncio.TimeoutError, LedgerTimeoutError):
            logger.error(f"⏱️ Claim for {masked} not confirmed in time - outcome unknown")
            return attempt.finish(Failed(TIMEOUT))
        except LedgerError as e:
            logger.error(f"❌ Claim for {masked} failed on the ledger: {e}")
            return attempt.finish(Failed(str(e)))
        except Exception as e:
            logger.error(f"❌ Claim for {masked} failed: {e}")
            return attempt.finish(Failed(str(e)))

        tx_hash = receipt.get('txHash') if isinstance(receipt, dict) else None
        if not isinstance(tx_hash, str) or not tx_hash:
            logger.error(f"❌ Ledger accepted claim for {masked} without a receipt hash")
            return attempt.finish(Failed('ledger returned no receipt'))

        logger.info(f"✅ Reward settled for {masked} - TX: {tx_hash}")
        return attempt.finish(Success(
            tx_hash,
            block_number=receipt.get('blockNumber'),
            explorer_url=receipt.get('explorerUrl')
        ))

"""Shared pytest fixtures for the quiz faucet tests.

Provides:
- ``FakeLedger``: in-memory faucet with atomic per-wallet claim accounting
- ``FakeOracle``: scripted JSON-mode oracle client
- ``ledger`` / ``oracle``: fresh fakes per test
- ``services`` / ``client``: a Flask test client wired to the fakes
"""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest
from web3 import Web3

from quiz_faucet import build_services
from quiz_faucet.exceptions import LedgerRejectedError

WALLET = Web3.to_checksum_address("0x" + "ab" * 20)
OTHER_WALLET = Web3.to_checksum_address("0x" + "cd" * 20)


class FakeLedger:
    """Faucet stand-in: the write path is the only place limits are enforced."""

    def __init__(self, remaining: int = 1, last_claim_timestamp: int = 0,
                 read_barrier: threading.Barrier | None = None,
                 read_delay: float = 0, submit_delay: float = 0,
                 read_error: Exception | None = None,
                 submit_error: Exception | None = None):
        self._lock = threading.Lock()
        self.remaining = remaining
        self.last_claim_timestamp = last_claim_timestamp
        self.read_barrier = read_barrier
        self.read_delay = read_delay
        self.submit_delay = submit_delay
        self.read_error = read_error
        self.submit_error = submit_error
        self.status_calls = 0
        self.submit_calls = 0
        self.submitted = []

    def get_status(self, identity):
        with self._lock:
            self.status_calls += 1
            snapshot = {
                "remainingClaims": self.remaining,
                "lastClaimTimestamp": self.last_claim_timestamp,
                "canClaim": self.remaining > 0,
            }
        if self.read_barrier is not None:
            self.read_barrier.wait(timeout=5)
        if self.read_delay:
            time.sleep(self.read_delay)
        if self.read_error is not None:
            raise self.read_error
        return snapshot

    def submit_claim(self, identity, score_percentage):
        with self._lock:
            self.submit_calls += 1
            self.submitted.append((identity, score_percentage))
        if self.submit_delay:
            time.sleep(self.submit_delay)
        if self.submit_error is not None:
            raise self.submit_error
        with self._lock:
            if self.remaining <= 0:
                raise LedgerRejectedError("execution reverted: daily claim limit reached")
            self.remaining -= 1
            self.last_claim_timestamp = int(time.time())
            tx_hash = "0x" + f"{self.submit_calls:064x}"
            return {"txHash": tx_hash, "blockNumber": 100 + self.submit_calls,
                    "explorerUrl": "https://sepolia.etherscan.io/tx/" + tx_hash}

    def get_faucet_info(self):
        return {"max_claims_per_day": 3, "max_reward": 0.001, "balance": 0.05}


class FakeOracle:
    """Returns queued payloads in order; an Exception in the queue is raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def chat_json(self, system, prompt, temperature=0.7, max_tokens=1000):
        self.calls.append({"system": system, "prompt": prompt, "temperature": temperature})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(remaining=3)


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def services(ledger, oracle):
    services = build_services(ledger=ledger, oracle=oracle)
    services.claim_log = MagicMock()
    services.claim_log.get_claim_history.return_value = []
    return services


@pytest.fixture
def client(services):
    from main import create_app

    app = create_app(services)
    app.config["TESTING"] = True
    return app.test_client()

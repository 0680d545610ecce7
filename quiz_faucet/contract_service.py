"""
Quiz Faucet Contract Service

This service interacts with the deployed QuizFaucet smart contract. The
contract owns the daily claim limit and the reward formula; this module only
reads its state and submits claims on behalf of learners.

Uses ADMIN_PRIVATE_KEY as the faucet operator to sign all claim transactions.
"""

import logging
from typing import Any, Dict

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted
from eth_account import Account

from config import FAUCET_CONTRACT_CONFIG, QUIZ_FAUCET_CONFIG
from .exceptions import InvalidInput, LedgerError, LedgerRejectedError, LedgerTimeoutError

logger = logging.getLogger(__name__)


CONTRACT_ABI = [
    {
        "inputs": [{"name": "user", "type": "address"}],
        "name": "canClaim",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "user", "type": "address"}],
        "name": "getRemainingClaims",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "", "type": "address"}],
        "name": "userClaims",
        "outputs": [
            {"name": "claimCount", "type": "uint256"},
            {"name": "lastClaimTimestamp", "type": "uint256"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "scorePercentage", "type": "uint256"}
        ],
        "name": "claimReward",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "maxClaimsPerDay",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "maxReward",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]


def mask_wallet_address(wallet_address: str) -> str:
    """Mask wallet address for logging"""
    if not wallet_address or not wallet_address.startswith("0x") or len(wallet_address) < 10:
        return wallet_address
    return wallet_address[:6] + "..." + wallet_address[-4:]


def validate_address(user_address) -> str:
    """Return the checksummed address or raise InvalidInput"""
    if not isinstance(user_address, str) or not Web3.is_address(user_address):
        raise InvalidInput('Invalid address format')
    return Web3.to_checksum_address(user_address)


class FaucetContractService:
    """Service for interacting with the QuizFaucet smart contract"""

    def __init__(self, w3: Web3 = None, contract_address: str = None, admin_key: str = None,
                 chain_id: int = None, tx_timeout: float = 120, config: Dict[str, Any] = None):
        config = config if config is not None else FAUCET_CONTRACT_CONFIG
        self.rpc_url = config.get('RPC_URL')
        self.chain_id = chain_id if chain_id is not None else config.get('CHAIN_ID')
        self.contract_address = contract_address or config.get('CONTRACT_ADDRESS')
        self.admin_key = admin_key or config.get('ADMIN_PRIVATE_KEY')
        self.gas_limit = config.get('GAS_LIMIT', 200000)
        self.explorer_tx_url = config.get('EXPLORER_TX_URL', '')
        self.tx_timeout = tx_timeout

        self.w3 = w3 or Web3(Web3.HTTPProvider(self.rpc_url))
        self.contract = None
        self.admin_account = None

        self._initialize()

    def _initialize(self):
        """Load contract and operator account; network is not touched here"""
        if self.contract_address:
            self.contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(self.contract_address),
                abi=CONTRACT_ABI
            )
            logger.info(f"📋 QuizFaucet contract loaded: {self.contract_address}")
        else:
            logger.warning("⚠️ QUIZ_FAUCET_ADDRESS not set - deploy contract first")

        if self.admin_key:
            if not self.admin_key.startswith('0x'):
                self.admin_key = '0x' + self.admin_key
            self.admin_account = Account.from_key(self.admin_key)
            logger.info(f"👛 Faucet operator wallet: {mask_wallet_address(self.admin_account.address)}")
        else:
            logger.error("❌ ADMIN_PRIVATE_KEY not configured")

    @property
    def is_configured(self) -> bool:
        return self.contract is not None and self.admin_account is not None

    def _require_contract(self):
        if self.contract is None:
            raise LedgerError("Faucet contract not initialized")

    def get_status(self, user_address: str) -> Dict[str, Any]:
        """Read the claim status for a user straight from the contract.

        Returns:
            Dict with remainingClaims, lastClaimTimestamp (0 = never) and canClaim
        """
        self._require_contract()
        user = Web3.to_checksum_address(user_address)

        remaining_claims = self.contract.functions.getRemainingClaims(user).call()
        can_claim = self.contract.functions.canClaim(user).call()
        user_claims = self.contract.functions.userClaims(user).call()

        return {
            "remainingClaims": int(remaining_claims),
            "lastClaimTimestamp": int(user_claims[1]),
            "canClaim": bool(can_claim)
        }

    def submit_claim(self, user_address: str, score_percentage: int) -> Dict[str, Any]:
        """
        Submit a single claimReward transaction and wait for its receipt

        Args:
            user_address: Wallet address of the learner
            score_percentage: Final quiz score (0-100); the contract sizes the reward

        Returns:
            Dict with txHash, blockNumber and explorerUrl

        Raises:
            LedgerRejectedError: the contract refused or reverted the claim
            LedgerTimeoutError: no receipt before tx_timeout (outcome unknown)
            LedgerError: anything else that prevented confirmation
        """
        self._require_contract()
        if self.admin_account is None:
            raise LedgerError("Faucet operator key not configured")

        user = Web3.to_checksum_address(user_address)
        logger.info(f"💰 Submitting claim for {mask_wallet_address(user)} with score {score_percentage}%")

        claim_call = self.contract.functions.claimReward(user, int(score_percentage))

        try:
            # Dry run surfaces the revert reason (e.g. daily limit) before anything is signed
            claim_call.call({'from': self.admin_account.address})

            nonce = self.w3.eth.get_transaction_count(self.admin_account.address)
            gas_price = int(self.w3.eth.gas_price * 1.2)

            txn = claim_call.build_transaction({
                'chainId': self.chain_id,
                'gas': self.gas_limit,
                'gasPrice': gas_price,
                'nonce': nonce,
                'from': self.admin_account.address,
            })
        except ContractLogicError as e:
            logger.warning(f"🚫 Claim rejected by contract for {mask_wallet_address(user)}: {e}")
            raise LedgerRejectedError(f"Claim rejected by contract: {e}") from e
        except Exception as e:
            logger.error(f"❌ Failed to build claim transaction: {e}")
            raise LedgerError(f"Failed to build claim transaction: {e}") from e

        try:
            signed_txn = self.w3.eth.account.sign_transaction(txn, self.admin_key)
            tx_hash = self.w3.eth.send_raw_transaction(signed_txn.raw_transaction)
        except Exception as e:
            logger.error(f"❌ Failed to send claim transaction: {e}")
            raise LedgerError(f"Failed to send claim transaction: {e}") from e

        tx_hash_hex = tx_hash.hex()
        if not tx_hash_hex.startswith('0x'):
            tx_hash_hex = '0x' + tx_hash_hex

        logger.info(f"📡 Claim transaction sent: {tx_hash_hex}")

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
        except TimeExhausted as e:
            logger.error(f"⏱️ No receipt for {tx_hash_hex} after {self.tx_timeout}s")
            raise LedgerTimeoutError(f"Transaction {tx_hash_hex} not confirmed within {self.tx_timeout}s") from e
        except Exception as e:
            logger.error(f"❌ Error waiting for receipt of {tx_hash_hex}: {e}")
            raise LedgerError(f"Error waiting for receipt of {tx_hash_hex}: {e}") from e

        if receipt.status != 1:
            logger.error(f"❌ Claim transaction reverted: {tx_hash_hex}")
            raise LedgerRejectedError(f"Claim transaction reverted: {tx_hash_hex}")

        logger.info(f"✅ Claim confirmed - TX: {tx_hash_hex}, block {receipt.blockNumber}")

        return {
            "txHash": tx_hash_hex,
            "blockNumber": receipt.blockNumber,
            "explorerUrl": f"{self.explorer_tx_url}{tx_hash_hex}"
        }

    def get_faucet_info(self) -> dict:
        """Get faucet parameters and balance"""
        try:
            if not self.contract:
                return {}

            max_reward_wei = self.contract.functions.maxReward().call()
            balance_wei = self.w3.eth.get_balance(self.contract.address)

            return {
                "contract_address": self.contract.address,
                "max_claims_per_day": int(self.contract.functions.maxClaimsPerDay().call()),
                "max_reward": float(Web3.from_wei(max_reward_wei, 'ether')),
                "balance": float(Web3.from_wei(balance_wei, 'ether'))
            }

        except Exception as e:
            logger.error(f"❌ Error getting faucet info: {e}")
            return {}


_faucet_contract_service = None


def get_faucet_contract_service() -> FaucetContractService:
    """Shared contract service, created on first use"""
    global _faucet_contract_service
    if _faucet_contract_service is None:
        _faucet_contract_service = FaucetContractService(
            tx_timeout=QUIZ_FAUCET_CONFIG['LEDGER_WRITE_TIMEOUT']
        )
    return _faucet_contract_service

import logging
from dataclasses import dataclass

from config import FAUCET_CONTRACT_CONFIG, ORACLE_CONFIG, QUIZ_FAUCET_CONFIG

from .claim_log import ClaimLogService
from .contract_service import FaucetContractService, get_faucet_contract_service
from .grading import QuizGradingService, ScoringPolicy
from .oracle import OracleClient, SubjectiveGrader
from .question_service import QuestionService
from .routes import quiz_faucet_bp
from .settlement import ClaimEligibilityGate, RewardSettlementCoordinator

logger = logging.getLogger(__name__)


@dataclass
class QuizFaucetServices:
    """Everything the quiz and claim routes need, wired once per app"""

    policy: ScoringPolicy
    grading_service: QuizGradingService
    question_service: QuestionService
    ledger: FaucetContractService
    gate: ClaimEligibilityGate
    coordinator: RewardSettlementCoordinator
    claim_log: ClaimLogService
    max_questions: int = 10


def build_services(ledger=None, oracle=None, config=None) -> QuizFaucetServices:
    """Wire the services from configuration; ledger and oracle can be injected"""
    config = config if config is not None else QUIZ_FAUCET_CONFIG
    policy = ScoringPolicy.from_config(config)
    oracle = oracle or OracleClient()
    ledger = ledger or get_faucet_contract_service()

    gate = ClaimEligibilityGate(ledger, timeout=config['LEDGER_READ_TIMEOUT'])

    return QuizFaucetServices(
        policy=policy,
        grading_service=QuizGradingService(policy, SubjectiveGrader(oracle)),
        question_service=QuestionService(
            oracle,
            config['COURSE_MATERIALS_DIR'],
            current_week=config['CURRENT_WEEK'],
            temperature=ORACLE_CONFIG['GENERATION_TEMPERATURE']
        ),
        ledger=ledger,
        gate=gate,
        coordinator=RewardSettlementCoordinator(ledger, gate, write_timeout=config['LEDGER_WRITE_TIMEOUT']),
        claim_log=ClaimLogService(explorer_tx_url=FAUCET_CONTRACT_CONFIG['EXPLORER_TX_URL']),
        max_questions=config['MAX_QUESTIONS']
    )


def init_quiz_faucet(app, services: QuizFaucetServices = None):
    """Initialize Quiz Faucet module with Flask app"""
    logger.info("🎓 Initializing Quiz Faucet module...")

    app.extensions['quiz_faucet'] = services or build_services()
    app.register_blueprint(quiz_faucet_bp)

    logger.info("✅ Quiz Faucet module initialized successfully")
    logger.info("📚 Available endpoints:")
    logger.info("   GET  /api/quiz/generate - Generate quiz questions")
    logger.info("   POST /api/quiz/submit - Grade quiz answers")
    logger.info("   GET  /api/claim/status/<address> - Check claim status")
    logger.info("   POST /api/claim/initiate - Claim quiz reward")
    logger.info("   GET  /api/claim/history/<address> - Claim history")
    logger.info("   GET  /api/faucet/info - Faucet parameters")

    return True


__all__ = [
    'init_quiz_faucet',
    'build_services',
    'QuizFaucetServices',
    'quiz_faucet_bp'
]

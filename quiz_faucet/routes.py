import asyncio
import logging

from flask import Blueprint, current_app, jsonify, request

from .contract_service import mask_wallet_address, validate_address
from .exceptions import InvalidInput, LedgerUnreachable, OracleError, QuizFaucetError
from .grading import SubmittedAnswerSet, is_passing
from .settlement import LIMIT_REACHED, Failed, Rejected, Success

logger = logging.getLogger(__name__)

quiz_faucet_bp = Blueprint('quiz_faucet', __name__, url_prefix='/api')


def _services():
    return current_app.extensions['quiz_faucet']


def _run_async(coro):
    """Run a coroutine to completion from a sync Flask view"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _error_response(error: QuizFaucetError, status_code: int):
    return jsonify({
        'success': False,
        'error': error.user_message,
        'details': str(error)
    }), status_code


def _parse_int_arg(name, default, minimum, maximum):
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise InvalidInput(f'{name} must be an integer') from e
    if value < minimum or value > maximum:
        raise InvalidInput(f'{name} must be between {minimum} and {maximum}')
    return value


# Quiz routes

@quiz_faucet_bp.route('/quiz/generate', methods=['GET'])
def generate_quiz():
    """Generate multiple choice questions and one free response question"""
    services = _services()
    try:
        num_questions = _parse_int_arg('numQuestions', 1, 1, services.max_questions)
        week = _parse_int_arg('week', None, 1, 52)

        quiz = services.question_service.generate_quiz(num_questions, week)

        return jsonify({
            'questions': [q.to_dict() for q in quiz['questions']],
            'freeResponseQuestion': quiz['freeResponseQuestion'].to_dict(),
            'metadata': {
                'slideTopic': quiz['slideTopic'],
                'currentWeek': quiz['week']
            }
        }), 200

    except InvalidInput as e:
        return _error_response(e, 400)
    except OracleError as e:
        logger.error(f"❌ Error generating quiz: {e}")
        return jsonify({'error': 'Failed to generate quiz questions', 'details': str(e)}), 500
    except OSError as e:
        logger.error(f"❌ Course material unavailable: {e}")
        return jsonify({'error': 'Failed to generate quiz questions'}), 500


@quiz_faucet_bp.route('/quiz/submit', methods=['POST'])
def submit_answers():
    """Grade a quiz submission; fails as a whole if any component fails"""
    services = _services()
    try:
        answer_set = SubmittedAnswerSet.from_request(request.get_json(silent=True))
        result = services.grading_service.grade_submission(answer_set)
        return jsonify(result.to_dict()), 200

    except InvalidInput as e:
        logger.warning(f"⚠️ Rejected quiz submission: {e}")
        return _error_response(e, 400)
    except OracleError as e:
        logger.error(f"❌ Error grading quiz: {e}")
        return _error_response(e, 500)


# Claim routes

@quiz_faucet_bp.route('/claim/status/<user_address>', methods=['GET'])
def get_claim_status(user_address):
    """Advisory claim status straight from the faucet contract"""
    services = _services()
    try:
        identity = validate_address(user_address)
        status = _run_async(services.gate.check_eligibility(identity))

        return jsonify({
            'userAddress': identity,
            **status.to_dict()
        }), 200

    except InvalidInput as e:
        return _error_response(e, 400)
    except LedgerUnreachable as e:
        return _error_response(e, 500)


@quiz_faucet_bp.route('/claim/initiate', methods=['POST'])
def initiate_claim():
    """Run one settlement attempt for a learner's final score"""
    services = _services()
    data = request.get_json(silent=True)

    try:
        if not isinstance(data, dict):
            raise InvalidInput('Invalid request format')
        identity = validate_address(data.get('userAddress'))
        score = data.get('scorePercentage')
        if isinstance(score, float) and score.is_integer():
            score = int(score)
        if isinstance(score, bool) or not isinstance(score, int) or score < 0 or score > 100:
            raise InvalidInput('Invalid score percentage')
    except InvalidInput as e:
        return _error_response(e, 400)

    passed = is_passing(score, services.policy)
    outcome = _run_async(services.coordinator.settle(identity, score, passed))
    services.claim_log.record_outcome(identity, score, outcome)

    if isinstance(outcome, Success):
        return jsonify({
            'success': True,
            'userAddress': identity,
            'scorePercentage': score,
            'transactionHash': outcome.tx_hash,
            'blockNumber': outcome.block_number,
            'explorerUrl': outcome.explorer_url
        }), 200

    if isinstance(outcome, Rejected):
        message = 'Daily claim limit reached' if outcome.reason == LIMIT_REACHED else 'Score below pass threshold'
        return jsonify({
            'success': False,
            'error': message,
            'reason': outcome.reason
        }), 403

    if isinstance(outcome, Failed) and outcome.timed_out:
        logger.warning(f"⏱️ Claim for {mask_wallet_address(identity)} not confirmed - do not retry blindly")
        return jsonify({
            'success': False,
            'error': 'Claim not confirmed yet. Check your wallet before trying again.',
            'confirmed': False,
            'timeout': True
        }), 500

    return jsonify({
        'success': False,
        'error': 'Failed to process claim',
        'details': outcome.cause,
        'confirmed': False
    }), 500


@quiz_faucet_bp.route('/claim/history/<user_address>', methods=['GET'])
def get_claim_history(user_address):
    """Recent claim attempts for a wallet from the claim log"""
    services = _services()
    try:
        identity = validate_address(user_address)
    except InvalidInput as e:
        return _error_response(e, 400)

    history = services.claim_log.get_claim_history(identity)
    return jsonify({'success': True, 'history': history}), 200


@quiz_faucet_bp.route('/faucet/info', methods=['GET'])
def get_faucet_info():
    """Faucet contract parameters"""
    info = _services().ledger.get_faucet_info()
    return jsonify({
        'success': bool(info),
        'contract_deployed': bool(info),
        'faucet_info': info
    }), 200

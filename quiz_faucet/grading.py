"""
Quiz grading

Pure scoring functions: the objective (multiple choice) grader, the weighted
score compositor and the submission pipeline that ties them to the
subjective grader. Nothing here touches the network except through the
injected subjective grader.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from config import QUIZ_FAUCET_CONFIG
from .exceptions import InvalidInput

logger = logging.getLogger(__name__)


def round_half_up(value) -> int:
    """Round to the nearest integer, ties away from zero (49.5 -> 50)"""
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ScoringPolicy:
    """Weighting policy and pass threshold for a deployment"""

    objective_weight: float = 0.8
    pass_threshold: int = 50

    def __post_init__(self):
        if not 0 <= self.objective_weight <= 1:
            raise ValueError(f"objective_weight must be within [0, 1], got {self.objective_weight}")
        if not 0 <= self.pass_threshold <= 100:
            raise ValueError(f"pass_threshold must be within [0, 100], got {self.pass_threshold}")

    @property
    def subjective_weight(self) -> float:
        return float(Decimal('1') - Decimal(str(self.objective_weight)))

    @classmethod
    def from_config(cls, config: Dict[str, Any] = None) -> 'ScoringPolicy':
        config = config if config is not None else QUIZ_FAUCET_CONFIG
        return cls(
            objective_weight=float(config.get('OBJECTIVE_WEIGHT', 0.8)),
            pass_threshold=int(config.get('PASS_THRESHOLD', 50))
        )


@dataclass(frozen=True)
class ItemResult:
    item_id: Any
    user_answer: Optional[str]
    correct_answer: str
    is_correct: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'itemId': self.item_id,
            'userAnswer': self.user_answer,
            'correctAnswer': self.correct_answer,
            'isCorrect': self.is_correct
        }


@dataclass(frozen=True)
class ObjectiveGrade:
    per_item: List[ItemResult]
    total_correct: int
    total_questions: int
    score: int
    # Unrounded percentage; the composite is weighted from this, never from score
    ratio: Decimal = Decimal(0)


@dataclass(frozen=True)
class SubmittedAnswerSet:
    """One quiz submission; the three sequences are positionally aligned"""

    item_ids: List[Any]
    user_answers: List[Optional[str]]
    ground_truth: List[str]
    free_response_answer: Optional[str] = None
    free_response_prompt: Optional[str] = None
    free_response_rubric: Optional[str] = None

    @property
    def has_free_response(self) -> bool:
        return self.free_response_answer is not None

    @classmethod
    def from_request(cls, data) -> 'SubmittedAnswerSet':
        """Build an answer set from a JSON request body.

        Accepts both the submission field names (itemIds, userAnswers,
        groundTruth) and the legacy client names (questionIds, answers,
        correctAnswers).
        """
        if not isinstance(data, dict):
            raise InvalidInput('Invalid request format')

        item_ids = _first_present(data, 'itemIds', 'questionIds')
        user_answers = _first_present(data, 'userAnswers', 'answers')
        ground_truth = _first_present(data, 'groundTruth', 'correctAnswers')

        for name, value in (('itemIds', item_ids), ('userAnswers', user_answers), ('groundTruth', ground_truth)):
            if not isinstance(value, list):
                raise InvalidInput(f'Invalid request format: {name} must be an array')

        if not all(isinstance(a, str) or a is None for a in user_answers):
            raise InvalidInput('Invalid request format: userAnswers must contain strings')
        if not all(isinstance(a, str) for a in ground_truth):
            raise InvalidInput('Invalid request format: groundTruth must contain strings')

        free_response = {}
        for key in ('freeResponseAnswer', 'freeResponsePrompt', 'freeResponseRubric'):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise InvalidInput(f'Invalid request format: {key} must be a string')
            free_response[key] = value

        if free_response['freeResponseAnswer'] is not None:
            if not free_response['freeResponsePrompt'] or not free_response['freeResponseRubric']:
                raise InvalidInput('freeResponsePrompt and freeResponseRubric are required with freeResponseAnswer')

        return cls(
            item_ids=list(item_ids),
            user_answers=list(user_answers),
            ground_truth=list(ground_truth),
            free_response_answer=free_response['freeResponseAnswer'],
            free_response_prompt=free_response['freeResponsePrompt'],
            free_response_rubric=free_response['freeResponseRubric']
        )


def _first_present(data: Dict[str, Any], *keys):
    for key in keys:
        if key in data:
            return data[key]
    return None


@dataclass(frozen=True)
class GradingResult:
    per_item: List[ItemResult]
    objective_score: int
    final_score: int
    passed: bool
    total_correct: int
    total_questions: int
    subjective_score: Optional[int] = None
    subjective_feedback: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        response = {
            'score': self.final_score,
            'isCorrect': self.passed,
            'multipleChoice': {
                'results': [item.to_dict() for item in self.per_item],
                'totalCorrect': self.total_correct,
                'totalQuestions': self.total_questions,
                'score': self.objective_score
            }
        }
        if self.subjective_score is not None:
            response['freeResponse'] = {
                'score': self.subjective_score,
                'feedback': self.subjective_feedback
            }
        return response


def grade_answers(item_ids, user_answers, ground_truth) -> ObjectiveGrade:
    """Grade multiple-choice answers by exact, case-sensitive text equality.

    Raises:
        InvalidInput: if the sequences are empty or not the same length
    """
    if len(user_answers) != len(ground_truth) or len(item_ids) != len(ground_truth):
        raise InvalidInput(
            f'Answer count mismatch: {len(item_ids)} items, '
            f'{len(user_answers)} answers, {len(ground_truth)} correct answers'
        )
    if not ground_truth:
        raise InvalidInput('At least one answer is required')

    per_item = []
    total_correct = 0
    for item_id, user_answer, correct_answer in zip(item_ids, user_answers, ground_truth):
        is_correct = user_answer == correct_answer
        if is_correct:
            total_correct += 1
        per_item.append(ItemResult(item_id, user_answer, correct_answer, is_correct))

    total_questions = len(ground_truth)
    ratio = Decimal(100 * total_correct) / Decimal(total_questions)

    return ObjectiveGrade(
        per_item=per_item,
        total_correct=total_correct,
        total_questions=total_questions,
        score=round_half_up(ratio),
        ratio=ratio
    )


def compose_score(objective_score, subjective_score=None, policy: ScoringPolicy = None) -> int:
    """Weighted final score; only the composite is rounded.

    Without a subjective component the objective score is the final score.
    """
    policy = policy or ScoringPolicy()
    if subjective_score is None:
        return round_half_up(objective_score)

    weighted = (
        Decimal(str(objective_score)) * Decimal(str(policy.objective_weight))
        + Decimal(str(subjective_score)) * Decimal(str(policy.subjective_weight))
    )
    return round_half_up(weighted)


def is_passing(final_score: int, policy: ScoringPolicy = None) -> bool:
    policy = policy or ScoringPolicy()
    return final_score >= policy.pass_threshold


class QuizGradingService:
    """Grades a whole submission: objective, then subjective, then composition"""

    def __init__(self, policy: ScoringPolicy, subjective_grader=None):
        self.policy = policy
        self.subjective_grader = subjective_grader

    def grade_submission(self, answer_set: SubmittedAnswerSet) -> GradingResult:
        """All-or-nothing: any grading error propagates and no partial score is returned"""
        objective = grade_answers(answer_set.item_ids, answer_set.user_answers, answer_set.ground_truth)

        subjective_raw = None
        subjective_feedback = None
        if answer_set.has_free_response:
            if self.subjective_grader is None:
                raise InvalidInput('Free response grading is not enabled for this deployment')
            grade = self.subjective_grader.grade(
                answer_set.free_response_prompt,
                answer_set.free_response_rubric,
                answer_set.free_response_answer
            )
            subjective_raw = grade.score
            subjective_feedback = grade.feedback

        final_score = compose_score(objective.ratio, subjective_raw, self.policy)
        passed = is_passing(final_score, self.policy)

        logger.info(
            f"📊 Graded submission: {objective.total_correct}/{objective.total_questions} correct, "
            f"objective={objective.score}, subjective={subjective_raw}, final={final_score}, passed={passed}"
        )

        return GradingResult(
            per_item=objective.per_item,
            objective_score=objective.score,
            final_score=final_score,
            passed=passed,
            total_correct=objective.total_correct,
            total_questions=objective.total_questions,
            subjective_score=round_half_up(subjective_raw) if subjective_raw is not None else None,
            subjective_feedback=subjective_feedback
        )

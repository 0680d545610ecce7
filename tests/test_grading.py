"""Tests for the objective grader, the score compositor and submission grading."""

from decimal import Decimal

import pytest

from quiz_faucet.exceptions import InvalidInput, OracleResponseInvalid, OracleUnavailable
from quiz_faucet.grading import (
    QuizGradingService,
    ScoringPolicy,
    SubmittedAnswerSet,
    compose_score,
    grade_answers,
    is_passing,
    round_half_up,
)
from quiz_faucet.oracle import SubjectiveGrade


class StubGrader:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def grade(self, question, rubric, answer):
        self.calls.append((question, rubric, answer))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


# ── Answer grader ─────────────────────────────────────────────


class TestGradeAnswers:

    def test_all_correct_scores_100(self):
        grade = grade_answers(["a", "b", "c"], ["X", "Y", "Z"], ["X", "Y", "Z"])
        assert grade.score == 100
        assert grade.total_correct == 3
        assert all(item.is_correct for item in grade.per_item)

    def test_none_correct_scores_0(self):
        grade = grade_answers(["a", "b"], ["A", "B"], ["X", "Y"])
        assert grade.score == 0
        assert grade.total_correct == 0

    def test_rounds_half_up(self):
        """1/8 = 12.5% rounds to 13; 2/3 = 66.67% rounds to 67."""
        assert grade_answers(list(range(8)), ["X"] + ["n"] * 7, ["X"] * 8).score == 13
        assert grade_answers([1, 2, 3], ["X", "X", "n"], ["X", "X", "X"]).score == 67

    def test_keeps_unrounded_ratio(self):
        grade = grade_answers([1, 2, 3], ["X", "X", "n"], ["X", "X", "X"])
        assert grade.ratio == Decimal(200) / Decimal(3)

    def test_comparison_is_exact(self):
        """No case folding and no trimming."""
        grade = grade_answers(["a", "b"], ["x", "X "], ["X", "X"])
        assert grade.total_correct == 0

    def test_per_item_alignment(self):
        grade = grade_answers(["q1", "q2"], ["X", "Y"], ["X", "Z"])
        first, second = grade.per_item
        assert (first.item_id, first.user_answer, first.correct_answer, first.is_correct) == ("q1", "X", "X", True)
        assert (second.item_id, second.is_correct) == ("q2", False)

    def test_length_mismatch_raises(self):
        with pytest.raises(InvalidInput):
            grade_answers(["a", "b"], ["X"], ["X", "Y"])

    def test_item_id_mismatch_raises(self):
        with pytest.raises(InvalidInput):
            grade_answers(["a"], ["X", "Y"], ["X", "Y"])

    def test_empty_raises(self):
        with pytest.raises(InvalidInput):
            grade_answers([], [], [])


# ── Score compositor ──────────────────────────────────────────


class TestComposeScore:

    def test_reference_weights(self):
        policy = ScoringPolicy(objective_weight=0.8)
        assert compose_score(100, 0, policy) == 80
        assert compose_score(80, 100, policy) == 84

    def test_without_free_response_uses_objective(self):
        assert compose_score(73, None, ScoringPolicy()) == 73

    def test_rounds_only_at_composite(self):
        """62 * 0.8 = 49.6 -> 50, whereas pre-rounding sub-scores could not change it."""
        assert compose_score(62, 0, ScoringPolicy()) == 50
        assert compose_score(61.875, 0, ScoringPolicy()) == 50  # 49.5 ties upward

    def test_custom_weights(self):
        assert compose_score(50, 100, ScoringPolicy(objective_weight=0.5)) == 75

    def test_deterministic(self):
        policy = ScoringPolicy()
        assert {compose_score(67, 45, policy) for _ in range(20)} == {compose_score(67, 45, policy)}


class TestPassThreshold:

    @pytest.mark.parametrize("score", range(0, 101))
    def test_passed_iff_at_least_threshold(self, score):
        assert is_passing(score, ScoringPolicy()) == (score >= 50)

    def test_boundary(self):
        assert is_passing(50, ScoringPolicy()) is True
        assert is_passing(49, ScoringPolicy()) is False

    def test_threshold_is_configurable(self):
        assert is_passing(60, ScoringPolicy(pass_threshold=70)) is False


class TestScoringPolicy:

    def test_subjective_weight_complements(self):
        assert ScoringPolicy(objective_weight=0.8).subjective_weight == pytest.approx(0.2)

    def test_from_config(self):
        policy = ScoringPolicy.from_config({"OBJECTIVE_WEIGHT": "0.6", "PASS_THRESHOLD": "70"})
        assert policy.objective_weight == 0.6
        assert policy.pass_threshold == 70

    @pytest.mark.parametrize("kwargs", [{"objective_weight": 1.2}, {"objective_weight": -0.1}, {"pass_threshold": 101}])
    def test_rejects_out_of_range(self, kwargs):
        with pytest.raises(ValueError):
            ScoringPolicy(**kwargs)

    def test_round_half_up(self):
        assert round_half_up(49.5) == 50
        assert round_half_up(0.5) == 1
        assert round_half_up(49.4999) == 49


# ── Submission parsing ────────────────────────────────────────


class TestSubmittedAnswerSet:

    def test_accepts_legacy_field_names(self):
        answer_set = SubmittedAnswerSet.from_request({
            "questionIds": ["a"], "answers": ["X"], "correctAnswers": ["X"],
        })
        assert answer_set.item_ids == ["a"]
        assert not answer_set.has_free_response

    def test_accepts_item_field_names(self):
        answer_set = SubmittedAnswerSet.from_request({
            "itemIds": ["a"], "userAnswers": ["X"], "groundTruth": ["Y"],
            "freeResponseAnswer": "text", "freeResponsePrompt": "Q?", "freeResponseRubric": "R",
        })
        assert answer_set.has_free_response

    @pytest.mark.parametrize("body", [
        None,
        [],
        {"itemIds": ["a"], "userAnswers": "X", "groundTruth": ["X"]},
        {"itemIds": ["a"], "userAnswers": ["X"]},
        {"itemIds": ["a"], "userAnswers": [1], "groundTruth": ["X"]},
        {"itemIds": ["a"], "userAnswers": ["X"], "groundTruth": ["X"], "freeResponseAnswer": "t"},
    ])
    def test_rejects_malformed(self, body):
        with pytest.raises(InvalidInput):
            SubmittedAnswerSet.from_request(body)


# ── Whole submission ──────────────────────────────────────────


class TestQuizGradingService:

    def _answer_set(self, **free_response):
        return SubmittedAnswerSet(
            item_ids=["a", "b"], user_answers=["X", "Y"], ground_truth=["X", "Z"], **free_response
        )

    def test_objective_only_end_to_end(self):
        result = QuizGradingService(ScoringPolicy()).grade_submission(self._answer_set())
        assert result.objective_score == 50
        assert result.final_score == 50
        assert result.passed is True
        assert result.subjective_score is None

    def test_with_free_response_end_to_end(self):
        grader = StubGrader(SubjectiveGrade(score=0, feedback="incomplete"))
        service = QuizGradingService(ScoringPolicy(), grader)
        result = service.grade_submission(self._answer_set(
            free_response_answer="PoS uses stake", free_response_prompt="Compare", free_response_rubric="Mention energy",
        ))
        assert result.final_score == 40
        assert result.passed is False
        assert result.subjective_score == 0
        assert result.subjective_feedback == "incomplete"
        assert grader.calls == [("Compare", "Mention energy", "PoS uses stake")]

    def test_objective_ratio_weighted_unrounded(self):
        """5/9 = 55.56%; 0.8 * 55.56 + 0.2 * 24 = 49.24 fails, whereas 0.8 * 56 + 4.8 = 49.6 would pass."""
        answer_set = SubmittedAnswerSet(
            item_ids=list(range(9)),
            user_answers=["X"] * 5 + ["n"] * 4,
            ground_truth=["X"] * 9,
            free_response_answer="a", free_response_prompt="p", free_response_rubric="r",
        )
        grader = StubGrader(SubjectiveGrade(score=24, feedback="thin"))

        result = QuizGradingService(ScoringPolicy(), grader).grade_submission(answer_set)

        assert result.objective_score == 56
        assert result.final_score == 49
        assert result.passed is False

    def test_objective_only_rounds_ratio_once(self):
        answer_set = SubmittedAnswerSet(
            item_ids=list(range(8)), user_answers=["X"] * 4 + ["n"] * 4, ground_truth=["X"] * 8,
        )
        result = QuizGradingService(ScoringPolicy()).grade_submission(answer_set)
        assert result.objective_score == result.final_score == 50

    @pytest.mark.parametrize("error", [OracleResponseInvalid("bad"), OracleUnavailable("down")])
    def test_oracle_failure_aborts_whole_submission(self, error):
        service = QuizGradingService(ScoringPolicy(), StubGrader(error))
        with pytest.raises(type(error)):
            service.grade_submission(self._answer_set(
                free_response_answer="a", free_response_prompt="p", free_response_rubric="r",
            ))

    def test_free_response_without_grader_is_rejected(self):
        with pytest.raises(InvalidInput):
            QuizGradingService(ScoringPolicy()).grade_submission(self._answer_set(
                free_response_answer="a", free_response_prompt="p", free_response_rubric="r",
            ))

    def test_to_dict_wire_format(self):
        grader = StubGrader(SubjectiveGrade(score=90, feedback="good"))
        result = QuizGradingService(ScoringPolicy(), grader).grade_submission(self._answer_set(
            free_response_answer="a", free_response_prompt="p", free_response_rubric="r",
        ))
        body = result.to_dict()
        assert body["score"] == 58
        assert body["isCorrect"] is True
        assert body["multipleChoice"]["totalCorrect"] == 1
        assert body["multipleChoice"]["totalQuestions"] == 2
        assert body["multipleChoice"]["score"] == 50
        assert body["multipleChoice"]["results"][1] == {
            "itemId": "b", "userAnswer": "Y", "correctAnswer": "Z", "isCorrect": False,
        }
        assert body["freeResponse"] == {"score": 90, "feedback": "good"}

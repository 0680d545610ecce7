"""
Question Service

Loads course material (``weekN-topic.txt`` files), asks the oracle for quiz
questions about a random slide already covered, and validates what comes
back before it reaches a learner.
"""

import logging
import os
import random
import re
from dataclasses import dataclass
from typing import Any, Dict, List

from .exceptions import InvalidInput, OracleResponseInvalid
from .oracle import OracleClient

logger = logging.getLogger(__name__)

QUESTION_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates educational quiz questions about blockchain "
    "technology. Always return valid JSON format."
)

FREE_RESPONSE_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates educational free response questions about "
    "blockchain technology. Always return valid JSON format."
)

QUESTIONS_PROMPT_TEMPLATE = """Using the course material below, write {num_questions} multiple choice
questions of mixed difficulty.

{content}

Respond with a JSON object holding a "questions" array. Each question has:
- "question": string
- "options": string[] (exactly 4 distinct options)
- "correctAnswer": string (identical to one of the options)
- "explanation": string"""

FREE_RESPONSE_PROMPT_TEMPLATE = """Using the course material below, write one free response question that
checks understanding of its key concepts.

{content}

Respond with a JSON object:
- "question": string (the free response question)
- "sampleAnswer": string (what a good answer would include)
- "rubric": string (grading criteria, including the key points to mention)"""

WEEK_PATTERN = re.compile(r'week(\d+)', re.IGNORECASE)


@dataclass(frozen=True)
class SlideContent:
    filename: str
    content: str
    week_covered: int

    @property
    def topic(self) -> str:
        """'week1-blockchain-basics.txt' -> 'blockchain basics'"""
        name = re.sub(r'^week\d+-', '', self.filename, flags=re.IGNORECASE)
        name = re.sub(r'\.txt$', '', name, flags=re.IGNORECASE)
        return name.replace('-', ' ')


@dataclass(frozen=True)
class QuizItem:
    prompt: str
    options: tuple
    correct_option: str
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question': self.prompt,
            'options': list(self.options),
            'correctAnswer': self.correct_option,
            'explanation': self.explanation
        }


@dataclass(frozen=True)
class FreeResponseItem:
    prompt: str
    rubric: str
    sample_answer: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question': self.prompt,
            'sampleAnswer': self.sample_answer,
            'rubric': self.rubric
        }


def _require_text(payload: Dict[str, Any], key: str, label: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise OracleResponseInvalid(f'Invalid {label}: missing or invalid {key}')
    return value


def parse_quiz_items(payload: Any) -> List[QuizItem]:
    """Validate a generated ``{"questions": [...]}`` payload"""
    if not isinstance(payload, dict) or not isinstance(payload.get('questions'), list):
        raise OracleResponseInvalid('Invalid response format: missing questions array')
    if not payload['questions']:
        raise OracleResponseInvalid('Invalid response format: questions array is empty')

    items = []
    for raw in payload['questions']:
        if not isinstance(raw, dict):
            raise OracleResponseInvalid('Invalid question: expected a JSON object')

        prompt = _require_text(raw, 'question', 'question')
        explanation = _require_text(raw, 'explanation', 'question')
        correct = _require_text(raw, 'correctAnswer', 'question')

        options = raw.get('options')
        if not isinstance(options, list) or len(options) != 4 or not all(isinstance(o, str) for o in options):
            raise OracleResponseInvalid('Invalid question: options must be an array of 4 strings')
        if len(set(options)) != 4:
            raise OracleResponseInvalid('Invalid question: options must be distinct')
        if correct not in options:
            raise OracleResponseInvalid('Invalid question: correctAnswer must match one of the options')

        items.append(QuizItem(prompt=prompt, options=tuple(options), correct_option=correct, explanation=explanation))

    return items


def parse_free_response_item(payload: Any) -> FreeResponseItem:
    if not isinstance(payload, dict):
        raise OracleResponseInvalid('Invalid free response question: expected a JSON object')
    return FreeResponseItem(
        prompt=_require_text(payload, 'question', 'free response question'),
        rubric=_require_text(payload, 'rubric', 'free response question'),
        sample_answer=_require_text(payload, 'sampleAnswer', 'free response question')
    )


class QuestionService:
    """Generates quizzes from course material covered up to the current week"""

    def __init__(self, oracle: OracleClient, slides_directory: str, current_week: int = 1,
                 temperature: float = 0.7):
        self.oracle = oracle
        self.slides_directory = slides_directory
        self.current_week = current_week
        self.temperature = temperature
        self._slides_cache = None

    def load_slides(self) -> List[SlideContent]:
        """Load and cache all slide files from the course-materials directory"""
        if self._slides_cache is not None:
            return self._slides_cache

        logger.info(f"📚 Loading slides from: {self.slides_directory}")
        try:
            files = sorted(os.listdir(self.slides_directory))
        except OSError as e:
            logger.error(f"❌ Error loading slides: {e}")
            raise

        slides = []
        for filename in files:
            if not filename.lower().endswith('.txt'):
                continue
            week_match = WEEK_PATTERN.search(filename)
            week_covered = int(week_match.group(1)) if week_match else 1
            with open(os.path.join(self.slides_directory, filename), encoding='utf-8') as f:
                slides.append(SlideContent(filename=filename, content=f.read(), week_covered=week_covered))

        if not slides:
            raise FileNotFoundError(f'No slide files found in {self.slides_directory}')

        logger.info(f"✅ Loaded {len(slides)} slide files")
        self._slides_cache = slides
        return slides

    def get_random_slide(self, week: int = None) -> SlideContent:
        week = week if week is not None else self.current_week
        covered = [slide for slide in self.load_slides() if slide.week_covered <= week]
        if not covered:
            raise InvalidInput(f'No slides available for week {week}')
        return random.choice(covered)

    def generate_quiz(self, num_questions: int = 1, week: int = None) -> Dict[str, Any]:
        """
        Generate multiple choice questions plus one free response question

        Raises:
            InvalidInput: no material covered by the requested week
            OracleUnavailable / OracleResponseInvalid: generation failed
        """
        slide = self.get_random_slide(week)
        logger.info(f"🎯 Generating {num_questions} questions on '{slide.topic}'")

        questions_payload = self.oracle.chat_json(
            QUESTION_SYSTEM_PROMPT,
            QUESTIONS_PROMPT_TEMPLATE.format(num_questions=num_questions, content=slide.content),
            temperature=self.temperature,
            max_tokens=2000
        )
        questions = parse_quiz_items(questions_payload)

        free_response_payload = self.oracle.chat_json(
            FREE_RESPONSE_SYSTEM_PROMPT,
            FREE_RESPONSE_PROMPT_TEMPLATE.format(content=slide.content),
            temperature=self.temperature,
            max_tokens=1000
        )
        free_response = parse_free_response_item(free_response_payload)

        return {
            'questions': questions,
            'freeResponseQuestion': free_response,
            'slideTopic': slide.topic,
            'week': week if week is not None else self.current_week
        }

"""
Grading Oracle Client

Talks to an OpenAI-compatible chat completions endpoint (DeepSeek by default)
that answers in JSON mode. Used for free-response grading and for quiz
question generation. Every response is treated as untrusted input.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

import requests

from config import ORACLE_CONFIG
from .exceptions import OracleResponseInvalid, OracleUnavailable

logger = logging.getLogger(__name__)

GRADER_SYSTEM_PROMPT = (
    "You are a fair and consistent grader for blockchain education questions. "
    "Always return valid JSON format."
)

GRADING_PROMPT_TEMPLATE = """Grade the following free response answer against the rubric.

Question: {question}

Rubric: {rubric}

Student Answer: {answer}

Give a score from 0 to 100 reflecting how well the answer meets the rubric,
and feedback that explains the score and how to improve.

Respond with a JSON object:
- "score": number (between 0 and 100)
- "feedback": string (specific feedback on the answer)

Example:
{{
  "score": 85,
  "feedback": "Both consensus mechanisms are explained correctly. Expand on the environmental trade-offs to improve."
}}"""


class OracleClient:
    """Minimal JSON-mode chat completions client"""

    def __init__(self, api_key: str = None, base_url: str = None, model: str = None,
                 timeout: float = None, session: requests.Session = None):
        self.api_key = api_key if api_key is not None else ORACLE_CONFIG['API_KEY']
        self.base_url = (base_url or ORACLE_CONFIG['BASE_URL']).rstrip('/')
        self.model = model or ORACLE_CONFIG['MODEL']
        self.timeout = timeout if timeout is not None else ORACLE_CONFIG['TIMEOUT']
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def chat_json(self, system: str, prompt: str, temperature: float = 0.7,
                  max_tokens: int = 1000) -> Any:
        """Send one request and return the decoded JSON content.

        Raises:
            OracleUnavailable: network error, timeout, HTTP error or missing key
            OracleResponseInvalid: the reply is not a JSON document
        """
        if not self.is_configured:
            raise OracleUnavailable('Grading oracle API key is not configured')

        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                headers={
                    'Authorization': f"Bearer {self.api_key}",
                    'Content-Type': 'application/json'
                },
                json={
                    'model': self.model,
                    'messages': [
                        {'role': 'system', 'content': system},
                        {'role': 'user', 'content': prompt}
                    ],
                    'temperature': temperature,
                    'max_tokens': max_tokens,
                    'response_format': {'type': 'json_object'}
                },
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.Timeout as e:
            logger.error(f"⏱️ Oracle request timed out after {self.timeout}s")
            raise OracleUnavailable(f"Oracle request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error(f"❌ Oracle request failed: {e}")
            raise OracleUnavailable(f"Oracle request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise OracleResponseInvalid('Oracle returned a non-JSON HTTP body') from e

        try:
            content = data['choices'][0]['message']['content'] or ''
        except (KeyError, IndexError, TypeError) as e:
            raise OracleResponseInvalid('Oracle response is missing message content') from e

        try:
            return json.loads(content)
        except ValueError as e:
            logger.warning(f"⚠️ Oracle content is not valid JSON: {content[:120]!r}")
            raise OracleResponseInvalid('Oracle content is not valid JSON') from e


@dataclass(frozen=True)
class SubjectiveGrade:
    score: float
    feedback: str


def parse_grading_result(payload: Any) -> SubjectiveGrade:
    """Validate an oracle grading payload without coercing anything.

    Raises:
        OracleResponseInvalid: on any missing field, wrong type or out-of-range score
    """
    if not isinstance(payload, dict):
        raise OracleResponseInvalid('Invalid grading result: expected a JSON object')

    score = payload.get('score')
    # bool is an int subclass, and "85" is not a number
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise OracleResponseInvalid('Invalid grading result: score must be a number between 0 and 100')
    if score != score or score < 0 or score > 100:
        raise OracleResponseInvalid('Invalid grading result: score must be a number between 0 and 100')

    feedback = payload.get('feedback')
    if not isinstance(feedback, str) or not feedback.strip():
        raise OracleResponseInvalid('Invalid grading result: missing or invalid feedback')

    return SubjectiveGrade(score=score, feedback=feedback)


class SubjectiveGrader:
    """Grades a free-response answer with the oracle; one request, no retries"""

    def __init__(self, client: OracleClient = None, temperature: float = None):
        self.client = client or OracleClient()
        self.temperature = temperature if temperature is not None else ORACLE_CONFIG['GRADING_TEMPERATURE']

    def grade(self, question: str, rubric: str, answer: str) -> SubjectiveGrade:
        prompt = GRADING_PROMPT_TEMPLATE.format(question=question, rubric=rubric, answer=answer)
        payload = self.client.chat_json(GRADER_SYSTEM_PROMPT, prompt, temperature=self.temperature)
        try:
            result = parse_grading_result(payload)
        except OracleResponseInvalid as e:
            logger.error(f"❌ Rejected oracle grading payload: {e}")
            raise
        logger.info(f"📝 Free response graded: {result.score}/100")
        return result

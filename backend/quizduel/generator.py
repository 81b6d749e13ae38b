"""
backend.quizduel.generator - question generation
================================================

A generator turns a free-text description into an ordered list of raw
question objects, or a list of error messages. It never raises for
generation failures; callers decide what an error result means for the
match.

  - AnthropicQuestionGenerator: asks Claude for the question set
  - StaticQuestionGenerator: hands back a fixed list
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from anthropic import APIError, AsyncAnthropic

from .db import Settings, settings as default_settings

logger = logging.getLogger(__name__)

CATEGORIES = ["Sport", "General Culture", "Movies", "Art", "History"]

SYSTEM_PROMPT = """
You are a quiz question generator.

Create exactly {count} questions, evenly distributed across the categories from the following list [{categories}]. Ensure the questions are evenly distributed in different difficulty levels.

Requirements for each question:
- The questions should be in English.
- Return the result as a JSON list containing JSON objects.
- Return the question with the JSON key 'question'.
- Include 4 different answer options, with the JSON key 'options', each a string.
- Specify 1 correct answer, with the JSON key 'correctAnswer', in string format.
- Return the category with the JSON key 'category'.
- The returned JSON will only have keys and values from the information from the mentioned before. Do not add any explanatory messages or statements, so the JSON string can be used as is.
- Questions should not be repeated.
"""


@dataclass
class GenerationResult:
    data: Optional[List[Dict[str, Any]]] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and self.data is not None


class QuestionGenerator(ABC):
    @abstractmethod
    async def generate(self, description: str) -> GenerationResult:
        """Return questions for ``description``, or errors explaining why there are none."""
        ...


class StaticQuestionGenerator(QuestionGenerator):
    def __init__(self, questions: List[Dict[str, Any]]):
        self._questions = [dict(q) for q in questions]

    async def generate(self, description: str) -> GenerationResult:
        return GenerationResult(data=[dict(q) for q in self._questions])


class AnthropicQuestionGenerator(QuestionGenerator):
    def __init__(self, client: Optional[AsyncAnthropic] = None, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.model = settings.ANTHROPIC_MODEL
        self.max_tokens = settings.ANTHROPIC_MAX_TOKENS
        self.question_count = settings.QUESTION_COUNT
        self._client = client or AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)

    def system_prompt(self) -> str:
        return SYSTEM_PROMPT.format(count=self.question_count, categories=", ".join(CATEGORIES))

    async def generate(self, description: str) -> GenerationResult:
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=self.system_prompt(),
                messages=[{"role": "user", "content": description or "Generate the quiz."}],
            )
        except APIError as exc:
            logger.error("Question generation request failed: %s", exc)
            return GenerationResult(errors=[f"generation request failed: {exc}"])

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        return parse_questions(text)


def parse_questions(text: str) -> GenerationResult:
    """Parse the model's JSON list; anything else becomes an error result."""
    payload = text.strip()
    # Models sometimes wrap JSON in a fenced block
    if payload.startswith("```"):
        payload = payload.strip("`")
        payload = payload[payload.find("["):] if "[" in payload else payload

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        return GenerationResult(errors=[f"response is not valid JSON: {exc.msg}"])

    if not isinstance(data, list):
        return GenerationResult(errors=[f"expected a JSON list, got {type(data).__name__}"])
    if not data:
        return GenerationResult(errors=["response contained no questions"])
    if not all(isinstance(item, dict) for item in data):
        return GenerationResult(errors=["every question must be a JSON object"])
    return GenerationResult(data=data)

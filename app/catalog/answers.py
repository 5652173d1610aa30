"""Typed answers per question type.

Raw values arrive loosely typed (string or number) from the API and the
document store. They are converted here, as early as possible, into one
of three answer kinds:

- ScaleAnswer: integer 1-5
- ChoiceAnswer: one of the question's option labels
- TextAnswer: free text (may be empty while drafting)
"""

import re
from dataclasses import dataclass
from typing import Any, Union

from app.catalog.questions import Question, QuestionType

SCALE_MIN = 1
SCALE_MAX = 5

# Leading integer, as a lenient numeric parse of stored strings
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class AnswerValidationError(ValueError):
    """Raised when a value is not a valid answer for a question."""

    def __init__(self, question_id: str, message: str) -> None:
        self.question_id = question_id
        super().__init__(f"Question '{question_id}': {message}")


@dataclass(frozen=True)
class ScaleAnswer:
    value: int


@dataclass(frozen=True)
class ChoiceAnswer:
    value: str


@dataclass(frozen=True)
class TextAnswer:
    value: str


Answer = Union[ScaleAnswer, ChoiceAnswer, TextAnswer]


def coerce_int(value: Any) -> int | None:
    """Coerce a stored value to an integer, or None if it has no integer form.

    Numbers are truncated; strings contribute their leading integer
    ("4", " 4 ", "4.7" and "4 points" all give 4). Booleans are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def parse_answer(question: Question, raw: Any) -> Answer:
    """Convert a raw value into the typed answer for ``question``.

    Raises:
        AnswerValidationError: If the value doesn't fit the question type
    """
    if question.type == QuestionType.SCALE:
        number = coerce_int(raw)
        if number is None or not SCALE_MIN <= number <= SCALE_MAX:
            raise AnswerValidationError(
                question.id, f"scale answers must be integers {SCALE_MIN}-{SCALE_MAX}"
            )
        return ScaleAnswer(number)

    if question.type == QuestionType.CHOICE:
        if not isinstance(raw, str) or raw not in question.options:
            raise AnswerValidationError(
                question.id, f"choice must be one of {', '.join(question.options)}"
            )
        return ChoiceAnswer(raw)

    if not isinstance(raw, str):
        raise AnswerValidationError(question.id, "text answers must be strings")
    return TextAnswer(raw)

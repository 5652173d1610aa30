"""Question catalog and typed answers."""

from app.catalog.answers import (
    Answer,
    AnswerValidationError,
    ChoiceAnswer,
    ScaleAnswer,
    TextAnswer,
    coerce_int,
    parse_answer,
)
from app.catalog.questions import (
    CatalogError,
    Question,
    QuestionCatalog,
    QuestionType,
    SurveyInfo,
    get_catalog,
    load_catalog,
)

__all__ = [
    "Answer",
    "AnswerValidationError",
    "ChoiceAnswer",
    "ScaleAnswer",
    "TextAnswer",
    "coerce_int",
    "parse_answer",
    "CatalogError",
    "Question",
    "QuestionCatalog",
    "QuestionType",
    "SurveyInfo",
    "get_catalog",
    "load_catalog",
]

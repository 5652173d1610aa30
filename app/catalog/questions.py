"""Question catalog loaded from a static YAML file.

The catalog is immutable and loaded once at process start. Question order
defines the presentation sequence and index-based navigation.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from app.core.config import settings

# Packaged catalog
CATALOG_PATH = Path(__file__).parent / "questions.yaml"

DEFAULT_CHOICE_OPTIONS = ("yes", "no", "unknown")


class CatalogError(ValueError):
    """Raised when the catalog file is malformed."""


class QuestionType(str, Enum):
    """Supported question types."""
    SCALE = "scale"
    CHOICE = "choice"
    TEXT = "text"


@dataclass(frozen=True)
class Question:
    """A single question definition."""
    id: str
    type: QuestionType
    section: str
    section_number: int
    title: str
    prompt: str
    reason: str | None = None
    options: tuple[str, ...] = ()
    is_optional: bool = False

    @property
    def is_required(self) -> bool:
        return not self.is_optional


@dataclass(frozen=True)
class SurveyInfo:
    """Survey metadata shown on the entry screen."""
    title: str
    description: str = ""
    audience: str = ""
    estimated_minutes: str = ""


@dataclass(frozen=True)
class QuestionCatalog:
    """Ordered, immutable set of questions plus survey metadata."""
    info: SurveyInfo
    questions: tuple[Question, ...]
    scale_labels: tuple[str, ...] = ()
    _by_id: dict[str, Question] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_id.update({q.id: q for q in self.questions})

    @property
    def total(self) -> int:
        return len(self.questions)

    def get(self, question_id: str) -> Question | None:
        """Look up a question by id."""
        return self._by_id.get(question_id)

    def at(self, index: int) -> Question:
        """Question at a 0-based position."""
        return self.questions[index]

    def of_type(self, question_type: QuestionType) -> list[Question]:
        """All questions of one type, in catalog order."""
        return [q for q in self.questions if q.type == question_type]

    def sections(self) -> list[tuple[int, str, list[Question]]]:
        """Group questions by section, preserving first-seen order."""
        groups: dict[str, tuple[int, list[Question]]] = {}
        for q in self.questions:
            if q.section not in groups:
                groups[q.section] = (q.section_number, [])
            groups[q.section][1].append(q)
        return [(number, name, items) for name, (number, items) in groups.items()]


def _parse_question(raw: dict[str, Any], position: int) -> Question:
    try:
        question_type = QuestionType(raw["type"])
        question_id = str(raw["id"])
        options = raw.get("options")
        if question_type == QuestionType.CHOICE:
            options = tuple(options) if options else DEFAULT_CHOICE_OPTIONS
            # Results tally exactly these three labels
            if options != DEFAULT_CHOICE_OPTIONS:
                raise CatalogError(
                    f"Question '{question_id}' options must be "
                    f"{list(DEFAULT_CHOICE_OPTIONS)}, got {list(options)}"
                )
        elif options:
            raise CatalogError(f"Question '{question_id}' is not a choice question but has options")

        return Question(
            id=question_id,
            type=question_type,
            section=str(raw["section"]),
            section_number=int(raw["section_number"]),
            title=str(raw["title"]),
            prompt=str(raw["prompt"]),
            reason=raw.get("reason"),
            options=options or (),
            is_optional=bool(raw.get("is_optional", False)),
        )
    except CatalogError:
        raise
    except KeyError as exc:
        raise CatalogError(f"Question #{position + 1} is missing field {exc}") from exc
    except ValueError as exc:
        raise CatalogError(f"Question #{position + 1} is invalid: {exc}") from exc


def parse_catalog(data: dict[str, Any]) -> QuestionCatalog:
    """Build a catalog from parsed YAML data.

    Raises:
        CatalogError: If required fields are missing or ids are duplicated
    """
    raw_questions = data.get("questions") or []
    if not raw_questions:
        raise CatalogError("Catalog contains no questions")

    questions = tuple(_parse_question(raw, i) for i, raw in enumerate(raw_questions))

    seen: set[str] = set()
    for q in questions:
        if q.id in seen:
            raise CatalogError(f"Duplicate question id '{q.id}'")
        seen.add(q.id)

    survey = data.get("survey") or {}
    info = SurveyInfo(
        title=str(survey.get("title", "Survey")),
        description=str(survey.get("description", "")),
        audience=str(survey.get("audience", "")),
        estimated_minutes=str(survey.get("estimated_minutes", "")),
    )

    return QuestionCatalog(
        info=info,
        questions=questions,
        scale_labels=tuple(data.get("scale_labels") or ()),
    )


def load_catalog(path: Path | None = None) -> QuestionCatalog:
    """Load the question catalog from a YAML file.

    Args:
        path: Catalog file (defaults to the packaged questions.yaml)

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        yaml.YAMLError: If YAML is invalid
        CatalogError: If the catalog content is invalid
    """
    filepath = path or CATALOG_PATH

    if not filepath.exists():
        raise FileNotFoundError(f"Question catalog not found: {filepath}")

    content = filepath.read_text(encoding="utf-8")
    return parse_catalog(yaml.safe_load(content) or {})


@lru_cache
def get_catalog() -> QuestionCatalog:
    """Get the process-wide catalog, loaded once."""
    return load_catalog(settings.catalog_path)

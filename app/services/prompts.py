"""Prompt templates for response analysis, with version tracking."""

from app.catalog.questions import Question, QuestionCatalog
from app.services.aggregation import (
    ChoiceAggregate,
    QuestionAggregate,
    ScaleAggregate,
    TextAggregate,
)

SYSTEM_PROMPT = """You are an experienced agile coach analysing anonymous answers \
from a team retrospective survey.

- Base every statement on the answers provided; do not invent facts
- Group similar answers into themes and say how many answers support each
- Quote short representative phrases where useful
- Call out disagreements and minority views
- Finish with concrete, actionable suggestions
- Write in markdown using headings, bullet lists, bold text and tables only"""

PROMPT_TEMPLATES = {
    "question": {
        "version": "1.0.0",
        "template": """Analyse the answers to one retrospective question.

Question Details:
- Section: {section_number}. {section}
- Title: {title}
- Question: {prompt}
- Why we ask: {reason}

Answers ({count}):
{answers}

Instructions:
- Summarise the main themes with a count for each
- Highlight notable or recurring concerns
- Note any contradictions between answers
- Recommend two or three next steps for the team

Analysis:""",
    },
    "comprehensive": {
        "version": "1.0.0",
        "template": """Write a comprehensive report for the whole retrospective survey.

Survey: {title}
Participants with answers: {respondents}

Results by question:
{results}

Instructions:
- Start with a short executive summary
- Cover each section in order, linking the numbers to the written answers
- Identify the strongest positives and the biggest risks
- Include a table of the scale question averages
- End with a prioritised list of recommended actions

Report:""",
    },
}


def get_template(name: str) -> tuple[str, str]:
    """Get a prompt template and its version."""
    if name not in PROMPT_TEMPLATES:
        raise ValueError(f"Unknown prompt template: {name}")
    info = PROMPT_TEMPLATES[name]
    return info["template"], info["version"]


def build_question_prompt(question: Question, answers: list[str]) -> str:
    """Prompt for analysing one text question's answers."""
    template, _ = get_template("question")
    return template.format(
        section_number=question.section_number,
        section=question.section,
        title=question.title,
        prompt=question.prompt,
        reason=question.reason or "Not specified",
        count=len(answers),
        answers="\n".join(f"{i}. {answer}" for i, answer in enumerate(answers, 1)),
    )


def _describe(question: Question, aggregate: QuestionAggregate, labels: tuple[str, ...]) -> str:
    header = f"### {question.id}. {question.title} ({question.type.value})\n{question.prompt}"

    if isinstance(aggregate, ScaleAggregate):
        buckets = ", ".join(
            f"{labels[i] if i < len(labels) else i + 1}: {n}"
            for i, n in enumerate(aggregate.histogram)
        )
        return f"{header}\nAverage: {aggregate.mean:.2f} / 5 ({aggregate.count} answers)\n{buckets}"

    if isinstance(aggregate, ChoiceAggregate):
        tally = ", ".join(f"{option}: {n}" for option, n in aggregate.tally.items())
        return f"{header}\n{tally}"

    if isinstance(aggregate, TextAggregate) and aggregate.items:
        answers = "\n".join(f"- {item.strip()}" for item in aggregate.items)
        return f"{header}\n{answers}"
    return f"{header}\nNo answers"


def build_comprehensive_prompt(
    catalog: QuestionCatalog,
    aggregates: dict[str, QuestionAggregate],
    respondents: int,
) -> str:
    """Prompt covering every question's statistics and written answers."""
    template, _ = get_template("comprehensive")
    sections = []
    for number, name, questions in catalog.sections():
        body = "\n\n".join(
            _describe(q, aggregates[q.id], catalog.scale_labels) for q in questions
        )
        sections.append(f"## {number}. {name}\n\n{body}")

    return template.format(
        title=catalog.info.title,
        respondents=respondents,
        results="\n\n".join(sections),
    )

"""Renderer for the markdown subset produced by analysis reports.

Supported blocks: headings (``#`` to ``####``), ``---``/``***`` dividers,
flat ``-``/``*``/``N.`` list items, pipe tables, blank-line breaks and
paragraphs. Supported inline spans: ``**bold**``, ``__bold__``, ``*italic*``
and ```code```, without nesting.

Report text comes from a language model and is untrusted. Nodes only ever
carry literal text, and ``render_html`` escapes every fragment.
"""

import html
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Union

# Scanned in this order; ties on start offset go to the earlier pattern
_INLINE_PATTERNS = (
    ("bold", re.compile(r"^(.*?)\*\*(.+?)\*\*")),
    ("bold", re.compile(r"^(.*?)__(.+?)__")),
    ("italic", re.compile(r"^(.*?)\*([^*]+?)\*")),
    ("code", re.compile(r"^(.*?)`([^`]+?)`")),
)

_HEADINGS = (("# ", 1), ("## ", 2), ("### ", 3), ("#### ", 4))
_ORDERED_ITEM = re.compile(r"^\d+\. ")

_HTML_TAGS = {"bold": "strong", "italic": "em", "code": "code"}


@dataclass
class StyledSpan:
    style: str  # bold | italic | code
    text: str


# A bare string when the text has no styled spans, otherwise a list of spans
Inline = Union[str, list[Union[str, StyledSpan]]]


@dataclass
class Heading:
    level: int
    content: Inline
    kind: str = field(default="heading", init=False)


@dataclass
class Divider:
    kind: str = field(default="divider", init=False)


@dataclass
class ListItem:
    content: Inline
    kind: str = field(default="list_item", init=False)


@dataclass
class LineBreak:
    kind: str = field(default="line_break", init=False)


@dataclass
class Table:
    headers: list[Inline]
    rows: list[list[Inline]]
    kind: str = field(default="table", init=False)


@dataclass
class Paragraph:
    content: Inline
    kind: str = field(default="paragraph", init=False)


Block = Union[Heading, Divider, ListItem, LineBreak, Table, Paragraph]


def parse_inline(text: str) -> Inline:
    """Split text into plain and styled spans.

    At each step the match with the smallest start offset wins. Text with no
    styled spans comes back as the bare input string.
    """
    if not text:
        return text

    parts: list[Union[str, StyledSpan]] = []
    remaining = text

    while remaining:
        candidates = []
        for style, pattern in _INLINE_PATTERNS:
            match = pattern.match(remaining)
            if match:
                candidates.append((len(match.group(1)), style, match))

        if not candidates:
            parts.append(remaining)
            break

        # sorted() is stable, so ties keep the pattern order
        _, style, match = sorted(candidates, key=lambda c: c[0])[0]
        if match.group(1):
            parts.append(match.group(1))
        parts.append(StyledSpan(style=style, text=match.group(2)))
        remaining = remaining[match.end():]

    if len(parts) == 1 and isinstance(parts[0], str):
        return parts[0]
    return parts


def split_cells(line: str) -> list[str]:
    """Split a table row on pipes, dropping the empty edge fragments."""
    cells = line.strip().split("|")
    if cells and not cells[0].strip():
        cells = cells[1:]
    if cells and not cells[-1].strip():
        cells = cells[:-1]
    return [cell.strip() for cell in cells]


def _parse_table(lines: list[str], start: int) -> tuple[Table, int] | None:
    end = start
    while end < len(lines) and lines[end].strip().startswith("|"):
        end += 1

    candidate = lines[start:end]
    if len(candidate) < 2 or "-" not in candidate[1]:
        return None

    table = Table(
        headers=[parse_inline(cell) for cell in split_cells(candidate[0])],
        rows=[
            [parse_inline(cell) for cell in split_cells(row)]
            for row in candidate[2:]
        ],
    )
    return table, end


def _parse_line(line: str) -> Block:
    trimmed = line.strip()

    for prefix, level in _HEADINGS:
        if trimmed.startswith(prefix):
            return Heading(level=level, content=parse_inline(trimmed[len(prefix):]))

    if trimmed in ("---", "***"):
        return Divider()
    if trimmed.startswith("- ") or trimmed.startswith("* "):
        return ListItem(content=parse_inline(trimmed[2:]))
    if _ORDERED_ITEM.match(trimmed):
        return ListItem(content=parse_inline(_ORDERED_ITEM.sub("", trimmed, count=1)))
    if trimmed == "":
        return LineBreak()
    return Paragraph(content=parse_inline(line))


def render_markdown(text: str | None) -> list[Block]:
    """Parse report text into block nodes. Empty input gives no nodes."""
    if not text:
        return []

    lines = text.split("\n")
    blocks: list[Block] = []
    i = 0

    while i < len(lines):
        line = lines[i]
        if line.strip().startswith("|"):
            parsed = _parse_table(lines, i)
            if parsed:
                table, i = parsed
                blocks.append(table)
                continue

        blocks.append(_parse_line(line))
        i += 1

    return blocks


def nodes_to_dicts(blocks: list[Block]) -> list[dict[str, Any]]:
    """Plain JSON-compatible form of the block nodes."""
    return [asdict(block) for block in blocks]


def _inline_html(content: Inline) -> str:
    if isinstance(content, str):
        return html.escape(content)
    out = []
    for part in content:
        if isinstance(part, StyledSpan):
            tag = _HTML_TAGS[part.style]
            out.append(f"<{tag}>{html.escape(part.text)}</{tag}>")
        else:
            out.append(html.escape(part))
    return "".join(out)


def render_html(blocks: list[Block]) -> str:
    """Serialize block nodes to HTML with every text fragment escaped."""
    out = []
    for block in blocks:
        if isinstance(block, Heading):
            out.append(f"<h{block.level}>{_inline_html(block.content)}</h{block.level}>")
        elif isinstance(block, Divider):
            out.append("<hr>")
        elif isinstance(block, ListItem):
            out.append(f"<li>{_inline_html(block.content)}</li>")
        elif isinstance(block, LineBreak):
            out.append("<br>")
        elif isinstance(block, Table):
            head = "".join(f"<th>{_inline_html(cell)}</th>" for cell in block.headers)
            body = "".join(
                "<tr>" + "".join(f"<td>{_inline_html(cell)}</td>" for cell in row) + "</tr>"
                for row in block.rows
            )
            out.append(
                f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"
            )
        else:
            out.append(f"<p>{_inline_html(block.content)}</p>")
    return "\n".join(out)

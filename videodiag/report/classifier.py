"""Line classification for markdown-flavoured report text.

Every input line maps to exactly one :class:`ClassifiedLine`. Rules are checked
top to bottom and the first match wins, so ``### x`` is tested before ``# x`` and
priority markers before bullets.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class LineKind(str, Enum):
    blank = 'blank'
    heading1 = 'heading1'
    heading2 = 'heading2'
    heading3 = 'heading3'
    bullet = 'bullet'
    numbered = 'numbered'
    priority_box = 'priority_box'
    bold_emphasis = 'bold_emphasis'
    table_row = 'table_row'
    rule = 'rule'
    paragraph = 'paragraph'


HEADING_KINDS = frozenset({LineKind.heading1, LineKind.heading2, LineKind.heading3})

PRIORITY_MARKERS = {
    '🟥': 'red',
    '🔴': 'red',
    '🟨': 'yellow',
    '🟡': 'yellow',
    '🟩': 'green',
    '🟢': 'green',
}

_HEADING3_RE = re.compile(r'^###\s+(.*)$')
_HEADING2_RE = re.compile(r'^##\s+(.*)$')
_HEADING1_RE = re.compile(r'^#\s+(.*)$')
# Report templates wrap priority lines in bold, so a leading ``**`` is tolerated.
_PRIORITY_RE = re.compile(
    r'^(?:\*\*)?\s*(?:(?P<emoji>' + '|'.join(PRIORITY_MARKERS) + r')|(?=PRIORITET\s+\d+:))',
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r'^[-•*]\s+(.*)$')
_NUMBERED_RE = re.compile(r'^(\d+\.)\s+(.*)$')
_BOLD_LINE_RE = re.compile(r'^\*\*(?!\*+$)(.+)\*\*$')
_RULE_RE = re.compile(r'^(?:[-─]{3,}|\*{3,}|_{3,})$')
_STRAY_STAR_RE = re.compile(r'(?<=\S)\*|\*(?=\S)')
_SEPARATOR_CELL_RE = re.compile(r'^:?-{3,}:?$')


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    text: str
    # List label ("3.") for numbered items, colour key for priority boxes.
    marker: str = ''
    cells: tuple[str, ...] = ()


def normalize_line(raw: str) -> str:
    return raw.replace('\t', '  ').rstrip()


def strip_emphasis(text: str) -> str:
    """Drop markdown ``**``/``*`` emphasis markers; display only."""
    without_bold = text.replace('**', '')
    return _STRAY_STAR_RE.sub('', without_bold).strip()


def split_table_cells(text: str) -> list[str]:
    fields = text.strip().split('|')
    if fields and not fields[0].strip():
        fields = fields[1:]
    if fields and not fields[-1].strip():
        fields = fields[:-1]
    return [field.strip() for field in fields]


def is_table_separator(cells: list[str]) -> bool:
    if not cells:
        return False
    return all(_SEPARATOR_CELL_RE.match(cell.replace(' ', '')) for cell in cells)


def _priority_line(trimmed: str) -> ClassifiedLine | None:
    match = _PRIORITY_RE.match(trimmed)
    if match is None:
        return None
    emoji = match.group('emoji')
    body = trimmed[match.end():]
    return ClassifiedLine(
        LineKind.priority_box,
        strip_emphasis(body),
        PRIORITY_MARKERS.get(emoji, 'neutral') if emoji else 'neutral',
    )


def classify_line(raw: str) -> ClassifiedLine:
    trimmed = normalize_line(raw).strip()
    if not trimmed:
        return ClassifiedLine(LineKind.blank, '')

    for pattern, kind in (
        (_HEADING3_RE, LineKind.heading3),
        (_HEADING2_RE, LineKind.heading2),
        (_HEADING1_RE, LineKind.heading1),
    ):
        match = pattern.match(trimmed)
        if match:
            return ClassifiedLine(kind, strip_emphasis(match.group(1)))

    priority = _priority_line(trimmed)
    if priority is not None:
        return priority

    match = _BULLET_RE.match(trimmed)
    if match:
        return ClassifiedLine(LineKind.bullet, strip_emphasis(match.group(1)), '•')

    match = _NUMBERED_RE.match(trimmed)
    if match:
        return ClassifiedLine(LineKind.numbered, strip_emphasis(match.group(2)), match.group(1))

    match = _BOLD_LINE_RE.match(trimmed)
    if match:
        return ClassifiedLine(LineKind.bold_emphasis, strip_emphasis(match.group(1)))

    if len(trimmed) >= 2 and trimmed.startswith('|') and trimmed.endswith('|'):
        cells = tuple(strip_emphasis(cell) for cell in split_table_cells(trimmed))
        return ClassifiedLine(LineKind.table_row, ' | '.join(cells), cells=cells)

    if _RULE_RE.match(trimmed):
        return ClassifiedLine(LineKind.rule, '')

    text = strip_emphasis(trimmed)
    if not text:
        return ClassifiedLine(LineKind.blank, '')
    return ClassifiedLine(LineKind.paragraph, text)


def classify_document(text: str, *, keep_blank: bool = True) -> list[ClassifiedLine]:
    classified: list[ClassifiedLine] = []
    for raw in (text or '').replace('\r\n', '\n').split('\n'):
        line = classify_line(raw)
        if line.kind is LineKind.blank and not keep_blank:
            continue
        classified.append(line)
    return classified

"""Cursor-driven layout of classified report lines onto a reportlab canvas.

The cursor ``y`` is measured downwards from the top edge of the page, the way
the report reads; conversion to reportlab's bottom-left origin happens only at
draw time. Every placer reserves space before drawing, so nothing is drawn
below ``PageGeometry.bottom_limit``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth

from .classifier import ClassifiedLine, LineKind, is_table_separator
from .fonts import ReportFonts


PAGE_WIDTH, PAGE_HEIGHT = A4

LINE_HEIGHT = 1.2
BLANK_GAP = 8
FOOTER_RESERVE = 48

HEADING_SIZES = {
    LineKind.heading1: 18,
    LineKind.heading2: 14,
    LineKind.heading3: 12,
}
HEADING_RESERVE = 14
HEADING_GAP = 6

PRIORITY_BOX_HEIGHT = 32
PRIORITY_BOX_RESERVE = 48
PRIORITY_BOX_RADIUS = 8
PRIORITY_BOX_INSET_X = 12
PRIORITY_BOX_INSET_Y = 10
PRIORITY_BOX_GAP = 10
PRIORITY_ACCENTS = {
    'red': '#dc2626',
    'yellow': '#f59e0b',
    'green': '#16a34a',
    'neutral': '#94a3b8',
}

LIST_INDENT = 10
LIST_RESERVE = 16
LIST_GAP = 3
EMPHASIS_RESERVE = 16
EMPHASIS_GAP = 4
PARAGRAPH_RESERVE = 18
PARAGRAPH_GAP = 5
TEXT_LINE_GAP = 3

TABLE_ROW_HEIGHT = 18
TABLE_PADDING = 6
TABLE_CELL_PAD_TOP = 4
TABLE_SEPARATOR_HEIGHT = 4

RULE_HEIGHT = 10
RULE_OFFSET = 4


class FontWeight(str, Enum):
    regular = 'regular'
    bold = 'bold'


@dataclass(frozen=True)
class StyleState:
    weight: FontWeight
    size: float
    color: str


BODY_STYLE = StyleState(FontWeight.regular, 11, '#111827')
EMPHASIS_STYLE = StyleState(FontWeight.bold, 11, '#0f172a')
PRIORITY_STYLE = StyleState(FontWeight.bold, 12, '#111827')
TABLE_HEADER_STYLE = StyleState(FontWeight.bold, 10, '#0f172a')
TABLE_CELL_STYLE = StyleState(FontWeight.regular, 10, '#111827')


def heading_style(size: float) -> StyleState:
    return StyleState(FontWeight.bold, size, '#0f172a')


def fit_text(text: str, font_name: str, size: float, width: float) -> str:
    """Truncate ``text`` with an ellipsis so it fits on one line of ``width``."""
    if stringWidth(text, font_name, size) <= width:
        return text
    ellipsis = '…'
    while text and stringWidth(text + ellipsis, font_name, size) > width:
        text = text[:-1]
    return text.rstrip() + ellipsis if text else ''


@dataclass(frozen=True)
class PageGeometry:
    width: float = PAGE_WIDTH
    height: float = PAGE_HEIGHT
    left_margin: float = 56
    right_margin: float = 56
    top_margin: float = 56
    bottom_margin: float = 56
    footer_reserve: float = FOOTER_RESERVE

    @classmethod
    def with_margin(cls, margin: float) -> PageGeometry:
        return cls(
            left_margin=margin,
            right_margin=margin,
            top_margin=margin,
            bottom_margin=margin,
        )

    @property
    def left(self) -> float:
        return self.left_margin

    @property
    def top(self) -> float:
        return self.top_margin

    @property
    def content_width(self) -> float:
        return self.width - self.left_margin - self.right_margin

    @property
    def bottom_limit(self) -> float:
        return self.height - self.bottom_margin - self.footer_reserve

    def to_canvas_y(self, y: float) -> float:
        return self.height - y


@dataclass
class LayoutCursor:
    page_index: int = 0
    y: float = 0.0


@dataclass(frozen=True)
class Placement:
    kind: LineKind
    page_index: int
    top: float
    bottom: float


@dataclass
class LayoutResult:
    placements: list[Placement] = field(default_factory=list)
    pages: int = 1


class LayoutEngine:
    def __init__(
        self,
        canvas,
        geometry: PageGeometry,
        fonts: ReportFonts,
        *,
        cursor: LayoutCursor | None = None,
    ) -> None:
        self.canvas = canvas
        self.geometry = geometry
        self.fonts = fonts
        self.cursor = cursor or LayoutCursor(y=geometry.top)
        self.style = BODY_STYLE
        self.placements: list[Placement] = []
        self._previous_kind: LineKind | None = None
        self._placers: dict[LineKind, Callable[[ClassifiedLine], None]] = {
            LineKind.blank: self._place_blank,
            LineKind.heading1: self._place_heading,
            LineKind.heading2: self._place_heading,
            LineKind.heading3: self._place_heading,
            LineKind.priority_box: self._place_priority_box,
            LineKind.bullet: self._place_list_item,
            LineKind.numbered: self._place_list_item,
            LineKind.bold_emphasis: self._place_emphasis,
            LineKind.table_row: self._place_table_row,
            LineKind.rule: self._place_rule,
            LineKind.paragraph: self._place_paragraph,
        }

    # -- style and measurement ------------------------------------------------

    def font_name(self, style: StyleState) -> str:
        if style.weight is FontWeight.bold:
            return self.fonts.bold
        return self.fonts.regular

    def apply_style(self, style: StyleState) -> None:
        self.canvas.setFont(self.font_name(style), style.size)
        self.canvas.setFillColor(colors.HexColor(style.color))
        self.style = style

    def reset_style(self) -> None:
        self.apply_style(BODY_STYLE)

    @staticmethod
    def leading(style: StyleState, line_gap: float = 0) -> float:
        return style.size * LINE_HEIGHT + line_gap

    def measure(
        self,
        text: str,
        style: StyleState,
        width: float,
        *,
        line_gap: float = 0,
    ) -> tuple[list[str], float]:
        lines = simpleSplit(text, self.font_name(style), style.size, width) or ['']
        return lines, len(lines) * self.leading(style, line_gap)

    def fit_text(self, text: str, style: StyleState, width: float) -> str:
        return fit_text(text, self.font_name(style), style.size, width)

    # -- cursor ------------------------------------------------------------------

    @property
    def at_page_top(self) -> bool:
        return self.cursor.y <= self.geometry.top

    def new_page(self) -> None:
        self.canvas.showPage()
        self.cursor.page_index += 1
        self.cursor.y = self.geometry.top
        # reportlab resets the graphics state on every new page.
        self.apply_style(self.style)

    def ensure_space(self, needed: float) -> None:
        if self.cursor.y + needed > self.geometry.bottom_limit and not self.at_page_top:
            self.new_page()

    def advance(self, gap: float) -> None:
        self.cursor.y = min(self.cursor.y + gap, self.geometry.bottom_limit)

    def _record(self, kind: LineKind, top: float, bottom: float) -> None:
        if bottom > top:
            self.placements.append(Placement(kind, self.cursor.page_index, top, bottom))

    def _baseline(self, top: float, style: StyleState) -> float:
        return self.geometry.to_canvas_y(top + style.size)

    def _draw_lines(
        self,
        kind: LineKind,
        lines: list[str],
        x: float,
        style: StyleState,
        line_gap: float,
    ) -> None:
        leading = self.leading(style, line_gap)
        self.apply_style(style)
        chunk_top = self.cursor.y
        for line in lines:
            if self.cursor.y + leading > self.geometry.bottom_limit and not self.at_page_top:
                self._record(kind, chunk_top, self.cursor.y)
                self.new_page()
                chunk_top = self.cursor.y
            self.canvas.drawString(x, self._baseline(self.cursor.y, style), line)
            self.cursor.y += leading
        self._record(kind, chunk_top, self.cursor.y)

    # -- placers -----------------------------------------------------------------

    def place_title(self, text: str, size: float = 16) -> None:
        style = heading_style(size)
        lines, _ = self.measure(text, style, self.geometry.content_width)
        self.ensure_space(size + HEADING_RESERVE)
        self._draw_lines(LineKind.heading1, lines, self.geometry.left, style, 0)
        self.advance(self.leading(style) * 0.75)
        self.reset_style()

    def _place_blank(self, line: ClassifiedLine) -> None:
        self.advance(BLANK_GAP)

    def _place_heading(self, line: ClassifiedLine) -> None:
        size = HEADING_SIZES[line.kind]
        style = heading_style(size)
        lines, _ = self.measure(line.text, style, self.geometry.content_width)
        self.ensure_space(max(size + HEADING_RESERVE, self.leading(style)))
        self._draw_lines(line.kind, lines, self.geometry.left, style, 0)
        self.advance(HEADING_GAP)
        self.reset_style()

    def _place_priority_box(self, line: ClassifiedLine) -> None:
        geometry = self.geometry
        style = PRIORITY_STYLE
        inner_width = geometry.content_width - 2 * PRIORITY_BOX_INSET_X
        lines, _ = self.measure(line.text, style, inner_width)
        leading = self.leading(style)

        capacity = geometry.bottom_limit - geometry.top - 2 * PRIORITY_BOX_INSET_Y
        max_lines = max(1, int(capacity // leading))
        if len(lines) > max_lines:
            lines = lines[:max_lines]
            lines[-1] = self.fit_text(lines[-1] + '…', style, inner_width)

        box_height = max(PRIORITY_BOX_HEIGHT, len(lines) * leading + 2 * PRIORITY_BOX_INSET_Y)
        self.ensure_space(max(PRIORITY_BOX_RESERVE, box_height))

        top = self.cursor.y
        canvas_bottom = geometry.to_canvas_y(top + box_height)
        self.canvas.saveState()
        self.canvas.setFillColor(colors.HexColor('#f8fafc'))
        self.canvas.roundRect(
            geometry.left,
            canvas_bottom,
            geometry.content_width,
            box_height,
            PRIORITY_BOX_RADIUS,
            stroke=0,
            fill=1,
        )
        self.canvas.setFillColor(colors.HexColor(PRIORITY_ACCENTS.get(line.marker, PRIORITY_ACCENTS['neutral'])))
        self.canvas.roundRect(geometry.left, canvas_bottom, 4, box_height, 2, stroke=0, fill=1)
        self.canvas.restoreState()

        self.apply_style(style)
        text_top = top + PRIORITY_BOX_INSET_Y
        for index, text in enumerate(lines):
            self.canvas.drawString(
                geometry.left + PRIORITY_BOX_INSET_X,
                self._baseline(text_top + index * leading, style),
                text,
            )

        self._record(line.kind, top, top + box_height)
        self.cursor.y = top + box_height
        self.advance(PRIORITY_BOX_GAP)
        self.reset_style()

    def _place_list_item(self, line: ClassifiedLine) -> None:
        geometry = self.geometry
        style = BODY_STYLE
        marker = line.marker or '•'
        marker_width = stringWidth(marker + ' ', self.font_name(style), style.size)
        x = geometry.left + LIST_INDENT
        width = geometry.content_width - LIST_INDENT - marker_width
        lines, _ = self.measure(line.text, style, width, line_gap=TEXT_LINE_GAP)

        self.ensure_space(max(LIST_RESERVE, self.leading(style, TEXT_LINE_GAP)))
        self.apply_style(style)
        self.canvas.drawString(x, self._baseline(self.cursor.y, style), marker)
        self._draw_lines(line.kind, lines, x + marker_width, style, TEXT_LINE_GAP)
        self.advance(LIST_GAP)

    def _place_emphasis(self, line: ClassifiedLine) -> None:
        style = EMPHASIS_STYLE
        lines, _ = self.measure(line.text, style, self.geometry.content_width, line_gap=TEXT_LINE_GAP)
        self.ensure_space(max(EMPHASIS_RESERVE, self.leading(style, TEXT_LINE_GAP)))
        self._draw_lines(line.kind, lines, self.geometry.left, style, TEXT_LINE_GAP)
        self.advance(EMPHASIS_GAP)
        self.reset_style()

    def _place_table_row(self, line: ClassifiedLine) -> None:
        cells = list(line.cells)
        if not cells:
            return

        geometry = self.geometry
        table_left = geometry.left + TABLE_PADDING
        table_width = geometry.content_width - 2 * TABLE_PADDING

        if is_table_separator(cells):
            self.ensure_space(TABLE_SEPARATOR_HEIGHT)
            top = self.cursor.y
            self._draw_rule(top + TABLE_SEPARATOR_HEIGHT / 2, table_left, table_width, '#cbd5e1', 0.8)
            self._record(line.kind, top, top + TABLE_SEPARATOR_HEIGHT)
            self.cursor.y = top + TABLE_SEPARATOR_HEIGHT
            return

        header = self._previous_kind is not LineKind.table_row
        style = TABLE_HEADER_STYLE if header else TABLE_CELL_STYLE
        self.ensure_space(TABLE_ROW_HEIGHT)
        top = self.cursor.y

        if header:
            self.canvas.saveState()
            self.canvas.setFillColor(colors.HexColor('#f1f5f9'))
            self.canvas.rect(
                table_left,
                geometry.to_canvas_y(top + TABLE_ROW_HEIGHT),
                table_width,
                TABLE_ROW_HEIGHT,
                stroke=0,
                fill=1,
            )
            self.canvas.restoreState()

        self.apply_style(style)
        column_width = table_width / len(cells)
        baseline = self._baseline(top + TABLE_CELL_PAD_TOP, style)
        for index, cell in enumerate(cells):
            x = table_left + index * column_width + 2
            self.canvas.drawString(x, baseline, self.fit_text(cell, style, column_width - 4))

        self._record(line.kind, top, top + TABLE_ROW_HEIGHT)
        self.cursor.y = top + TABLE_ROW_HEIGHT
        self.reset_style()

    def _draw_rule(self, y: float, x: float, width: float, color: str, line_width: float) -> None:
        self.canvas.saveState()
        self.canvas.setStrokeColor(colors.HexColor(color))
        self.canvas.setLineWidth(line_width)
        canvas_y = self.geometry.to_canvas_y(y)
        self.canvas.line(x, canvas_y, x + width, canvas_y)
        self.canvas.restoreState()

    def _place_rule(self, line: ClassifiedLine) -> None:
        self.ensure_space(RULE_HEIGHT)
        top = self.cursor.y
        self._draw_rule(top + RULE_OFFSET, self.geometry.left, self.geometry.content_width, '#e5e7eb', 1)
        self._record(line.kind, top, top + RULE_HEIGHT)
        self.cursor.y = top + RULE_HEIGHT

    def _place_paragraph(self, line: ClassifiedLine) -> None:
        style = BODY_STYLE
        lines, _ = self.measure(line.text, style, self.geometry.content_width, line_gap=TEXT_LINE_GAP)
        self.ensure_space(max(PARAGRAPH_RESERVE, self.leading(style, TEXT_LINE_GAP)))
        self._draw_lines(line.kind, lines, self.geometry.left, style, TEXT_LINE_GAP)
        self.advance(PARAGRAPH_GAP)

    # -- entry point ---------------------------------------------------------------

    def place(self, line: ClassifiedLine) -> None:
        self._placers[line.kind](line)
        self._previous_kind = line.kind

    def render(self, lines: list[ClassifiedLine]) -> LayoutResult:
        self.reset_style()
        for line in lines:
            self.place(line)
        return LayoutResult(placements=list(self.placements), pages=self.cursor.page_index + 1)


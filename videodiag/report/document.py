from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable

from reportlab.lib import colors
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen.canvas import Canvas

from ..config import Settings, get_settings
from ..types import DocumentMetadata
from .classifier import classify_document
from .fonts import ReportFonts, resolve_report_fonts
from .layout import LayoutCursor, LayoutEngine, LayoutResult, PageGeometry, fit_text


logger = logging.getLogger(__name__)

EMPTY_VALUE = '—'
COVER_DISCLAIMER = 'Generisano automatski. Koristi sopstvenu procenu za finalne odluke.'
COVER_LABELS = (
    ('Datum', 'created_at'),
    ('Kanal', 'channel'),
    ('Video', 'video_title'),
    ('Period analize', 'period'),
)
FOOTER_PAGE_LABEL = 'Strana'
FOOTER_OFFSET = 32


class PdfGenerationError(RuntimeError):
    """Raised when the encoder fails while drawing or finalizing a report."""


@dataclass(frozen=True)
class PageRange:
    start: int
    count: int


@dataclass(frozen=True)
class RenderedReport:
    pdf: bytes
    layout: LayoutResult
    page_count: int


FooterPainter = Callable[[Canvas, int, PageRange], None]


class BufferedCanvas(Canvas):
    """Canvas that holds finished pages back until :meth:`save`.

    Footers need the final page count, so they are stamped in a second pass
    once every page of the body is known.
    """

    def __init__(self, *args, footer: FooterPainter | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._page_states: list[dict] = []
        self._footer = footer

    def showPage(self) -> None:
        self._page_states.append(dict(self.__dict__))
        self._startPage()

    def buffered_page_range(self) -> PageRange:
        return PageRange(start=0, count=len(self._page_states))

    def save(self) -> None:
        page_range = self.buffered_page_range()
        for index, state in enumerate(self._page_states):
            self.__dict__.update(state)
            if self._footer is not None:
                self._footer(self, index, page_range)
            super().showPage()
        super().save()


def _draw_text_block(
    canvas: Canvas,
    text: str,
    *,
    x: float,
    top: float,
    width: float,
    font_name: str,
    size: float,
    color: str,
    geometry: PageGeometry,
    max_lines: int | None = None,
) -> float:
    lines = simpleSplit(text, font_name, size, width) or ['']
    if max_lines is not None and len(lines) > max_lines:
        lines = lines[:max_lines]
        lines[-1] = fit_text(lines[-1] + '…', font_name, size, width)
    leading = size * 1.2
    canvas.setFont(font_name, size)
    canvas.setFillColor(colors.HexColor(color))
    for index, line in enumerate(lines):
        canvas.drawString(x, geometry.to_canvas_y(top + index * leading + size), line)
    return top + len(lines) * leading


def draw_cover_page(
    canvas: Canvas,
    geometry: PageGeometry,
    fonts: ReportFonts,
    metadata: DocumentMetadata,
) -> None:
    left = geometry.left
    width = geometry.content_width

    canvas.saveState()
    canvas.setFillColor(colors.white)
    canvas.rect(0, 0, geometry.width, geometry.height, stroke=0, fill=1)
    canvas.setFillColor(colors.HexColor('#111827'))
    canvas.rect(0, geometry.height - 10, geometry.width, 10, stroke=0, fill=1)
    canvas.restoreState()

    block = partial(_draw_text_block, canvas, x=left, width=width, geometry=geometry)
    block(metadata.brand, top=60, font_name=fonts.bold, size=12, color='#111827', max_lines=1)
    title_bottom = block(
        metadata.title,
        top=120,
        font_name=fonts.bold,
        size=28,
        color='#0f172a',
        max_lines=3,
    )
    subtitle_bottom = block(
        metadata.subtitle,
        top=max(165, title_bottom + 8),
        font_name=fonts.regular,
        size=14,
        color='#334155',
        max_lines=3,
    )

    box_top = max(230, subtitle_bottom + 20)
    box_height = 120
    canvas.saveState()
    canvas.setFillColor(colors.HexColor('#f8fafc'))
    canvas.roundRect(left, geometry.to_canvas_y(box_top + box_height), width, box_height, 12, stroke=0, fill=1)
    canvas.restoreState()

    y = box_top + 20
    for label, attribute in COVER_LABELS:
        value = (getattr(metadata, attribute) or '').strip() or EMPTY_VALUE
        baseline = geometry.to_canvas_y(y + 10)
        canvas.setFont(fonts.bold, 10)
        canvas.setFillColor(colors.HexColor('#0f172a'))
        canvas.drawString(left + 18, baseline, f'{label}:')
        canvas.setFont(fonts.regular, 10)
        canvas.setFillColor(colors.HexColor('#334155'))
        canvas.drawString(left + 140, baseline, fit_text(value, fonts.regular, 10, width - 160))
        y += 22

    block(
        COVER_DISCLAIMER,
        top=geometry.height - 90,
        font_name=fonts.regular,
        size=10,
        color='#64748b',
        max_lines=2,
    )


def draw_footer(
    canvas: Canvas,
    page_index: int,
    page_range: PageRange,
    *,
    geometry: PageGeometry,
    fonts: ReportFonts,
    brand: str,
    include_cover: bool,
) -> None:
    if page_index == page_range.start and not include_cover:
        return

    left = geometry.left
    width = geometry.content_width
    footer_y = geometry.height - geometry.bottom_margin - FOOTER_OFFSET

    canvas.saveState()
    canvas.setStrokeColor(colors.HexColor('#e5e7eb'))
    canvas.setLineWidth(1)
    canvas.line(left, geometry.to_canvas_y(footer_y), left + width, geometry.to_canvas_y(footer_y))

    baseline = geometry.to_canvas_y(footer_y + 10 + 9)
    canvas.setFont(fonts.regular, 9)
    canvas.setFillColor(colors.HexColor('#6b7280'))
    canvas.drawString(left, baseline, fit_text(brand, fonts.regular, 9, width / 2))
    canvas.drawRightString(
        left + width,
        baseline,
        f'{FOOTER_PAGE_LABEL} {page_index - page_range.start + 1} / {page_range.count}',
    )
    canvas.restoreState()


def render_report(
    source: str,
    metadata: DocumentMetadata,
    *,
    settings: Settings | None = None,
) -> RenderedReport:
    settings = settings or get_settings()
    fonts = resolve_report_fonts(settings.pdf_font_dir)
    geometry = PageGeometry.with_margin(settings.pdf_page_margin)
    lines = classify_document(source, keep_blank=settings.pdf_keep_blank_lines)

    buffer = io.BytesIO()
    try:
        canvas = BufferedCanvas(
            buffer,
            pagesize=(geometry.width, geometry.height),
            invariant=1,
            footer=partial(
                draw_footer,
                geometry=geometry,
                fonts=fonts,
                brand=metadata.brand,
                include_cover=settings.pdf_footer_on_cover,
            ),
        )
        canvas.setTitle(metadata.title)
        canvas.setAuthor(metadata.brand)
        canvas.setSubject(metadata.subject)
        canvas.setCreator(settings.app_name)

        draw_cover_page(canvas, geometry, fonts, metadata)
        canvas.showPage()

        engine = LayoutEngine(canvas, geometry, fonts, cursor=LayoutCursor(page_index=1, y=geometry.top))
        engine.place_title(settings.pdf_body_heading)
        layout = engine.render(lines)
        canvas.showPage()

        page_count = canvas.buffered_page_range().count
        canvas.save()
    except Exception as exc:
        raise PdfGenerationError(f'PDF generation failed: {exc}') from exc

    pdf = buffer.getvalue()
    logger.info(
        'Rendered report PDF: %s lines, %s pages, %s bytes (unicode fonts: %s)',
        len(lines),
        page_count,
        len(pdf),
        fonts.unicode,
    )
    return RenderedReport(pdf=pdf, layout=layout, page_count=page_count)


def build_report_pdf(
    source: str,
    metadata: DocumentMetadata,
    *,
    settings: Settings | None = None,
) -> bytes:
    return render_report(source, metadata, settings=settings).pdf

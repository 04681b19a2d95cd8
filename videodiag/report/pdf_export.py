from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from urllib.parse import quote

from ..config import Settings, get_settings
from ..types import DocumentMetadata, PdfExportRequest, ReportMeta, today_iso
from .document import build_report_pdf


_UNSAFE_FILENAME_RE = re.compile(r'["\\/\x00-\x1f\x7f]+')


@dataclass(frozen=True)
class ExportedReport:
    pdf: bytes
    filename: str


def resolve_report_text(request: PdfExportRequest) -> str:
    for candidate in (request.content, request.report_markdown, request.report_text, request.subtitle):
        if candidate:
            return candidate.replace('\r\n', '\n')
    return ''


def build_filename(raw: str | None, *, today: date | None = None) -> str:
    cleaned = _UNSAFE_FILENAME_RE.sub('', raw or '').strip()
    if not cleaned:
        stamp = (today or date.today()).isoformat()
        cleaned = f'youtube-report-{stamp}.pdf'
    if not cleaned.lower().endswith('.pdf'):
        cleaned = f'{cleaned}.pdf'
    return cleaned


def content_disposition(filename: str) -> str:
    ascii_name = filename.encode('ascii', 'ignore').decode('ascii').strip() or 'report.pdf'
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def build_metadata(
    *,
    title: str | None,
    subtitle: str | None,
    meta: ReportMeta | None = None,
    settings: Settings | None = None,
) -> DocumentMetadata:
    settings = settings or get_settings()
    meta = meta or ReportMeta()
    return DocumentMetadata(
        title=title or settings.pdf_default_title,
        subtitle=subtitle or settings.pdf_default_subtitle,
        brand=settings.pdf_brand,
        created_at=meta.created_at or today_iso(),
        channel=meta.channel,
        video_title=meta.video_title,
        period=meta.period,
        subject=settings.pdf_subject,
    )


def export_report(request: PdfExportRequest, *, settings: Settings | None = None) -> ExportedReport:
    settings = settings or get_settings()
    metadata = build_metadata(
        title=request.title,
        subtitle=request.subtitle,
        meta=request.meta,
        settings=settings,
    )
    pdf = build_report_pdf(resolve_report_text(request), metadata, settings=settings)
    return ExportedReport(pdf=pdf, filename=build_filename(request.filename))


def markdown_to_pdf(
    *,
    markdown_text: str,
    output_path: Path,
    metadata: DocumentMetadata,
    settings: Settings | None = None,
) -> int:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    pdf = build_report_pdf(markdown_text, metadata, settings=settings)
    output_path.write_bytes(pdf)
    return len(pdf)


def markdown_file_to_pdf(
    *,
    markdown_path: Path,
    output_path: Path,
    metadata: DocumentMetadata,
    settings: Settings | None = None,
) -> int:
    markdown_text = markdown_path.read_text(encoding='utf-8')
    return markdown_to_pdf(
        markdown_text=markdown_text,
        output_path=output_path,
        metadata=metadata,
        settings=settings,
    )

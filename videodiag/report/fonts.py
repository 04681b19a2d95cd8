from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont


logger = logging.getLogger(__name__)

FONT_REGULAR_NAME = 'VD-DejaVuSans'
FONT_BOLD_NAME = 'VD-DejaVuSans-Bold'
FONT_FALLBACK_REGULAR = 'Helvetica'
FONT_FALLBACK_BOLD = 'Helvetica-Bold'

FONT_REGULAR_FILE = 'DejaVuSans.ttf'
FONT_BOLD_FILE = 'DejaVuSans-Bold.ttf'

FONT_DIR_CANDIDATES = (
    Path('assets/fonts'),
    Path('public/fonts'),
    Path('/usr/share/fonts/truetype/dejavu'),
    Path('/usr/share/fonts/dejavu'),
    Path('/usr/share/fonts/TTF'),
    Path('/usr/local/share/fonts'),
)


@dataclass(frozen=True)
class ReportFonts:
    regular: str
    bold: str

    @property
    def unicode(self) -> bool:
        return self.regular != FONT_FALLBACK_REGULAR


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _safe_file(path: Path | None) -> Path | None:
    if path is None:
        return None
    if path.exists() and path.is_file():
        return path
    return None


def _candidate_dirs(font_dir: Path | None) -> Iterable[Path]:
    if font_dir is not None:
        yield Path(font_dir).expanduser()
    root = _repo_root()
    for candidate in FONT_DIR_CANDIDATES:
        yield candidate if candidate.is_absolute() else root / candidate


def _register_ttf_font(font_name: str, font_path: Path) -> bool:
    if font_name in pdfmetrics.getRegisteredFontNames():
        return True

    try:
        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
        return True
    except Exception as exc:
        logger.warning('Failed to register PDF font %s from %s: %s', font_name, font_path, exc)
        return False


def resolve_report_fonts(font_dir: Path | None = None) -> ReportFonts:
    """Find a Unicode TTF pair (DejaVu Sans) or fall back to Helvetica.

    Resolution runs on every export; reportlab's own registry keeps the
    registration itself idempotent.
    """
    for directory in _candidate_dirs(font_dir):
        regular_path = _safe_file(directory / FONT_REGULAR_FILE)
        bold_path = _safe_file(directory / FONT_BOLD_FILE)
        if regular_path is None or bold_path is None:
            continue
        if _register_ttf_font(FONT_REGULAR_NAME, regular_path) and _register_ttf_font(
            FONT_BOLD_NAME, bold_path
        ):
            return ReportFonts(regular=FONT_REGULAR_NAME, bold=FONT_BOLD_NAME)

    logger.warning(
        'No Unicode report font found (looked for %s); falling back to %s',
        FONT_REGULAR_FILE,
        FONT_FALLBACK_REGULAR,
    )
    return ReportFonts(regular=FONT_FALLBACK_REGULAR, bold=FONT_FALLBACK_BOLD)

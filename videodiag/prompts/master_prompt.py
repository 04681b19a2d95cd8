from __future__ import annotations

from pathlib import Path

from ..config import Settings, get_settings


BUNDLED_PROMPT_PATH = Path(__file__).with_name('master_prompt.md')


def build_master_prompt(settings: Settings | None = None) -> str:
    """System instruction that walks the model through the diagnostic workflow."""
    settings = settings or get_settings()
    path = settings.system_prompt_path or BUNDLED_PROMPT_PATH
    return Path(path).expanduser().read_text(encoding='utf-8').strip()

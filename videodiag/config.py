from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = 'YouTube Video Diagnostic'

    # OpenAI chat completions
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices('OPENAI_API_KEY', 'API_KEY', 'LLM_API_KEY'),
    )
    openai_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices('OPENAI_BASE_URL', 'BASE_URL', 'LLM_BASE_URL'),
    )
    chat_model: str = Field(
        default='gpt-4o',
        validation_alias=AliasChoices('OPENAI_MODEL', 'CHAT_MODEL'),
    )
    chat_temperature: float = 0.7
    chat_max_tokens: int = 4096
    chat_timeout_seconds: int = 60
    max_images_per_turn: int = 10
    image_detail: str = 'high'
    system_prompt_path: Path | None = None

    # HTTP server
    server_host: str = '0.0.0.0'
    server_port: int = 3000
    # Comma-separated list, '*' allows any origin.
    cors_origins: str = '*'
    max_request_bytes: int = 25 * 1024 * 1024

    # PDF export
    pdf_brand: str = 'Kreator Akademija'
    pdf_default_title: str = 'Video Analyzer'
    pdf_default_subtitle: str = 'Detaljni izveštaj'
    pdf_subject: str = 'YouTube Video Dijagnostika'
    pdf_body_heading: str = 'Detailed Report'
    pdf_font_dir: Path | None = None
    pdf_page_margin: int = 56
    pdf_footer_on_cover: bool = True
    pdf_keep_blank_lines: bool = True

    log_level: str = 'INFO'

    def cors_origin_list(self) -> list[str] | str:
        origins: list[str] = []
        for item in self.cors_origins.split(','):
            normalized = item.strip()
            if not normalized:
                continue
            if normalized == '*':
                return '*'
            origins.append(normalized)
        return origins or '*'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

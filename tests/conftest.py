"""Common test configuration and fixtures."""

from __future__ import annotations

import io

import pytest
from pypdf import PdfReader

from videodiag.config import Settings, get_settings
from videodiag.report.fonts import ReportFonts
from videodiag.server import create_app


ENV_KEYS = (
    'OPENAI_API_KEY',
    'API_KEY',
    'LLM_API_KEY',
    'OPENAI_BASE_URL',
    'BASE_URL',
    'LLM_BASE_URL',
    'OPENAI_MODEL',
    'CHAT_MODEL',
)

HELVETICA = ReportFonts(regular='Helvetica', bold='Helvetica-Bold')


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep a developer's .env and OpenAI variables out of the tests."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv('OPENAI_API_KEY', 'test-key')
    return Settings(_env_file=None)


@pytest.fixture
def settings_without_key() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def client(settings: Settings):
    app = create_app(settings)
    app.config['TESTING'] = True
    return app.test_client()


def read_pdf(data: bytes) -> PdfReader:
    return PdfReader(io.BytesIO(data))


def page_texts(data: bytes) -> list[str]:
    return [page.extract_text() or '' for page in read_pdf(data).pages]

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def today_iso() -> str:
    return date.today().isoformat()


def _string_or_none(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    return None


class ChatTurn(BaseModel):
    role: Literal['user', 'assistant']
    content: str = ''


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_messages: list[ChatTurn] = Field(default_factory=list, alias='sessionMessages')
    user_text: str = Field(default='', alias='userText')
    # base64 data URLs (data:image/png;base64,...)
    images: list[str] = Field(default_factory=list)

    @field_validator('user_text', mode='before')
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ''


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatReply(BaseModel):
    text: str
    usage: TokenUsage | None = None
    final_report: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            'text': self.text,
            'usage': self.usage.model_dump(mode='json') if self.usage else None,
            'finalReport': self.final_report,
        }


class ReportMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel: str | None = None
    video_title: str | None = Field(default=None, alias='videoTitle')
    period: str | None = None
    created_at: str | None = Field(default=None, alias='createdAt')

    @field_validator('*', mode='before')
    @classmethod
    def _only_strings(cls, value: Any) -> str | None:
        return _string_or_none(value)


class PdfExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    content: str | None = None
    report_markdown: str | None = Field(default=None, alias='reportMarkdown')
    report_text: str | None = Field(default=None, alias='reportText')
    title: str | None = None
    subtitle: str | None = None
    filename: str | None = None
    meta: ReportMeta = Field(default_factory=ReportMeta)

    @field_validator(
        'content',
        'report_markdown',
        'report_text',
        'title',
        'subtitle',
        'filename',
        mode='before',
    )
    @classmethod
    def _only_strings(cls, value: Any) -> str | None:
        return _string_or_none(value)

    @field_validator('meta', mode='before')
    @classmethod
    def _meta_object(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ReportMeta)) else {}


class DocumentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: str
    brand: str
    created_at: str = Field(default_factory=today_iso)
    channel: str | None = None
    video_title: str | None = None
    period: str | None = None
    subject: str = ''

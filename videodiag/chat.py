from __future__ import annotations

import logging
from typing import Any

import openai

from .adapters.llm import ChatClient, ChatClientConfig
from .config import Settings, get_settings
from .prompts.master_prompt import build_master_prompt
from .types import ChatReply, ChatRequest, TokenUsage


logger = logging.getLogger(__name__)

FINAL_REPORT_MARKER = 'FINALNI REPORT'
FINAL_REPORT_SECTIONS = ('SAŽETAK', 'DIJAGNOZA', 'AKCIONI PLAN')
IMAGE_DATA_URL_PREFIX = 'data:image/'


class ChatError(RuntimeError):
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def is_final_report(text: str) -> bool:
    if FINAL_REPORT_MARKER in text:
        return True
    return all(section in text for section in FINAL_REPORT_SECTIONS)


def build_user_content(text: str, images: list[str], detail: str = 'high') -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = []
    if text:
        content.append({'type': 'text', 'text': text})
    for image in images:
        content.append({'type': 'image_url', 'image_url': {'url': image, 'detail': detail}})
    return content


def build_messages(system_prompt: str, request: ChatRequest, detail: str = 'high') -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{'role': 'system', 'content': system_prompt}]
    for turn in request.session_messages:
        messages.append({'role': turn.role, 'content': turn.content})
    messages.append(
        {
            'role': 'user',
            'content': build_user_content(request.user_text, request.images, detail),
        }
    )
    return messages


def validate_chat_request(request: ChatRequest, settings: Settings) -> None:
    if not request.user_text.strip() and not request.images:
        raise ChatError('Please provide text or images', 400)
    if len(request.images) > int(settings.max_images_per_turn):
        raise ChatError(
            f'Too many images: {len(request.images)}, max allowed {int(settings.max_images_per_turn)}',
            400,
        )
    for image in request.images:
        if not image.startswith(IMAGE_DATA_URL_PREFIX):
            raise ChatError('Images must be base64 data URLs (data:image/...)', 400)


def _token_usage(usage: Any) -> TokenUsage | None:
    if usage is None:
        return None
    return TokenUsage(
        prompt_tokens=int(getattr(usage, 'prompt_tokens', 0) or 0),
        completion_tokens=int(getattr(usage, 'completion_tokens', 0) or 0),
        total_tokens=int(getattr(usage, 'total_tokens', 0) or 0),
    )


async def run_chat_turn(
    request: ChatRequest,
    *,
    settings: Settings | None = None,
    client: ChatClient | None = None,
) -> ChatReply:
    settings = settings or get_settings()

    owns_client = client is None
    if client is None:
        if not settings.openai_api_key:
            raise ChatError(
                'OpenAI API key not configured. Add OPENAI_API_KEY to your environment variables.',
                500,
            )
        client = ChatClient(ChatClientConfig.from_settings(settings))

    validate_chat_request(request, settings)
    messages = build_messages(build_master_prompt(settings), request, settings.image_detail)

    try:
        response = await client.complete(messages)
    except openai.APIStatusError as exc:
        raise ChatError(f'OpenAI API Error: {exc.message}', exc.status_code or 500) from exc
    except openai.APIError as exc:
        raise ChatError(f'OpenAI API Error: {exc.message}', 500) from exc
    finally:
        if owns_client:
            await client.aclose()

    choices = getattr(response, 'choices', None) or []
    text = ''
    if choices:
        text = getattr(choices[0].message, 'content', None) or ''

    reply = ChatReply(
        text=text,
        usage=_token_usage(getattr(response, 'usage', None)),
        final_report=is_final_report(text),
    )
    logger.info(
        'Chat turn completed: %s prior turns, %s images, %s chars, final_report=%s',
        len(request.session_messages),
        len(request.images),
        len(text),
        reply.final_report,
    )
    return reply

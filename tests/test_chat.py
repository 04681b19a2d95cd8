"""Tests for the diagnostic chat turn."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from videodiag.chat import (
    ChatError,
    build_messages,
    is_final_report,
    run_chat_turn,
)
from videodiag.prompts.master_prompt import build_master_prompt
from videodiag.types import ChatRequest


PNG = 'data:image/png;base64,iVBORw0KGgo='


class FakeClient:
    def __init__(self, text: str = 'Pošalji Reach screenshot.', error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls: list[list[dict]] = []

    async def complete(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.text))],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30, total_tokens=150),
        )

    async def aclose(self):
        pass


def make_request(**values) -> ChatRequest:
    return ChatRequest.model_validate(values)


def test_build_messages_order_and_image_parts():
    request = make_request(
        sessionMessages=[
            {'role': 'assistant', 'content': 'Zdravo'},
            {'role': 'user', 'content': 'Video o kafi'},
        ],
        userText='Evo Reach taba',
        images=[PNG],
    )
    messages = build_messages('SYSTEM', request)

    assert [m['role'] for m in messages] == ['system', 'assistant', 'user', 'user']
    assert messages[0]['content'] == 'SYSTEM'
    assert messages[-1]['content'] == [
        {'type': 'text', 'text': 'Evo Reach taba'},
        {'type': 'image_url', 'image_url': {'url': PNG, 'detail': 'high'}},
    ]


def test_image_only_turn_has_no_text_part():
    messages = build_messages('SYSTEM', make_request(images=[PNG]))
    assert [part['type'] for part in messages[-1]['content']] == ['image_url']


@pytest.mark.parametrize(
    'text, expected',
    [
        ('# FINALNI REPORT\n...', True),
        ('SAŽETAK ... DIJAGNOZA ... AKCIONI PLAN', True),
        ('SAŽETAK i DIJAGNOZA', False),
        ('Pošalji sledeći screenshot.', False),
    ],
)
def test_is_final_report(text, expected):
    assert is_final_report(text) is expected


def test_run_chat_turn_returns_reply(settings):
    client = FakeClient(text='## FINALNI REPORT\nSAŽETAK')
    reply = asyncio.run(run_chat_turn(make_request(userText='Hej'), settings=settings, client=client))

    assert reply.text == '## FINALNI REPORT\nSAŽETAK'
    assert reply.final_report is True
    assert reply.usage.total_tokens == 150
    assert reply.to_payload() == {
        'text': '## FINALNI REPORT\nSAŽETAK',
        'usage': {'prompt_tokens': 120, 'completion_tokens': 30, 'total_tokens': 150},
        'finalReport': True,
    }
    assert client.calls[0][0]['role'] == 'system'
    assert 'YouTube Video Diagnostic Analyst' in client.calls[0][0]['content']


def test_missing_api_key_is_server_error(settings_without_key):
    with pytest.raises(ChatError) as info:
        asyncio.run(run_chat_turn(make_request(userText='Hej'), settings=settings_without_key))
    assert info.value.status_code == 500
    assert 'OpenAI API key not configured' in info.value.message


@pytest.mark.parametrize(
    'values, message',
    [
        ({'userText': '   '}, 'Please provide text or images'),
        ({'images': [PNG] * 11}, 'Too many images'),
        ({'images': ['https://example.com/a.png']}, 'data URLs'),
    ],
)
def test_invalid_turns_are_rejected(settings, values, message):
    client = FakeClient()
    with pytest.raises(ChatError) as info:
        asyncio.run(run_chat_turn(make_request(**values), settings=settings, client=client))
    assert info.value.status_code == 400
    assert message in info.value.message
    assert client.calls == []


def test_upstream_status_is_propagated(settings):
    request = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')
    error = openai.RateLimitError(
        'Rate limit reached',
        response=httpx.Response(429, request=request),
        body=None,
    )
    with pytest.raises(ChatError) as info:
        asyncio.run(run_chat_turn(make_request(userText='Hej'), settings=settings, client=FakeClient(error=error)))
    assert info.value.status_code == 429
    assert info.value.message == 'OpenAI API Error: Rate limit reached'


def test_connection_error_is_500(settings):
    request = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')
    error = openai.APIConnectionError(request=request)
    with pytest.raises(ChatError) as info:
        asyncio.run(run_chat_turn(make_request(userText='Hej'), settings=settings, client=FakeClient(error=error)))
    assert info.value.status_code == 500
    assert info.value.message.startswith('OpenAI API Error:')


def test_master_prompt_bundled_and_override(settings, tmp_path):
    bundled = build_master_prompt(settings)
    assert 'FINALNI REPORT' in bundled
    assert 'PRIORITET 1' in bundled

    custom = tmp_path / 'prompt.md'
    custom.write_text('  Custom prompt\n', encoding='utf-8')
    override = settings.model_copy(update={'system_prompt_path': custom})
    assert build_master_prompt(override) == 'Custom prompt'

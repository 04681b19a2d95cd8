"""Tests for the Flask HTTP surface."""

from __future__ import annotations

import re

import pytest

from conftest import page_texts
from videodiag import server
from videodiag.chat import ChatError
from videodiag.server import create_app
from videodiag.types import ChatReply


def test_index_serves_chat_page(client):
    response = client.get('/')
    assert response.status_code == 200
    assert b'/api/analyze' in response.data


def test_chat_page_can_reset_and_roll_back_failed_turns(client):
    page = client.get('/').get_data(as_text=True)
    assert 'id="reset-btn"' in page
    assert 'resetConversation' in page
    assert 'id="error-close"' in page
    assert 'rollbackTurn(turn, text)' in page


def test_health(client):
    payload = client.get('/health').get_json()
    assert payload['status'] == 'healthy'
    assert payload['model'] == 'gpt-4o'
    assert payload['api_key_configured'] is True


def test_generate_pdf_returns_attachment(client):
    response = client.post(
        '/api/generate-pdf',
        json={
            'reportMarkdown': '# Title\n\nSome paragraph.',
            'title': 'Video Analyzer',
            'filename': 'analiza.pdf',
            'meta': {'channel': 'Kanal', 'createdAt': '2026-01-15'},
        },
    )

    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.headers['Content-Disposition'] == 'attachment; filename="analiza.pdf"'
    assert response.headers['Cache-Control'] == 'no-store'
    assert response.data.startswith(b'%PDF')

    texts = page_texts(response.data)
    assert len(texts) == 2
    assert 'Kanal' in texts[0]
    assert 'Some paragraph.' in texts[1]


def test_generate_pdf_tolerates_malformed_body(client):
    response = client.post('/api/generate-pdf', data='not json', content_type='application/json')
    assert response.status_code == 200
    assert re.search(
        r'filename="youtube-report-\d{4}-\d{2}-\d{2}\.pdf"',
        response.headers['Content-Disposition'],
    )
    assert len(page_texts(response.data)) == 2


def test_generate_pdf_failure_is_json(client, monkeypatch: pytest.MonkeyPatch):
    def broken_export(*args, **kwargs):
        raise RuntimeError('canvas gone')

    monkeypatch.setattr(server, 'export_report', broken_export)
    response = client.post('/api/generate-pdf', json={'content': 'x'})

    assert response.status_code == 500
    assert response.get_json() == {'ok': False, 'error': 'PDF generation failed', 'message': 'canvas gone'}


def test_analyze_success(client, monkeypatch: pytest.MonkeyPatch):
    seen = {}

    async def fake_turn(chat_request, *, settings=None):
        seen['request'] = chat_request
        return ChatReply(text='FINALNI REPORT', final_report=True)

    monkeypatch.setattr(server, 'run_chat_turn', fake_turn)
    response = client.post(
        '/api/analyze',
        json={'sessionMessages': [{'role': 'assistant', 'content': 'Zdravo'}], 'userText': 'Hej'},
    )

    assert response.status_code == 200
    assert response.get_json() == {'text': 'FINALNI REPORT', 'usage': None, 'finalReport': True}
    assert seen['request'].user_text == 'Hej'
    assert seen['request'].session_messages[0].content == 'Zdravo'


def test_analyze_chat_error_keeps_status(client, monkeypatch: pytest.MonkeyPatch):
    async def fake_turn(chat_request, *, settings=None):
        raise ChatError('OpenAI API Error: Rate limit reached', 429)

    monkeypatch.setattr(server, 'run_chat_turn', fake_turn)
    response = client.post('/api/analyze', json={'userText': 'Hej'})

    assert response.status_code == 429
    assert response.get_json() == {'error': 'OpenAI API Error: Rate limit reached'}


def test_analyze_unexpected_error_is_500(client, monkeypatch: pytest.MonkeyPatch):
    async def fake_turn(chat_request, *, settings=None):
        raise KeyError('boom')

    monkeypatch.setattr(server, 'run_chat_turn', fake_turn)
    response = client.post('/api/analyze', json={'userText': 'Hej'})

    assert response.status_code == 500
    assert response.get_json() == {'error': 'Internal server error'}


def test_analyze_rejects_non_object_json(client):
    response = client.post('/api/analyze', data='[1, 2]', content_type='application/json')
    assert response.status_code == 400
    assert response.get_json() == {'error': 'Invalid JSON request'}


def test_analyze_rejects_bad_roles(client):
    response = client.post(
        '/api/analyze',
        json={'sessionMessages': [{'role': 'system', 'content': 'x'}], 'userText': 'Hej'},
    )
    assert response.status_code == 400


def test_analyze_empty_turn_is_400(client):
    response = client.post('/api/analyze', json={'userText': '', 'images': []})
    assert response.status_code == 400
    assert response.get_json() == {'error': 'Please provide text or images'}


def test_analyze_without_key_is_500(settings_without_key):
    app = create_app(settings_without_key)
    response = app.test_client().post('/api/analyze', json={'userText': 'Hej'})
    assert response.status_code == 500
    assert 'OpenAI API key not configured' in response.get_json()['error']


def test_request_too_large(settings):
    app = create_app(settings.model_copy(update={'max_request_bytes': 64}))
    response = app.test_client().post('/api/generate-pdf', json={'content': 'x' * 500})
    assert response.status_code == 413
    assert response.get_json()['error'] == 'Request too large'

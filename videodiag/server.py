"""
Flask server for the YouTube video diagnostic chat
==================================================

Endpoints:
  - GET  /                   static chat page
  - GET  /health
  - POST /api/analyze        one chat turn (text + screenshots) against the model
  - POST /api/generate-pdf   render a markdown report as a PDF download
"""

from __future__ import annotations

import logging
import traceback
from pathlib import Path

from flask import Flask, Response, jsonify, request, send_from_directory
from flask_cors import CORS
from pydantic import ValidationError

from .chat import ChatError, run_chat_turn
from .config import Settings, get_settings
from .report.pdf_export import content_disposition, export_report
from .types import ChatRequest, PdfExportRequest


logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).with_name('static')


def create_app(settings: Settings | None = None) -> Flask:
    settings = settings or get_settings()

    app = Flask(__name__, static_folder=str(STATIC_DIR), static_url_path='/static')
    app.config['MAX_CONTENT_LENGTH'] = int(settings.max_request_bytes)
    app.config['VIDEODIAG_SETTINGS'] = settings
    CORS(app, resources={r'/api/*': {'origins': settings.cors_origin_list()}})

    # ----------------------------------------------------------------------- #
    # Routes
    # ----------------------------------------------------------------------- #

    @app.route('/', methods=['GET'])
    def index():
        return send_from_directory(STATIC_DIR, 'index.html')

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify(
            {
                'status': 'healthy',
                'service': settings.app_name,
                'model': settings.chat_model,
                'api_key_configured': bool(settings.openai_api_key),
            }
        )

    @app.route('/api/analyze', methods=['POST'])
    async def analyze():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'error': 'Invalid JSON request'}), 400

        try:
            chat_request = ChatRequest.model_validate(data)
        except ValidationError as e:
            return jsonify({'error': 'Invalid request', 'message': str(e)}), 400

        try:
            reply = await run_chat_turn(chat_request, settings=settings)
        except ChatError as e:
            logger.error('Chat turn failed (%s): %s', e.status_code, e.message)
            return jsonify({'error': e.message}), e.status_code
        except Exception as e:
            logger.error('Error in /api/analyze endpoint: %s', e)
            logger.error(traceback.format_exc())
            return jsonify({'error': 'Internal server error'}), 500

        return jsonify(reply.to_payload()), 200

    @app.route('/api/generate-pdf', methods=['POST'])
    def generate_pdf():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}

        try:
            exported = export_report(PdfExportRequest.model_validate(data), settings=settings)
        except Exception as e:
            logger.error('PDF generation error: %s', e)
            logger.error(traceback.format_exc())
            return jsonify({'ok': False, 'error': 'PDF generation failed', 'message': str(e)}), 500

        response = Response(exported.pdf, status=200, mimetype='application/pdf')
        response.headers['Content-Disposition'] = content_disposition(exported.filename)
        response.headers['Cache-Control'] = 'no-store'
        return response

    @app.errorhandler(413)
    def payload_too_large(_error):
        return (
            jsonify(
                {
                    'error': 'Request too large',
                    'message': f'Max request size is {int(settings.max_request_bytes)} bytes',
                }
            ),
            413,
        )

    return app

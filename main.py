from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import mimetypes
from pathlib import Path

from pydantic import ValidationError

from videodiag.chat import ChatError, run_chat_turn
from videodiag.config import get_settings
from videodiag.report.document import PdfGenerationError
from videodiag.report.pdf_export import build_metadata, markdown_file_to_pdf
from videodiag.types import ChatRequest, ReportMeta


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def _image_data_url(path: Path) -> str:
    mime = mimetypes.guess_type(path.name)[0] or 'image/png'
    encoded = base64.b64encode(path.read_bytes()).decode('ascii')
    return f'data:{mime};base64,{encoded}'


def cmd_serve(args: argparse.Namespace) -> int:
    from videodiag.server import create_app

    _configure_logging()
    settings = get_settings()
    host = args.host or settings.server_host
    port = int(args.port or settings.server_port)

    logger = logging.getLogger('videodiag.serve')
    logger.info('=' * 70)
    logger.info('Starting %s', settings.app_name)
    logger.info('Server: http://%s:%s (model=%s)', host, port, settings.chat_model)
    if not settings.openai_api_key:
        logger.warning('OPENAI_API_KEY is not set; /api/analyze will answer 500')
    logger.info('=' * 70)

    create_app(settings).run(host=host, port=port, debug=False, threaded=True)
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    settings = get_settings()
    markdown_path = Path(args.input).expanduser().resolve()
    if not markdown_path.exists() or not markdown_path.is_file():
        _print_json({'status': 'error', 'message': f'Report not found: {markdown_path}'})
        return 2

    output_path = Path(args.output).expanduser().resolve()
    metadata = build_metadata(
        title=args.title,
        subtitle=args.subtitle,
        meta=ReportMeta(
            channel=args.channel,
            video_title=args.video_title,
            period=args.period,
            created_at=args.created_at,
        ),
        settings=settings,
    )

    try:
        size = markdown_file_to_pdf(
            markdown_path=markdown_path,
            output_path=output_path,
            metadata=metadata,
            settings=settings,
        )
    except PdfGenerationError as exc:
        _print_json({'status': 'error', 'message': str(exc)})
        return 1

    _print_json({'status': 'ok', 'output_path': str(output_path), 'bytes': size})
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    images: list[str] = []
    for raw in args.image or []:
        path = Path(raw).expanduser().resolve()
        if not path.exists() or not path.is_file():
            _print_json({'status': 'error', 'message': f'Image not found: {path}'})
            return 2
        images.append(_image_data_url(path))

    history: list[dict] = []
    if args.history:
        history_path = Path(args.history).expanduser().resolve()
        try:
            history = json.loads(history_path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as exc:
            _print_json({'status': 'error', 'message': f'Cannot read history {history_path}: {exc}'})
            return 2

    try:
        chat_request = ChatRequest(sessionMessages=history, userText=args.text or '', images=images)
    except ValidationError as exc:
        _print_json({'status': 'error', 'message': f'Invalid history: {exc}'})
        return 2

    try:
        reply = asyncio.run(run_chat_turn(chat_request, settings=get_settings()))
    except ChatError as exc:
        _print_json({'status': 'error', 'status_code': exc.status_code, 'message': exc.message})
        return 1

    _print_json(reply.to_payload())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='YouTube video diagnostic chat and report export')
    sub = parser.add_subparsers(dest='command', required=True)

    serve = sub.add_parser('serve', help='Run the HTTP server')
    serve.add_argument('--host', required=False, help='Bind address override')
    serve.add_argument('--port', type=int, required=False, help='Port override')
    serve.set_defaults(func=cmd_serve)

    render = sub.add_parser('render', help='Render a markdown report to PDF')
    render.add_argument('--input', required=True, help='Path to the markdown report')
    render.add_argument('--output', required=True, help='Where to write the PDF')
    render.add_argument('--title', required=False)
    render.add_argument('--subtitle', required=False)
    render.add_argument('--channel', required=False)
    render.add_argument('--video-title', required=False)
    render.add_argument('--period', required=False)
    render.add_argument('--created-at', required=False, help='Date shown on the cover (YYYY-MM-DD)')
    render.set_defaults(func=cmd_render)

    analyze = sub.add_parser('analyze', help='Send one chat turn to the model')
    analyze.add_argument('--text', required=False, help='Message text')
    analyze.add_argument('--image', action='append', help='Screenshot path (repeatable)')
    analyze.add_argument('--history', required=False, help='JSON file with prior {role, content} turns')
    analyze.set_defaults(func=cmd_analyze)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())

from __future__ import annotations

import dataclasses

from flask import Blueprint, Response, current_app, jsonify, request

from ..config import RenderConfig
from ..gateways.attachment_gateway import AttachmentAuthFailure, AttachmentGateway, GatewayError, retrieve_attachment
from ..services.attachments import AttachmentUnresolvable, collect_attachments, format_file_size, resolve_attachment
from ..services.document_service import normalize_document
from ..services.renderer import render_document
from ..services.transforms import MedicationValidationError, prepare_medications_for_submission

bp = Blueprint('documents_api', __name__)


def _render_config() -> RenderConfig:
    return current_app.config.get('RENDER_CONFIG') or RenderConfig()


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _document_from(data: dict):
    return normalize_document(
        data.get('prescription'),
        data.get('testRequests'),
        data.get('patient'),
        config=_render_config(),
    )


@bp.route('/normalize', methods=['POST'])
def normalize():
    """Body: { prescription, testRequests, patient } -> canonical document JSON."""
    data = _body()
    return jsonify({'document': _document_from(data).to_dict()})


def _render(auto_print: bool) -> Response:
    data = _body()
    config = dataclasses.replace(_render_config(), auto_print=auto_print)
    html = render_document(
        _document_from(data),
        data.get('center'),
        data.get('patient'),
        config=config,
    )
    return Response(html, mimetype='text/html')


@bp.route('/render', methods=['POST'])
def render():
    return _render(auto_print=False)


@bp.route('/print', methods=['POST'])
def print_view():
    """Same markup as /render plus the load-time print trigger."""
    return _render(auto_print=True)


@bp.route('/medications/validate', methods=['POST'])
def validate_medications():
    data = _body()
    try:
        rows = prepare_medications_for_submission(data.get('medications'))
    except MedicationValidationError as e:
        return jsonify({'error': str(e), 'rows': e.rows}), 400
    return jsonify({'medications': rows})


# ----------------- Attachments -----------------

@bp.route('/attachments/list', methods=['POST'])
def list_attachments():
    data = _body()
    refs = collect_attachments(data.get('history'))
    items = []
    for ref in refs:
        item = ref.to_dict()
        item['label'] = ref.label
        item['sizeLabel'] = format_file_size(ref.size)
        items.append(item)
    return jsonify({'items': items})


@bp.route('/attachments/resolve', methods=['POST'])
def resolve():
    data = _body()
    try:
        location = resolve_attachment(data.get('reference'), backend_url=current_app.config['BACKEND_URL'])
    except AttachmentUnresolvable as e:
        return jsonify({'error': e.user_message}), 404
    return jsonify(location.to_dict())


@bp.route('/attachments/open', methods=['POST'])
def open_attachment():
    """Fetch an attachment for the caller, forwarding their bearer token."""
    data = _body()
    settings = current_app.config.get('HTTP_SETTINGS') or {}
    gateway = AttachmentGateway(
        current_app.config['BACKEND_URL'],
        token=request.headers.get('Authorization'),
        timeout=settings.get('timeout', 30),
        verify=settings.get('verify', True),
    )
    try:
        payload = retrieve_attachment(data.get('reference'), gateway)
    except AttachmentUnresolvable as e:
        return jsonify({'error': e.user_message}), 404
    except AttachmentAuthFailure as e:
        return jsonify({'error': e.user_message}), e.status
    except GatewayError as e:
        current_app.logger.warning("Attachment retrieval failed: %s", e)
        return jsonify({'error': 'Failed to open document. Please try again.'}), 502
    return Response(payload.content, content_type=payload.content_type)

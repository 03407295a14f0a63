from flask import Blueprint, jsonify

bp = Blueprint('general', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'})

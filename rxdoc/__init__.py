import logging
import os

from flask import Flask
from dotenv import load_dotenv


def create_app(overrides: dict | None = None):
    load_dotenv()

    from .config import backend_url, http_settings, load_render_config

    app = Flask(__name__)
    app.secret_key = os.getenv('FLASK_SECRET_KEY', 'dev-secret')

    level = os.getenv('RXDOC_LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    app.logger.setLevel(level)

    app.config['RENDER_CONFIG'] = load_render_config()
    app.config['BACKEND_URL'] = backend_url()
    app.config['HTTP_SETTINGS'] = http_settings()
    if overrides:
        app.config.update(overrides)

    from flask import request

    @app.after_request
    def _security_headers(resp):
        try:
            resp.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate'
            resp.headers['Pragma'] = 'no-cache'
            resp.headers['Expires'] = '0'
            resp.headers['Referrer-Policy'] = 'no-referrer'
            resp.headers['X-Content-Type-Options'] = 'nosniff'
            resp.headers['X-Frame-Options'] = 'SAMEORIGIN'
            resp.headers['Content-Security-Policy'] = " ".join([
                "default-src 'self';",
                "script-src 'self' 'unsafe-inline';",
                "style-src 'self' 'unsafe-inline';",
                "img-src 'self' data: https:;",
                "frame-ancestors 'self'",
            ])
        except Exception:
            app.logger.exception("Failed to set security headers for %s", request.path)
        return resp

    # Blueprints
    from .blueprints.general import bp as general_bp
    from .blueprints.documents import bp as documents_bp

    app.register_blueprint(general_bp)
    app.register_blueprint(documents_bp, url_prefix='/api/documents')

    app.logger.info("rxdoc app ready (backend %s)", app.config['BACKEND_URL'])
    return app

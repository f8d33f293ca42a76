"""
feedfy server - Flask app in front of the hosted backend.
"""

import os
import time

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from feedfy import config, routes
from feedfy.backend import HostedBackend
from feedfy.cache import QueryCache
from feedfy.context import get_backend, get_reporter, require_admin
from feedfy.errors import FeedfyError, BackendError
from feedfy.model import Model, Setting, LogEntry
from feedfy.realtime import ChangeFeed
from feedfy.reporting import ErrorReporter, log, handle_backend_error, report_exception


def default_backend_factory(app):
    def factory(token):
        return HostedBackend(app.config['SUPABASE_URL'], app.config['SUPABASE_ANON_KEY'], token,
                             timeout=app.config['REQUEST_TIMEOUT'])
    return factory


def default_service_backend_factory(app):
    def factory():
        key = app.config['SUPABASE_SERVICE_ROLE_KEY']
        return HostedBackend(app.config['SUPABASE_URL'], key, key, timeout=app.config['REQUEST_TIMEOUT'],
                             service_key=key)
    return factory


def _report_fields() -> dict:
    try:
        user = get_backend().auth.get_user()
    except BackendError:
        user = None
    return {
        'route': request.path,
        'user_id': user['id'] if user else None,
        'user_agent': request.headers.get('User-Agent'),
    }


# ============================================
# APP
# ============================================

def create_app(overrides: dict = None) -> Flask:
    app = Flask(__name__)
    app.config.update(config.as_dict())
    app.config.update(overrides or {})
    app.config.setdefault('BACKEND_FACTORY', default_backend_factory(app))
    app.config.setdefault('SERVICE_BACKEND_FACTORY', default_service_backend_factory(app))
    CORS(app)

    # Local store (settings, logs)
    db_path = app.config.get('DB_PATH')
    if not db_path:
        os.makedirs(app.config['DATA_DIR'], exist_ok=True)
        db_path = os.path.join(app.config['DATA_DIR'], 'feedfy.sqlite')
    Model.connect(db_path)
    LogEntry.update_table()
    Setting.register(app, guard=require_admin)

    app.extensions['feedfy'] = {
        'cache': QueryCache(app.config['QUERY_STALE_SECONDS'], app.config['CACHE_GC_SECONDS'],
                            app.config['CACHE_MAX_ENTRIES']),
        'feed': ChangeFeed(app.config['REALTIME_IDLE_SECONDS']),
        'reporter': ErrorReporter(app.config['ERROR_REPORT_COOLDOWN'], app.config['ERROR_REPORT_MAX_HASHES']),
    }
    routes.register_all(app)

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'ok'})

    # === Request log ===

    @app.before_request
    def start_timer():
        g.started = time.time()

    @app.after_request
    def log_request(response):
        if request.path.startswith('/api') and 'started' in g:
            ms = int((time.time() - g.started) * 1000)
            print(f"{request.method} {request.path} {response.status_code} in {ms}ms")
        return response

    # === Errors ===

    @app.errorhandler(FeedfyError)
    def on_feedfy_error(e: FeedfyError):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(BackendError)
    def on_backend_error(e: BackendError):
        handle_backend_error(get_reporter(), get_backend(), e,
                             {'endpoint': request.path, 'operation': request.method}, **_report_fields())
        log('error', 'backend', f'{request.method} {request.path}: {e.message}', e.to_dict())
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(Exception)
    def on_error(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description}), e.code
        report_exception(get_reporter(), get_backend(), e, **_report_fields())
        log('error', 'app', f'{request.method} {request.path}: {e}')
        return jsonify({'error': 'Internal server error'}), 500

    return app


# ============================================
# MAIN
# ============================================

def main():
    import argparse
    parser = argparse.ArgumentParser(description='feedfy server')
    parser.add_argument('--port', type=int, default=config.DEFAULT_PORT, help='Server port')
    parser.add_argument('--host', default='0.0.0.0', help='Bind address')
    parser.add_argument('--debug', action='store_true', help='Flask debug mode')
    args = parser.parse_args()

    app = create_app()
    print(f'Starting feedfy on http://localhost:{args.port}')
    print(f"Hosted backend: {app.config['SUPABASE_URL']}")
    print(f"Data directory: {app.config['DATA_DIR']}")
    app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)


if __name__ == '__main__':
    main()

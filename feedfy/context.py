"""
Per-request helpers for the route modules.

The caller's bearer token is forwarded to the hosted backend, so every
read and write runs under the caller's row-level security. Cached reads
are keyed per user (the last key element is the user id, or 'anon').
"""

from flask import current_app, g, request

from feedfy.errors import NotAuthenticated, PermissionDenied
from feedfy.services.profile import get_user_role


def bearer_token() -> str | None:
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def get_backend():
    """Hosted backend client acting as the caller (cached for the request)"""
    if 'backend' not in g:
        g.backend = current_app.config['BACKEND_FACTORY'](bearer_token())
    return g.backend


def get_service_backend():
    """Service-role client, for webhooks only"""
    if 'service_backend' not in g:
        g.service_backend = current_app.config['SERVICE_BACKEND_FACTORY']()
    return g.service_backend


def _extension(name: str):
    return current_app.extensions['feedfy'][name]


def get_cache():
    return _extension('cache')


def get_feed():
    return _extension('feed')


def get_reporter():
    return _extension('reporter')


# ============================================
# USER
# ============================================

def current_user() -> dict | None:
    return get_backend().auth.get_user()


def require_user() -> dict:
    user = current_user()
    if not user:
        raise NotAuthenticated()
    return user


def user_id() -> str:
    user = current_user()
    return user['id'] if user else 'anon'


def current_role() -> str | None:
    user = current_user()
    if not user:
        return None
    return get_cache().fetch(('user-role', user['id']), lambda: get_user_role(get_backend()),
                             stale_time=current_app.config['ROLE_STALE_SECONDS'])


def require_admin() -> dict:
    user = require_user()
    if current_role() != 'admin':
        raise PermissionDenied('Admin access required')
    return user


# ============================================
# CACHE
# ============================================

def user_key(name: str, *params) -> tuple:
    return (name, *(str(p) for p in params), user_id())


def cached(name: str, *params, fn, stale_time: float = None):
    """get_cache().fetch() under user_key(name, *params)"""
    return get_cache().fetch(user_key(name, *params), fn, stale_time=stale_time)


def invalidate(*keys: tuple):
    cache = get_cache()
    for key in keys:
        cache.invalidate(tuple(str(k) for k in key))


def json_body() -> dict:
    return request.get_json(silent=True) or {}

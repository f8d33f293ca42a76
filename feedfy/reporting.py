"""
Logging and error reporting.

log() writes to the local logs table; ErrorReporter sends sanitized error
reports to the hosted backend's error_reports table (deduplicated, with a
cooldown so a failing call does not flood the table).
"""

import json
import re
import threading
import time
import traceback
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from feedfy.errors import BackendError, status_for_code
from feedfy.model import LogEntry


def log(level: str, source: str, message: str, details=None):
    """Writes a log entry into the local database"""
    if details is not None and not isinstance(details, str):
        details = json.dumps(details, default=str)
    LogEntry({'level': level, 'source': source, 'message': message, 'details': details or ''}).save()
    if level in ('warning', 'error'):
        print(f"[{level.upper()}] {source}: {message}")


# ============================================
# SANITIZING
# ============================================

SENSITIVE_KEYS = [
    'password', 'token', 'secret', 'key', 'authorization', 'auth', 'cookie',
    'session', 'credential', 'apikey', 'api_key', 'access_token', 'refresh_token',
]

SENSITIVE_PATTERNS = [
    re.compile(r'''password\s*[:=]\s*['"]?[^'"]+['"]?''', re.I),
    re.compile(r'''token\s*[:=]\s*['"]?[^'"]+['"]?''', re.I),
    re.compile(r'''secret\s*[:=]\s*['"]?[^'"]+['"]?''', re.I),
    re.compile(r'''authorization\s*[:=]\s*['"]?[^'"]+['"]?''', re.I),
    re.compile(r'bearer\s+[\w-]+', re.I),
    re.compile(r'[\w-]+@[\w-]+\.[\w-]+'),
]

MAX_DEPTH = 5
MAX_STRING = 1000
MAX_ITEMS = 10
MAX_KEYS = 20


def sanitize(value: Any, depth: int = 0) -> Any:
    """Masks secrets and e-mails, truncates long strings and big containers"""
    if depth > MAX_DEPTH:
        return '[Max Depth Reached]'
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        if len(value) > MAX_STRING:
            value = value[:MAX_STRING] + '...[truncated]'
        for pattern in SENSITIVE_PATTERNS:
            value = pattern.sub('[REDACTED]', value)
        return value
    if isinstance(value, (list, tuple)):
        return [sanitize(item, depth + 1) for item in list(value)[:MAX_ITEMS]]
    if isinstance(value, dict):
        result = {}
        for key in list(value.keys())[:MAX_KEYS]:
            lower = str(key).lower()
            if any(s in lower for s in SENSITIVE_KEYS):
                result[key] = '[REDACTED]'
            else:
                result[key] = sanitize(value[key], depth + 1)
        return result
    return '[Unknown Type]'


def _to_base36(n: int) -> str:
    digits = '0123456789abcdefghijklmnopqrstuvwxyz'
    if n == 0:
        return '0'
    out = ''
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out


def error_hash(message: str, stack: str = None) -> str:
    """32-bit string hash of 'message|stack' (UTF-16 code units), base 36"""
    content = f"{message}|{stack or ''}".encode('utf-16-le')
    h = 0
    for i in range(0, len(content), 2):
        unit = content[i] | (content[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


# ============================================
# REPORTER
# ============================================

class ErrorReporter:
    def __init__(self, cooldown: float = 10, max_hashes: int = 100):
        self.cooldown = cooldown
        self.max_hashes = max_hashes
        self.reported: dict[str, float] = {}
        self._local = threading.local()
        self._lock = threading.Lock()

    def should_report(self, h: str) -> bool:
        last = self.reported.get(h)
        return last is None or time.time() - last > self.cooldown

    def mark_reported(self, h: str):
        with self._lock:
            self.reported[h] = time.time()
            if len(self.reported) > self.max_hashes:
                oldest = min(self.reported.items(), key=lambda item: item[1])[0]
                del self.reported[oldest]

    def build_payload(self, report: dict) -> dict:
        message = sanitize(report.get('message') or 'Unknown error')
        stack = sanitize(report['stack']) if report.get('stack') else None
        payload = {
            'type': report.get('type', 'runtime'),
            'message': message,
            'stack': stack,
            'route': report.get('route'),
            'user_id': report.get('user_id'),
            'user_role': report.get('user_role'),
            'user_agent': report.get('user_agent'),
            'context': sanitize(report['context']) if report.get('context') else {},
            'error_hash': error_hash(message, stack),
        }
        if report.get('api_endpoint'):
            payload['api_endpoint'] = sanitize(report['api_endpoint'])
        if report.get('api_method'):
            payload['api_method'] = report['api_method']
        if report.get('api_status'):
            payload['api_status'] = report['api_status']
        return payload

    def report(self, report: dict, backend) -> Optional[dict]:
        """Sends one report. Never raises; returns the stored payload or None."""
        if getattr(self._local, 'busy', False):
            return None
        if 'error_reports' in (report.get('api_endpoint') or ''):
            return None
        self._local.busy = True
        try:
            payload = self.build_payload(report)
            if not self.should_report(payload['error_hash']):
                return None
            try:
                backend.table('error_reports').insert(payload).execute()
            except BackendError as e:
                log('warning', 'error-reporter', f'Failed to report error: {e.message}')
                return None
            self.mark_reported(payload['error_hash'])
            return payload
        finally:
            self._local.busy = False


def report_exception(reporter: ErrorReporter, backend, error: BaseException, **fields) -> Optional[dict]:
    """Runtime error report with the formatted traceback as stack"""
    stack = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
    return reporter.report({'type': 'runtime', 'message': str(error) or type(error).__name__,
                            'stack': stack, **fields}, backend)


def handle_backend_error(reporter: ErrorReporter, backend, error: BackendError,
                         context: dict = None, **fields) -> Optional[dict]:
    """Reports a failed backend call with its mapped HTTP status"""
    context = context or {}
    return reporter.report({
        'type': 'api',
        'message': f'Supabase Error: {error.message}',
        'api_endpoint': context.get('endpoint') or context.get('table') or 'unknown',
        'api_method': context.get('operation') or 'unknown',
        'api_status': status_for_code(error.code) or error.status,
        'context': {
            'code': error.code,
            'details': error.details,
            'hint': error.hint,
            **context,
        },
        **fields,
    }, backend)


def safe_call(fn: Callable, reporter: ErrorReporter, backend, context: dict = None):
    """Runs fn(); a BackendError is reported and re-raised"""
    try:
        return fn()
    except BackendError as e:
        handle_backend_error(reporter, backend, e, context)
        raise


def report_http_failure(reporter: ErrorReporter, backend, response, ignore_host: str = None) -> Optional[dict]:
    """Reports an outgoing HTTP call that failed (status >= 400, except 401/403)"""
    url = response.url or ''
    method = response.request.method if response.request is not None else 'GET'
    if response.status_code < 400 or response.status_code in (401, 403):
        return None
    if 'error_reports' in url:
        return None
    if ignore_host and urlparse(url).netloc == urlparse(ignore_host).netloc:
        return None
    body = None
    if 'application/json' in response.headers.get('content-type', ''):
        try:
            body = response.json()
        except ValueError:
            body = None
    elif response.text:
        body = {'raw': response.text[:500]}
    return reporter.report({
        'type': 'api',
        'message': f'HTTP {response.status_code} {response.reason or ""}'.strip(),
        'api_endpoint': url,
        'api_method': method,
        'api_status': response.status_code,
        'context': {
            'statusText': response.reason,
            'headers': sanitize(dict(response.headers)),
            'body': sanitize(body) if body else None,
        },
    }, backend)

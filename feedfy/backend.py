"""
Hosted backend client.

Thin HTTP client for the hosted database platform: PostgREST tables
(/rest/v1), auth (/auth/v1), object storage (/storage/v1) and edge
functions (/functions/v1). Queries are built as plain objects and only
translated to HTTP in HostedBackend.execute(), so tests can run the same
Query objects against an in-memory backend.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

import requests

from feedfy.errors import BackendError

SINGLE_ACCEPT = 'application/vnd.pgrst.object+json'


@dataclass
class Result:
    data: Any = None
    count: Optional[int] = None


class Query:
    """Chainable table query. Nothing is sent until execute()."""

    def __init__(self, backend, table: str):
        self.backend = backend
        self.table = table
        self.method = 'select'      # select | insert | update | upsert | delete
        self.columns = '*'
        self.payload = None
        self.returning = False
        self.on_conflict = None
        self.filters: list[tuple[str, str, Any]] = []
        self.ors: list[str] = []
        self.orders: list[tuple[str, bool, Optional[bool]]] = []
        self.limit_count: Optional[int] = None
        self.single_mode: Optional[str] = None   # single | maybe
        self.count_mode: Optional[str] = None
        self.head = False

    # ---- verbs ----
    def select(self, columns: str = '*', count: str = None, head: bool = False) -> 'Query':
        self.columns = ''.join(columns.split())
        if self.method == 'select':
            self.count_mode = count
            self.head = head
        else:
            self.returning = True
        return self

    def insert(self, rows) -> 'Query':
        self.method = 'insert'
        self.payload = rows
        return self

    def update(self, values: dict) -> 'Query':
        self.method = 'update'
        self.payload = values
        return self

    def upsert(self, rows, on_conflict: str = None) -> 'Query':
        self.method = 'upsert'
        self.payload = rows
        self.on_conflict = on_conflict
        return self

    def delete(self) -> 'Query':
        self.method = 'delete'
        return self

    # ---- filters ----
    def _filter(self, column: str, op: str, value) -> 'Query':
        self.filters.append((column, op, value))
        return self

    def eq(self, column, value): return self._filter(column, 'eq', value)
    def neq(self, column, value): return self._filter(column, 'neq', value)
    def gt(self, column, value): return self._filter(column, 'gt', value)
    def gte(self, column, value): return self._filter(column, 'gte', value)
    def lt(self, column, value): return self._filter(column, 'lt', value)
    def lte(self, column, value): return self._filter(column, 'lte', value)
    def in_(self, column, values): return self._filter(column, 'in', list(values))
    def ilike(self, column, pattern): return self._filter(column, 'ilike', pattern)
    def is_(self, column, value): return self._filter(column, 'is', value)

    def not_(self, column: str, op: str, value) -> 'Query':
        return self._filter(column, f'not.{op}', value)

    def or_(self, expr: str) -> 'Query':
        """PostgREST or-expression, e.g. 'name.ilike.%a%,email.ilike.%a%'."""
        self.ors.append(expr)
        return self

    def ilike_any(self, columns, text: str) -> 'Query':
        """Rows where any of `columns` contains `text`, case-insensitive. The text is quoted."""
        pattern = _quote(f'%{text}%', always=True)
        return self.or_(','.join(f'{column}.ilike.{pattern}' for column in columns))

    # ---- modifiers ----
    def order(self, column: str, ascending: bool = True, nulls_first: bool = None) -> 'Query':
        self.orders.append((column, ascending, nulls_first))
        return self

    def limit(self, n: int) -> 'Query':
        self.limit_count = n
        return self

    def single(self) -> 'Query':
        self.single_mode = 'single'
        return self

    def maybe_single(self) -> 'Query':
        self.single_mode = 'maybe'
        return self

    def execute(self) -> Result:
        return self.backend.execute(self)

    # ---- HTTP translation ----
    def params(self) -> list[tuple[str, str]]:
        params = []
        if self.method == 'select' or self.returning:
            params.append(('select', self.columns))
        for column, op, value in self.filters:
            params.append((column, f'{op}.{encode_value(op, value)}'))
        for expr in self.ors:
            params.append(('or', f'({expr})'))
        if self.orders:
            parts = []
            for column, ascending, nulls_first in self.orders:
                part = f"{column}.{'asc' if ascending else 'desc'}"
                if nulls_first is not None:
                    part += '.nullsfirst' if nulls_first else '.nullslast'
                parts.append(part)
            params.append(('order', ','.join(parts)))
        if self.limit_count is not None:
            params.append(('limit', str(self.limit_count)))
        if self.method == 'upsert' and self.on_conflict:
            params.append(('on_conflict', self.on_conflict))
        return params

    def headers(self) -> dict:
        prefer = []
        if self.method != 'select':
            prefer.append('return=representation' if self.returning else 'return=minimal')
        if self.method == 'upsert':
            prefer.append('resolution=merge-duplicates')
        if self.count_mode:
            prefer.append(f'count={self.count_mode}')
        headers = {}
        if prefer:
            headers['Prefer'] = ','.join(prefer)
        if self.single_mode == 'single':
            headers['Accept'] = SINGLE_ACCEPT
        return headers

    def http_method(self) -> str:
        if self.method == 'select':
            return 'HEAD' if self.head else 'GET'
        return {'insert': 'POST', 'upsert': 'POST', 'update': 'PATCH', 'delete': 'DELETE'}[self.method]


def encode_value(op: str, value) -> str:
    if op.endswith('in'):
        return '(' + ','.join(_quote(v) for v in value) + ')'
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _quote(value, always: bool = False) -> str:
    text = str(value)
    if always or any(c in text for c in ',()"\\'):
        return '"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"'
    return text


def parse_content_range(value: str) -> Optional[int]:
    """'0-9/42' or '*/42' -> 42"""
    if not value or '/' not in value:
        return None
    total = value.split('/')[-1]
    return int(total) if total.isdigit() else None


def error_from_response(response: requests.Response) -> BackendError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get('message') or body.get('msg') or body.get('error_description') \
        or body.get('error') or response.text or f'HTTP {response.status_code}'
    code = body.get('code')
    return BackendError(str(message), code=str(code) if code is not None else None,
                        details=body.get('details'), hint=body.get('hint'),
                        status=response.status_code)


# =============================================================================
# Client
# =============================================================================

class HostedBackend:
    def __init__(self, url: str, api_key: str, access_token: str = None, timeout: int = 10,
                 service_key: str = None):
        self.url = url.rstrip('/')
        self.api_key = api_key
        self.access_token = access_token
        self.service_key = service_key
        self.timeout = timeout
        self.session = requests.Session()
        self.auth = AuthClient(self)
        self.storage = StorageClient(self)
        self.functions = FunctionsClient(self)

    def table(self, name: str) -> Query:
        return Query(self, name)

    def base_headers(self, service: bool = False) -> dict:
        key = self.service_key if service and self.service_key else self.api_key
        token = key if service else (self.access_token or self.api_key)
        return {'apikey': key, 'Authorization': f'Bearer {token}'}

    def request(self, method: str, path: str, service: bool = False, headers: dict = None,
                **kwargs) -> requests.Response:
        all_headers = self.base_headers(service)
        all_headers.update(headers or {})
        try:
            response = self.session.request(method, f'{self.url}{path}', headers=all_headers,
                                            timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            raise BackendError('Backend request timed out', code='timeout', status=504)
        except requests.exceptions.ConnectionError:
            raise BackendError('Backend not reachable', code='connection', status=502)
        if response.status_code >= 400:
            raise error_from_response(response)
        return response

    def execute(self, query: Query) -> Result:
        headers = query.headers()
        body = None
        if query.method in ('insert', 'upsert', 'update'):
            headers['Content-Type'] = 'application/json'
            body = json.dumps(query.payload)
        response = self.request(query.http_method(), f'/rest/v1/{query.table}',
                                headers=headers, params=query.params(), data=body)
        count = parse_content_range(response.headers.get('Content-Range'))
        if query.head or not response.content:
            data = None
        else:
            data = response.json()
        if query.single_mode == 'maybe':
            rows = data or []
            if len(rows) > 1:
                raise BackendError('Multiple rows returned', code='PGRST116', status=406)
            data = rows[0] if rows else None
        return Result(data=data, count=count)


class AuthClient:
    def __init__(self, backend: HostedBackend):
        self.backend = backend
        self._user = None
        self._loaded = False

    def get_user(self) -> Optional[dict]:
        """The user behind the access token, or None (cached per client)."""
        if self._loaded:
            return self._user
        self._loaded = True
        if not self.backend.access_token:
            return None
        try:
            self._user = self.backend.request('GET', '/auth/v1/user').json()
        except BackendError as e:
            if e.status not in (401, 403):
                raise
            self._user = None
        return self._user

    def sign_in_with_password(self, email: str, password: str) -> dict:
        session = self.backend.request('POST', '/auth/v1/token', params={'grant_type': 'password'},
                                       json={'email': email, 'password': password}).json()
        self.backend.access_token = session.get('access_token')
        self._user = session.get('user')
        self._loaded = True
        return session

    def update_user(self, data: dict) -> dict:
        user = self.backend.request('PUT', '/auth/v1/user', json={'data': data}).json()
        self._user = user
        return user

    def admin_create_user(self, email: str, password: str, user_metadata: dict = None,
                          email_confirm: bool = True) -> dict:
        return self.backend.request('POST', '/auth/v1/admin/users', service=True, json={
            'email': email,
            'password': password,
            'email_confirm': email_confirm,
            'user_metadata': user_metadata or {},
        }).json()


class StorageClient:
    def __init__(self, backend: HostedBackend):
        self.backend = backend

    def list_buckets(self) -> list[dict]:
        return self.backend.request('GET', '/storage/v1/bucket').json()

    def create_bucket(self, name: str, public: bool = True, file_size_limit: int = None) -> dict:
        body = {'id': name, 'name': name, 'public': public}
        if file_size_limit:
            body['file_size_limit'] = file_size_limit
        return self.backend.request('POST', '/storage/v1/bucket', json=body).json()

    def upload(self, bucket: str, path: str, content: bytes, content_type: str = None,
               cache_control: str = '3600', upsert: bool = False) -> dict:
        headers = {'cache-control': f'max-age={cache_control}', 'x-upsert': 'true' if upsert else 'false'}
        if content_type:
            headers['Content-Type'] = content_type
        return self.backend.request('POST', f'/storage/v1/object/{bucket}/{path}',
                                    headers=headers, data=content).json()

    def get_public_url(self, bucket: str, path: str) -> str:
        return f'{self.backend.url}/storage/v1/object/public/{bucket}/{path}'

    def remove(self, bucket: str, paths: list[str]) -> list:
        return self.backend.request('DELETE', f'/storage/v1/object/{bucket}',
                                    json={'prefixes': paths}).json()


class FunctionsClient:
    def __init__(self, backend: HostedBackend):
        self.backend = backend

    def invoke(self, name: str, params: dict = None):
        return self.backend.request('GET', f'/functions/v1/{name}', params=params).json()

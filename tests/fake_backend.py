"""
In-memory stand-in for the hosted backend.

Runs the same Query objects the services build (filters, or-expressions,
ordering, embeds like users!user_id(...), single/maybe_single, counts)
against plain lists of dicts. No row-level security.
"""
import re
import uuid
from datetime import datetime, timedelta, timezone

from feedfy.backend import Query, Result
from feedfy.errors import BackendError

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Unique constraints -> 23505
UNIQUE = {
    'post_reports': [('post_id', 'reporter_id')],
    'community_members': [('community_id', 'user_id')],
    'enrollments': [('user_id', 'course_id')],
    'hotmart_purchases': [('hotmart_transaction_id',)],
    'hotmart_products': [('hotmart_product_id',)],
    'lesson_progress': [('user_id', 'lesson_id')],
    'user_follows': [('follower_id', 'following_id')],
    'saved_posts': [('user_id', 'post_id')],
    'poll_votes': [('poll_id', 'option_id', 'user_id')],
    'post_reactions': [('post_id', 'user_id')],
    'comment_reactions': [('comment_id', 'user_id')],
    'communities': [('slug',)],
}

# Column defaults the database would fill in
DEFAULTS = {
    'users': {'role': 'student', 'avatar_url': None, 'name': None},
    'posts': {'pinned': False, 'title': None},
    'comments': {'parent_id': None},
    'messages': {'is_deleted': False},
    'notifications': {'is_read': False},
    'post_reports': {'status': 'pending', 'description': None},
    'announcements': {'is_active': True},
    'course_unlock_pages': {'is_active': True},
    'conversations_participants': {'last_read_at': None, 'is_admin': False},
    'course_invites': {'accepted_at': None, 'expires_at': None},
    'community_invites': {'used_at': None},
    'courses': {'order': None, 'is_locked': False},
    'hotmart_purchases': {'processed_at': None, 'user_id': None, 'course_id': None},
}


def singular(table: str) -> str:
    if table.endswith('ies'):
        return table[:-3] + 'y'
    return table[:-1] if table.endswith('s') else table


def split_top(text: str) -> list[str]:
    """'a,b(c,d),"e,f"' -> ['a', 'b(c,d)', '"e,f"']"""
    parts, depth, current = [], 0, ''
    quoted = escaped = False
    for ch in text:
        if quoted:
            current += ch
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                quoted = False
            continue
        if ch == ',' and depth == 0:
            parts.append(current)
            current = ''
            continue
        quoted = ch == '"'
        depth += ch == '('
        depth -= ch == ')'
        current += ch
    if current:
        parts.append(current)
    return parts


def unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return re.sub(r'\\(.)', r'\1', value[1:-1])
    return value


EMBED_RE = re.compile(r'^(?:(?P<alias>\w+):)?(?P<table>\w+)(?:!(?P<hint>\w+))?\((?P<fields>.*)\)$')


def _eq(a, b) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return str(a).lower() == str(b).lower()
    return str(a) == str(b)


def typed(row: dict) -> dict:
    """Numeric ids arrive as strings from URLs; the database stores integers"""
    return {k: int(v) if (k == 'id' or k.endswith('_id')) and isinstance(v, str) and v.isdigit() else v
            for k, v in row.items()}


def _cmp_value(v):
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return (0, v, '')
    return (1, 0, str(v))


def _like(value, pattern: str) -> bool:
    if value is None:
        return False
    regex = '^' + '.*'.join(re.escape(p) for p in pattern.split('%')) + '$'
    return re.match(regex, str(value), re.I | re.S) is not None


def match(row: dict, column: str, op: str, value) -> bool:
    if op.startswith('not.'):
        return not match(row, column, op[4:], value)
    actual = row.get(column)
    if op == 'eq':
        return actual is not None and _eq(actual, value)
    if op == 'neq':
        return actual is not None and not _eq(actual, value)
    if op == 'in':
        return any(_eq(actual, v) for v in value)
    if op == 'is':
        if value is None or value == 'null':
            return actual is None
        return _eq(actual, value)
    if op in ('like', 'ilike'):
        return _like(actual, value)
    if actual is None:
        return False
    a, b = _cmp_value(actual), _cmp_value(value)
    return {'gt': a > b, 'gte': a >= b, 'lt': a < b, 'lte': a <= b}[op]


def parse_or(expr: str) -> list[tuple]:
    """Fails like PostgREST when an unquoted value holds ',', '(' or ')'"""
    conditions = []
    for part in split_top(expr):
        pieces = part.split('.', 2)
        if len(pieces) != 3 or (not pieces[2].startswith('"') and any(c in pieces[2] for c in '()')):
            raise BackendError(f'"failed to parse logic tree (({expr}))"', code='PGRST100', status=400)
        column, op, value = pieces
        conditions.append((column, op, unquote(value)))
    return conditions


def match_or(row: dict, conditions: list[tuple]) -> bool:
    return any(match(row, column, op, value) for column, op, value in conditions)


def sort_rows(rows: list[dict], orders) -> list[dict]:
    for column, ascending, nulls_first in reversed(orders):
        if nulls_first is None:
            nulls_first = not ascending
        present = [r for r in rows if r.get(column) is not None]
        missing = [r for r in rows if r.get(column) is None]
        present.sort(key=lambda r: _cmp_value(r[column]), reverse=not ascending)
        rows = missing + present if nulls_first else present + missing
    return rows


class FakeDatabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.ids: dict[str, int] = {}
        self.tokens: dict[str, dict] = {}
        self.auth_users: dict[str, dict] = {}
        self.metadata_updates: list[dict] = []
        self.fail: dict[tuple, BackendError] = {}
        self.queries: list[Query] = []
        self.clock = 0

    def now(self) -> str:
        self.clock += 1
        return (BASE_TIME + timedelta(seconds=self.clock)).isoformat()

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    def insert_row(self, table: str, row: dict) -> dict:
        row = {**DEFAULTS.get(table, {}), **typed(row)}
        if row.get('id') is None:
            self.ids[table] = self.ids.get(table, 0) + 1
            row['id'] = self.ids[table]
        row.setdefault('created_at', self.now())
        for columns in UNIQUE.get(table, []):
            for existing in self.rows(table):
                if all(_eq(existing.get(c), row.get(c)) for c in columns):
                    raise BackendError(f'duplicate key value violates unique constraint on {table}',
                                       code='23505', status=409)
        self.rows(table).append(row)
        return row

    # ---- projection ----
    def project(self, table: str, row: dict, columns: str) -> dict:
        items = split_top(columns or '*')
        out = dict(row) if '*' in items else {}
        for item in items:
            if item == '*':
                continue
            m = EMBED_RE.match(item)
            if not m:
                out[item] = row.get(item)
                continue
            target, hint, fields = m.group('table'), m.group('hint'), m.group('fields')
            key = m.group('alias') or target
            fk = hint or (singular(target) + '_id')
            if fk in row:
                ref = next((r for r in self.rows(target) if _eq(r.get('id'), row.get(fk))), None)
                out[key] = self.project(target, ref, fields) if ref else None
            else:
                back = hint or (singular(table) + '_id')
                out[key] = [self.project(target, r, fields) for r in self.rows(target) if _eq(r.get(back), row.get('id'))]
        return out

    # ---- execution ----
    def execute(self, query: Query) -> Result:
        self.queries.append(query)
        failure = self.fail.get((query.table, query.method))
        if failure:
            raise failure
        ors = [parse_or(expr) for expr in query.ors]
        rows = self.rows(query.table)
        matched = [r for r in rows
                   if all(match(r, c, op, v) for c, op, v in query.filters)
                   and all(match_or(r, conditions) for conditions in ors)]

        if query.method == 'select':
            data = sort_rows(matched, query.orders)
            count = len(data) if query.count_mode else None
            if query.limit_count is not None:
                data = data[:query.limit_count]
            data = [self.project(query.table, r, query.columns) for r in data]
            if query.head:
                return Result(data=None, count=count)
            return self._single(query, data, count)

        if query.method == 'insert':
            payload = query.payload if isinstance(query.payload, list) else [query.payload]
            changed = [self.insert_row(query.table, dict(p)) for p in payload]
        elif query.method == 'upsert':
            payload = query.payload if isinstance(query.payload, list) else [query.payload]
            keys = (query.on_conflict or 'id').split(',')
            changed = []
            for p in payload:
                existing = next((r for r in rows if all(_eq(r.get(k), p.get(k)) for k in keys)), None)
                if existing:
                    existing.update(typed(p))
                    changed.append(existing)
                else:
                    changed.append(self.insert_row(query.table, dict(p)))
        elif query.method == 'update':
            for r in matched:
                r.update(typed(query.payload))
            changed = matched
        else:
            self.tables[query.table] = [r for r in rows if r not in matched]
            changed = matched

        if not query.returning:
            return Result(data=None)
        data = [self.project(query.table, r, query.columns) for r in changed]
        return self._single(query, data, None)

    @staticmethod
    def _single(query: Query, data: list, count) -> Result:
        if query.single_mode == 'single':
            if len(data) != 1:
                raise BackendError('JSON object requested, multiple (or no) rows returned',
                                   code='PGRST116', status=406)
            return Result(data=data[0], count=count)
        if query.single_mode == 'maybe':
            if len(data) > 1:
                raise BackendError('Multiple rows returned', code='PGRST116', status=406)
            return Result(data=data[0] if data else None, count=count)
        return Result(data=data, count=count)


class FakeAuth:
    def __init__(self, backend: 'FakeBackend'):
        self.backend = backend

    def get_user(self):
        return self.backend.db.tokens.get(self.backend.access_token)

    def update_user(self, data: dict) -> dict:
        user = self.get_user()
        if not user:
            raise BackendError('Auth session missing', status=401)
        self.backend.db.metadata_updates.append(data)
        return {**user, 'user_metadata': data}

    def admin_create_user(self, email: str, password: str, user_metadata: dict = None,
                          email_confirm: bool = True) -> dict:
        db = self.backend.db
        if any(u['email'] == email for u in db.auth_users.values()):
            raise BackendError('A user with this email address has already been registered', status=422)
        user = {'id': str(uuid.uuid4()), 'email': email, 'user_metadata': user_metadata or {},
                'password': password, 'email_confirmed': email_confirm}
        db.auth_users[user['id']] = user
        return user


class FakeStorage:
    def __init__(self):
        self.buckets: list[dict] = []
        self.objects: dict[str, bytes] = {}
        self.allow_create = True

    def list_buckets(self):
        return list(self.buckets)

    def create_bucket(self, name: str, public: bool = True, file_size_limit: int = None):
        if self.allow_create:
            self.buckets.append({'id': name, 'name': name, 'public': public, 'file_size_limit': file_size_limit})
        return {'name': name}

    def upload(self, bucket: str, path: str, content: bytes, content_type: str = None,
               cache_control: str = '3600', upsert: bool = False):
        if not any(b['name'] == bucket for b in self.buckets):
            raise BackendError('Bucket not found', status=404)
        self.objects[f'{bucket}/{path}'] = content
        return {'Key': f'{bucket}/{path}'}

    def get_public_url(self, bucket: str, path: str) -> str:
        return f'http://backend.test/storage/v1/object/public/{bucket}/{path}'

    def remove(self, bucket: str, paths: list[str]):
        removed = [p for p in paths if self.objects.pop(f'{bucket}/{p}', None) is not None]
        return [{'name': p} for p in removed]


class FakeFunctions:
    def __init__(self):
        self.handlers = {}

    def invoke(self, name: str, params: dict = None):
        if name not in self.handlers:
            raise BackendError(f'Function {name} not found', status=404)
        return self.handlers[name](params or {})


class FakeBackend:
    """Same surface as HostedBackend: table(), execute(), auth, storage, functions"""

    def __init__(self, db: FakeDatabase, access_token: str = None, storage: FakeStorage = None,
                 functions: FakeFunctions = None):
        self.db = db
        self.access_token = access_token
        self.auth = FakeAuth(self)
        self.storage = storage or FakeStorage()
        self.functions = functions or FakeFunctions()

    def table(self, name: str) -> Query:
        return Query(self, name)

    def execute(self, query: Query) -> Result:
        return self.db.execute(query)

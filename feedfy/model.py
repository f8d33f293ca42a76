import sqlite3
import time
from typing import TypeVar, Type, Any, get_type_hints
from flask import request, jsonify

T = TypeVar('T')
_conn: sqlite3.Connection = None
_db_path: str = None


class Model:
    """
        Local instance store (SQLite). Domain data lives in the hosted backend;
        only instance settings and logs are kept here.

        GET    /api/setting      → JSON array
        GET    /api/setting/5    → JSON object
        POST   /api/setting      → create
        PUT    /api/setting/5    → update
        DELETE /api/setting/5    → delete
    """
    id: int = None
    created_at: int = 0
    updated_at: int = 0

    def __init__(self, data: dict[str, Any] = None):
        if data:
            for k, v in data.items():
                if hasattr(self, k): setattr(self, k, v)

    def to_dict(self) -> dict:
        return {k: getattr(self, k) for k in self._props(self.__class__)}

    # =========================================================================
    # Database
    # =========================================================================
    @staticmethod
    def connect(db_path: str = None) -> sqlite3.Connection:
        global _conn, _db_path
        if db_path and _conn is not None and db_path != _db_path:
            Model.close()
        if _conn is None:
            _db_path = db_path or 'feedfy.sqlite'
            _conn = sqlite3.connect(_db_path, check_same_thread=False)
            _conn.row_factory = lambda c, r: dict(zip([col[0] for col in c.description], r))
        return _conn

    @staticmethod
    def close() -> None:
        global _conn, _db_path
        if _conn is not None:
            _conn.close()
        _conn = None
        _db_path = None

    @staticmethod
    def _props(cls: type) -> dict[str, str]:
        props = {}
        hints = get_type_hints(cls) if hasattr(cls, '__annotations__') else {}
        for name, typ in hints.items():
            if name.startswith('_'): continue
            sql_type = 'TEXT'
            if typ == int: sql_type = 'INTEGER'
            elif typ == float: sql_type = 'REAL'
            props[name] = sql_type
        return props

    @classmethod
    def get_tablename(cls) -> str: return cls.__name__.lower()

    @classmethod
    def update_table(cls) -> None:
        table = cls.get_tablename()
        props = Model._props(cls)
        conn = Model.connect()
        cols = [f"{n} {t}" + (' PRIMARY KEY AUTOINCREMENT' if n == 'id' else '') for n, t in props.items()]
        conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(cols)})")
        existing = {row['name'] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
        for name, typ in props.items():
            if name not in existing:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {typ}")
        conn.commit()

    def save(self) -> None:
        cls = self.__class__
        table = cls.get_tablename()
        props = Model._props(cls)
        data = {k: getattr(self, k) for k in props if k != 'id'}
        conn = Model.connect()
        if self.id is None:
            self.created_at = int(time.time())
            data['created_at'] = self.created_at
            cols = ', '.join(data.keys())
            placeholders = ', '.join(['?'] * len(data))
            cur = conn.execute(f"INSERT INTO {table} ({cols}) VALUES ({placeholders})", list(data.values()))
            self.id = cur.lastrowid
        else:
            self.updated_at = int(time.time())
            data['updated_at'] = self.updated_at
            sets = ', '.join([f"{k} = ?" for k in data.keys()])
            conn.execute(f"UPDATE {table} SET {sets} WHERE id = ?", list(data.values()) + [self.id])
        conn.commit()

    def delete(self) -> None:
        conn = Model.connect()
        conn.execute(f"DELETE FROM {self.get_tablename()} WHERE id = ?", [self.id])
        conn.commit()

    @classmethod
    def by_id(cls: Type[T], id: int) -> T | None:
        row = Model.connect().execute(f"SELECT * FROM {cls.get_tablename()} WHERE id = ?", [id]).fetchone()
        return cls(row) if row else None

    @classmethod
    def all(cls: Type[T], order: str = 'id DESC') -> list[T]:
        return cls.get_list(f"SELECT * FROM {cls.get_tablename()} ORDER BY {order}")

    @classmethod
    def get_list(cls: Type[T], sql: str, args: list = None) -> list[T]:
        rows = Model.connect().execute(sql, args or []).fetchall()
        return [cls(row) for row in rows]

    @classmethod
    def count(cls, where: str = '1=1', args: list = None) -> int:
        row = Model.connect().execute(f"SELECT COUNT(*) as c FROM {cls.get_tablename()} WHERE {where}", args or []).fetchone()
        return row['c']

    @classmethod
    def delete_all(cls) -> None:
        conn = Model.connect()
        conn.execute(f"DELETE FROM {cls.get_tablename()}")
        conn.commit()

    # =========================================================================
    # API Routes - register with Flask app
    # =========================================================================
    @classmethod
    def register(cls, app, guard=None):
        """Generic CRUD routes. `guard` runs before every request (raise to deny)."""
        name = cls.get_tablename()
        cls.update_table()

        def check():
            if guard: guard()

        @app.route(f'/api/{name}', methods=['GET'], endpoint=f'{name}_all')
        def get_all():
            check()
            return jsonify([x.to_dict() for x in cls.all()])

        @app.route(f'/api/{name}/<int:id>', methods=['GET'], endpoint=f'{name}_one')
        def get_one(id):
            check()
            obj = cls.by_id(id)
            return jsonify(obj.to_dict()) if obj else (jsonify({'error': 'Not found'}), 404)

        @app.route(f'/api/{name}', methods=['POST'], endpoint=f'{name}_create')
        def create():
            check()
            obj = cls(request.json)
            obj.id = None
            obj.save()
            return jsonify(obj.to_dict()), 201

        @app.route(f'/api/{name}/<int:id>', methods=['PUT'], endpoint=f'{name}_update')
        def update(id):
            check()
            obj = cls.by_id(id)
            if not obj: return jsonify({'error': 'Not found'}), 404
            for k, v in (request.json or {}).items():
                if k != 'id' and hasattr(obj, k): setattr(obj, k, v)
            obj.save()
            return jsonify(obj.to_dict())

        @app.route(f'/api/{name}/<int:id>', methods=['DELETE'], endpoint=f'{name}_delete')
        def delete(id):
            check()
            obj = cls.by_id(id)
            if not obj: return jsonify({'error': 'Not found'}), 404
            obj.delete()
            return '', 204


class Setting(Model):
    """Instance settings (default_community, color_preset, ...)."""
    key: str = ""
    value: str = ""
    description: str = ""

    @classmethod
    def get_by_key(cls, key: str):
        rows = cls.get_list(f"SELECT * FROM {cls.get_tablename()} WHERE `key` = ?", [key])
        return rows[0] if rows else None

    @classmethod
    def get_value(cls, key: str, default: str = '') -> str:
        entry = cls.get_by_key(key)
        return entry.value if entry and entry.value else default

    @classmethod
    def set_value(cls, key: str, value: str) -> 'Setting':
        entry = cls.get_by_key(key) or cls({'key': key})
        entry.value = value
        entry.save()
        return entry


class LogEntry(Model):
    level: str = "info"
    source: str = ""
    message: str = ""
    details: str = ""

    @classmethod
    def get_tablename(cls) -> str: return 'logs'

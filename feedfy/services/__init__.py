"""
Services - one module per remote concern. Each function takes the hosted
backend client as its first argument and returns plain dicts/lists.
"""

from datetime import datetime, timezone

from feedfy.errors import NotAuthenticated


def require_user(backend) -> dict:
    """The authenticated user, or NotAuthenticated"""
    user = backend.auth.get_user()
    if not user:
        raise NotAuthenticated()
    return user


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_time(value) -> datetime | None:
    """ISO timestamp from the backend -> aware datetime"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def group_by(rows: list[dict], key: str) -> dict:
    grouped = {}
    for row in rows or []:
        grouped.setdefault(row.get(key), []).append(row)
    return grouped


def get_nested(data: dict, *keys, default=None):
    """
    Safe access to nested dict keys.

    Example:
        get_nested(payload, 'data', 'buyer', 'email', default='')
    """
    for key in keys:
        if isinstance(data, dict):
            data = data.get(key)
        else:
            return default
        if data is None:
            return default
    return data


def first_of(*values):
    """First truthy value (or None)"""
    for value in values:
        if value:
            return value
    return None

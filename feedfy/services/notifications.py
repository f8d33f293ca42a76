"""
In-app notifications and their change feed.
"""

from feedfy.services import require_user

TYPES = ('comment', 'reply', 'mention', 'post', 'lesson', 'announcement', 'invite')


def get_notifications(backend, limit: int = None) -> list[dict]:
    user = backend.auth.get_user()
    if not user:
        return []
    query = backend.table('notifications').select('*').eq('user_id', user['id']).order('created_at', ascending=False)
    if limit:
        query = query.limit(limit)
    return query.execute().data or []


def get_unread_count(backend) -> int:
    user = backend.auth.get_user()
    if not user:
        return 0
    return backend.table('notifications').select('*', count='exact', head=True) \
        .eq('user_id', user['id']).eq('is_read', False).execute().count or 0


def mark_read(backend, notification_id):
    user = require_user(backend)
    backend.table('notifications').update({'is_read': True}).eq('id', notification_id) \
        .eq('user_id', user['id']).execute()


def mark_all_read(backend):
    user = require_user(backend)
    backend.table('notifications').update({'is_read': True}).eq('user_id', user['id']) \
        .eq('is_read', False).execute()


def subscribe_notifications(feed, cache, user_id: str):
    """notifications:<uid> - inserts/updates invalidate the list and the badge"""
    name = f'notifications:{user_id}'
    if feed.has_channel(name):
        return feed.channel(name)

    def refresh(payload):
        cache.invalidate(('notifications', user_id))
        cache.invalidate(('unread-notification-count', user_id))

    return feed.channel(name) \
        .on('INSERT', 'notifications', refresh, filter=f'user_id=eq.{user_id}') \
        .on('UPDATE', 'notifications', refresh, filter=f'user_id=eq.{user_id}') \
        .subscribe()

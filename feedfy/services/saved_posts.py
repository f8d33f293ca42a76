"""
Bookmarked posts (saved_posts).
"""

from feedfy.services import require_user
from feedfy.services.posts import POST_SELECT


def get_saved_posts(backend) -> list[dict]:
    user = backend.auth.get_user()
    if not user:
        return []
    return backend.table('saved_posts').select('*').eq('user_id', user['id']) \
        .order('created_at', ascending=False).execute().data or []


def saved_post_ids(saved: list[dict]) -> list:
    return [s['post_id'] for s in saved or []]


def is_post_saved(saved: list[dict], post_id) -> bool:
    return str(post_id) in {str(i) for i in saved_post_ids(saved)}


def save_post(backend, post_id) -> dict:
    user = require_user(backend)
    return backend.table('saved_posts').insert({'user_id': user['id'], 'post_id': post_id}) \
        .select().single().execute().data


def unsave_post(backend, post_id):
    user = require_user(backend)
    backend.table('saved_posts').delete().eq('user_id', user['id']).eq('post_id', post_id).execute()


def get_saved_posts_with_details(backend, saved: list[dict]) -> list[dict]:
    post_ids = saved_post_ids(saved)
    if not post_ids:
        return []
    return backend.table('posts').select(POST_SELECT).in_('id', post_ids) \
        .order('created_at', ascending=False).execute().data or []

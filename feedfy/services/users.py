"""
Public profiles and the follow graph (user_follows).
"""

from feedfy.services import require_user

POST_EMBEDS = 'users!user_id(id,name,email,avatar_url),courses!course_id(id,title)'


def get_public_profile(backend, user_id: str) -> dict:
    user = backend.table('users').select('*').eq('id', user_id).single().execute().data
    followers = backend.table('user_follows').select('id', count='exact', head=True) \
        .eq('following_id', user_id).execute().count
    following = backend.table('user_follows').select('id', count='exact', head=True) \
        .eq('follower_id', user_id).execute().count
    return {**user, 'follower_count': followers or 0, 'following_count': following or 0}


def get_posts_by_user(backend, user_id: str) -> list[dict]:
    return backend.table('posts').select(f'*,{POST_EMBEDS}') \
        .eq('user_id', user_id).order('created_at', ascending=False).execute().data or []


def follow_user(backend, following_id: str):
    user = require_user(backend)
    backend.table('user_follows').insert({'follower_id': user['id'], 'following_id': following_id}).execute()


def unfollow_user(backend, following_id: str):
    user = require_user(backend)
    backend.table('user_follows').delete().eq('follower_id', user['id']) \
        .eq('following_id', following_id).execute()


def is_following(backend, following_id: str) -> bool:
    user = backend.auth.get_user()
    if not user:
        return False
    row = backend.table('user_follows').select('id').eq('follower_id', user['id']) \
        .eq('following_id', following_id).maybe_single().execute().data
    return bool(row)


def get_following_ids(backend, user_id: str) -> list[str]:
    rows = backend.table('user_follows').select('following_id').eq('follower_id', user_id).execute().data or []
    return [r['following_id'] for r in rows]


def search_users(backend, query: str, limit: int = 10) -> list[dict]:
    return backend.table('users').select('id,name,email,avatar_url') \
        .ilike_any(('name', 'email'), query).limit(limit).execute().data or []

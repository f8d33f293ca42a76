"""
Forum posts. Feeds are built from the courses the user is enrolled in.
"""

from feedfy.services import require_user, now_iso
from feedfy.services.users import get_following_ids

USER_EMBED = 'users!user_id(id,name,email,avatar_url,role)'
COURSE_EMBED = 'courses!course_id(id,title)'
POST_SELECT = f'*,{USER_EMBED},{COURSE_EMBED}'


def with_comment_counts(backend, posts: list[dict]) -> list[dict]:
    if not posts:
        return []
    rows = backend.table('comments').select('post_id').in_('post_id', [p['id'] for p in posts]).execute().data or []
    counts = {}
    for row in rows:
        counts[row['post_id']] = counts.get(row['post_id'], 0) + 1
    return [{**p, 'comment_count': counts.get(p['id'], 0)} for p in posts]


def enrolled_course_ids(backend, user_id: str) -> list:
    rows = backend.table('enrollments').select('course_id').eq('user_id', user_id).execute().data or []
    return [r['course_id'] for r in rows]


def get_all_posts(backend) -> list[dict]:
    """Posts of every course the user is enrolled in, pinned first, newest first"""
    user = backend.auth.get_user()
    if not user:
        return []
    course_ids = enrolled_course_ids(backend, user['id'])
    if not course_ids:
        return []
    posts = backend.table('posts').select(POST_SELECT).in_('course_id', course_ids) \
        .order('pinned', ascending=False).order('created_at', ascending=False).execute().data or []
    return with_comment_counts(backend, posts)


def get_following_posts(backend) -> list[dict]:
    """Posts written by the users the current user follows"""
    user = backend.auth.get_user()
    if not user:
        return []
    following = get_following_ids(backend, user['id'])
    if not following:
        return []
    posts = backend.table('posts').select(POST_SELECT).in_('user_id', following) \
        .order('created_at', ascending=False).execute().data or []
    return with_comment_counts(backend, posts)


def get_posts_by_course(backend, course_id) -> list[dict]:
    return backend.table('posts').select(f'*,{USER_EMBED}').eq('course_id', course_id) \
        .order('pinned', ascending=False).order('created_at', ascending=False).execute().data or []


def get_post(backend, post_id) -> dict | None:
    return backend.table('posts').select(POST_SELECT).eq('id', post_id).maybe_single().execute().data


# columns a client may set; pinning goes through pin_post/unpin_post
WRITABLE_FIELDS = ('title', 'content', 'course_id', 'community_id', 'blocks', 'category', 'image_url', 'video_url')


def writable_fields(data: dict) -> dict:
    return {k: v for k, v in (data or {}).items() if k in WRITABLE_FIELDS}


def create_post(backend, data: dict) -> dict:
    user = require_user(backend)
    return backend.table('posts').insert({**writable_fields(data), 'user_id': user['id']}) \
        .select().single().execute().data


def update_post(backend, post_id, updates: dict) -> dict:
    return _update(backend, post_id, writable_fields(updates))


def _update(backend, post_id, fields: dict) -> dict:
    require_user(backend)
    return backend.table('posts').update({**fields, 'updated_at': now_iso()}).eq('id', post_id) \
        .select(POST_SELECT).single().execute().data


def delete_post(backend, post_id):
    require_user(backend)
    backend.table('posts').delete().eq('id', post_id).execute()


def pin_post(backend, post_id) -> dict:
    return _update(backend, post_id, {'pinned': True})


def unpin_post(backend, post_id) -> dict:
    return _update(backend, post_id, {'pinned': False})


def remove_from_list(posts, post_id) -> list:
    """Optimistic removal of a deleted post from a cached feed"""
    return [p for p in (posts or []) if str(p.get('id')) != str(post_id)]

"""
Post row -> feed item conversion.
"""

from feedfy.media import get_avatar_url


def _author_name(user: dict, default: str = 'User') -> str:
    email = user.get('email') or ''
    return user.get('name') or (email.split('@')[0] if email else '') or default


def to_social_post(post: dict, reactions: list[dict] = None) -> dict:
    user = post.get('users') or {}
    course = post.get('courses') or {}
    return {
        'id': str(post['id']),
        'title': post.get('title') or '',
        'content': post.get('content') or '',
        'author_id': post.get('user_id') or '',
        'author_name': _author_name(user),
        'author_avatar': user.get('avatar_url'),
        'author_role': user.get('role') or 'user',
        'created_at': post.get('created_at'),
        'reactions': [
            {'id': r.get('id'), 'type': r.get('reaction_type'), 'user_id': r.get('user_id'), 'user_name': ''}
            for r in (reactions or [])
        ],
        'comments': [],
        'comment_count': post.get('comment_count') or 0,
        'pinned': post.get('pinned'),
        'category': course.get('title'),
        'recent_avatars': post.get('recent_avatars') or [],
        'last_activity_at': post.get('last_activity_at'),
    }


def to_feed_post(post: dict) -> dict:
    """Feed variant: admin/user role only, generated avatars, updated_at as activity"""
    user = post.get('users') or {}
    course = post.get('courses') or {}
    return {
        'id': str(post['id']),
        'title': post.get('title') or '',
        'content': post.get('content') or '',
        'author_id': post.get('user_id') or user.get('id') or '',
        'author_name': _author_name(user),
        'author_avatar': get_avatar_url(user.get('avatar_url'), user.get('name') or user.get('email')),
        'author_role': 'admin' if user.get('role') == 'admin' else 'user',
        'created_at': post.get('created_at'),
        'reactions': [],
        'comments': [],
        'comment_count': post.get('comment_count') or 0,
        'pinned': post.get('pinned') or False,
        'category': course.get('title'),
        'last_activity_at': post.get('updated_at'),
        'recent_avatars': [],
    }


def convert_blocks_to_content(blocks: list[dict]) -> str:
    if not blocks:
        return ''
    return ''.join(b.get('content') or '' for b in blocks if b.get('type') == 'text')

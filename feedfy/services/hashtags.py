"""
Hashtags (hashtags, post_hashtags). Counts are maintained by the database.
"""

import re

from feedfy.services.posts import POST_SELECT

HASHTAG_RE = re.compile(r'(?<![\w#])#(\w+)', re.UNICODE)


def extract_hashtags(text: str) -> list[str]:
    """Unique lower-cased tags in order of appearance"""
    seen = []
    for tag in HASHTAG_RE.findall(text or ''):
        tag = tag.lower()
        if tag not in seen:
            seen.append(tag)
    return seen


def get_trending_hashtags(backend, limit: int = 10) -> list[dict]:
    return backend.table('hashtags').select('*').gt('post_count', 0) \
        .order('post_count', ascending=False).limit(limit).execute().data or []


def get_posts_by_hashtag(backend, tag_name: str) -> list[dict]:
    hashtag = backend.table('hashtags').select('id').eq('name', tag_name.lower()).maybe_single().execute().data
    if not hashtag:
        return []
    links = backend.table('post_hashtags').select('post_id').eq('hashtag_id', hashtag['id']).execute().data or []
    if not links:
        return []
    return backend.table('posts').select(POST_SELECT).in_('id', [l['post_id'] for l in links]) \
        .order('created_at', ascending=False).execute().data or []


def search_hashtags(backend, query: str, limit: int = 10) -> list[dict]:
    return backend.table('hashtags').select('*').ilike('name', f'%{query}%') \
        .order('post_count', ascending=False).limit(limit).execute().data or []

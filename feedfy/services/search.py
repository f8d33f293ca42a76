"""
Global search over posts, courses and users.
"""

from feedfy.errors import BackendError
from feedfy.reporting import log

MIN_QUERY_LENGTH = 2
PER_TYPE_LIMIT = 5


def _rows(query) -> list[dict]:
    """One result section; a failed section stays empty"""
    try:
        return query.execute().data or []
    except BackendError as e:
        log('warning', 'search', f'Search section {query.table} failed: {e.message}', e.to_dict())
        return []


def normalize_query(query: str) -> str:
    """Trimmed query, or '' when too short to search"""
    query = (query or '').strip()
    return query if len(query) >= MIN_QUERY_LENGTH else ''


def search(backend, query: str, community_id=None) -> list[dict]:
    query = normalize_query(query)
    if not query:
        return []
    results = []

    posts = _rows(backend.table('posts').select('id,title,content,course_id')
                  .ilike_any(('title', 'content'), query).limit(PER_TYPE_LIMIT))
    for post in posts:
        results.append({
            'id': f"post-{post['id']}",
            'type': 'post',
            'title': post.get('title') or 'Untitled post',
            'description': (post.get('content') or '')[:100],
            'url': f"/community?post={post['id']}",
        })

    courses_query = backend.table('courses').select('id,title,description') \
        .ilike_any(('title', 'description'), query).limit(PER_TYPE_LIMIT)
    if community_id:
        courses_query = courses_query.eq('community_id', community_id)
    for course in _rows(courses_query):
        results.append({
            'id': f"course-{course['id']}",
            'type': 'course',
            'title': course.get('title'),
            'description': (course.get('description') or '')[:100],
            'url': f"/courses/{course['id']}",
        })

    users = _rows(backend.table('users').select('id,name,email,avatar_url')
                  .ilike_any(('name', 'email'), query).limit(PER_TYPE_LIMIT))
    for user in users:
        email = user.get('email') or ''
        result = {
            'id': f"user-{user['id']}",
            'type': 'user',
            'title': user.get('name') or email.split('@')[0] or 'User',
            'description': email,
            'url': f"/profile/{user['id']}",
        }
        if user.get('avatar_url'):
            result['avatar'] = user['avatar_url']
        results.append(result)

    return results


def group_results(results: list[dict]) -> dict:
    return {
        'posts': [r for r in results if r['type'] == 'post'],
        'courses': [r for r in results if r['type'] == 'course'],
        'users': [r for r in results if r['type'] == 'user'],
    }

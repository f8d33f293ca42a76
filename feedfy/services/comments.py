"""
Comments and replies (parent_id) on posts.
"""

from feedfy.services import require_user, now_iso

USER_EMBED = 'users!user_id(id,name,email,avatar_url)'


def get_comments_by_post(backend, post_id) -> list[dict]:
    return backend.table('comments').select(f'*,{USER_EMBED}').eq('post_id', post_id) \
        .order('created_at', ascending=True).execute().data or []


def build_comment_tree(comments: list[dict]) -> list[dict]:
    """Nests replies under their parent (oldest first). Orphans become roots."""
    nodes = {c['id']: {**c, 'replies': []} for c in comments}
    roots = []
    for c in comments:
        node = nodes[c['id']]
        parent = nodes.get(c.get('parent_id'))
        if parent is not None and parent is not node:
            parent['replies'].append(node)
        else:
            roots.append(node)
    return roots


def create_comment(backend, post_id, content: str, parent_id=None) -> dict:
    user = require_user(backend)
    return backend.table('comments').insert({
        'post_id': post_id,
        'content': content,
        'user_id': user['id'],
        'parent_id': parent_id or None,
    }).select().single().execute().data


def get_comment(backend, comment_id) -> dict | None:
    return backend.table('comments').select('*').eq('id', comment_id).maybe_single().execute().data


def update_comment(backend, comment_id, content: str) -> dict:
    require_user(backend)
    return backend.table('comments').update({'content': content, 'updated_at': now_iso()}) \
        .eq('id', comment_id).select().single().execute().data


def delete_comment(backend, comment_id):
    require_user(backend)
    backend.table('comments').delete().eq('id', comment_id).execute()

"""
Post reports (moderation queue).
"""

from feedfy.errors import Conflict, FeedfyError, is_code, BackendError
from feedfy.services import now_iso

REASONS = ('spam', 'harassment', 'inappropriate', 'misinformation', 'other')
STATUSES = ('pending', 'reviewed', 'dismissed', 'actioned')


def report_post(backend, post_id, reporter_id: str, reason: str, description: str = None) -> dict:
    if reason not in REASONS:
        raise FeedfyError(f'Invalid reason: {reason}')
    try:
        return backend.table('post_reports').insert({
            'post_id': post_id,
            'reporter_id': reporter_id,
            'reason': reason,
            'description': description or None,
        }).select().single().execute().data
    except BackendError as e:
        if is_code(e, '23505'):
            raise Conflict('You already reported this post')
        raise


def get_pending_reports(backend) -> list[dict]:
    """All reports, newest first, with reporter and post (+ author name)"""
    reports = backend.table('post_reports').select('*').order('created_at', ascending=False).execute().data or []
    if not reports:
        return []
    reporter_ids = list({r['reporter_id'] for r in reports})
    post_ids = list({r['post_id'] for r in reports})
    reporters = backend.table('users').select('id,name,avatar_url').in_('id', reporter_ids).execute().data or []
    posts = backend.table('posts').select('id,title,content,user_id').in_('id', post_ids).execute().data or []

    author_ids = list({p['user_id'] for p in posts})
    authors = backend.table('users').select('id,name').in_('id', author_ids).execute().data or [] if author_ids else []

    reporter_map = {r['id']: r for r in reporters}
    author_map = {a['id']: a for a in authors}
    post_map = {p['id']: {**p, 'author_name': (author_map.get(p['user_id']) or {}).get('name') or 'User'}
                for p in posts}
    return [{**r, 'reporter': reporter_map.get(r['reporter_id']), 'post': post_map.get(r['post_id'])}
            for r in reports]


def get_pending_reports_count(backend) -> int:
    return backend.table('post_reports').select('*', count='exact', head=True) \
        .eq('status', 'pending').execute().count or 0


def update_report_status(backend, report_id, status: str, reviewer_id: str):
    if status not in STATUSES[1:]:
        raise FeedfyError(f'Invalid status: {status}')
    backend.table('post_reports').update({
        'status': status,
        'reviewed_by': reviewer_id,
        'reviewed_at': now_iso(),
    }).eq('id', report_id).execute()


def delete_post_by_admin(backend, post_id):
    backend.table('posts').delete().eq('id', post_id).execute()

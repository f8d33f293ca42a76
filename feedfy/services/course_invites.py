"""
Per-course invites by e-mail (course_invites) and course access checks.
"""

import uuid
from datetime import datetime, timezone

from feedfy.errors import FeedfyError, NotFound, BackendError, is_code
from feedfy.services import require_user, now_iso, parse_time


def normalize_email(email: str) -> str:
    return (email or '').lower().strip()


def get_course_invites(backend, course_id) -> list[dict]:
    return backend.table('course_invites').select('*').eq('course_id', course_id) \
        .order('created_at', ascending=False).execute().data or []


def get_invite_by_token(backend, token: str) -> dict:
    try:
        return backend.table('course_invites') \
            .select('*,courses!course_id(id,title,description,is_locked)') \
            .eq('token', token).single().execute().data
    except BackendError as e:
        if is_code(e, 'PGRST116'):
            raise NotFound('Invite not found')
        raise


def create_course_invite(backend, course_id, email: str, expires_at: str = None) -> dict:
    user = require_user(backend)
    return backend.table('course_invites').insert({
        'course_id': course_id,
        'email': normalize_email(email),
        'token': str(uuid.uuid4()),
        'invited_by': user['id'],
        'expires_at': expires_at or None,
    }).select().single().execute().data


def accept_course_invite(backend, token: str):
    """Enrolls the user in the invite's course; returns the course id"""
    user = require_user(backend)
    invite = get_invite_by_token(backend, token)
    if invite.get('accepted_at'):
        raise FeedfyError('This invite was already accepted')
    if invite.get('expires_at') and parse_time(invite['expires_at']) < datetime.now(timezone.utc):
        raise FeedfyError('This invite has expired')
    if normalize_email(user.get('email')) != normalize_email(invite.get('email')):
        raise FeedfyError('This invite was sent to another email')

    try:
        backend.table('enrollments').insert({'user_id': user['id'], 'course_id': invite['course_id']}).execute()
    except BackendError as e:
        if not is_code(e, '23505'):
            raise
    backend.table('course_invites').update({'accepted_at': now_iso()}).eq('token', token).execute()
    return invite['course_id']


def delete_course_invite(backend, invite_id):
    backend.table('course_invites').delete().eq('id', invite_id).execute()


def has_course_access(backend, course_id) -> bool:
    """Enrolled, or holds an accepted invite for the course"""
    user = backend.auth.get_user()
    if not user:
        return False
    enrollment = backend.table('enrollments').select('id').eq('user_id', user['id']) \
        .eq('course_id', course_id).maybe_single().execute().data
    if enrollment:
        return True
    invite = backend.table('course_invites').select('id').eq('course_id', course_id) \
        .eq('email', user.get('email')).not_('accepted_at', 'is', None).limit(1).execute().data
    return bool(invite)

"""
The signed-in user's own profile, role and premium status.
"""

from feedfy.errors import BackendError, is_code
from feedfy.reporting import log
from feedfy.services import require_user, now_iso

PROFILE_FIELDS = ('name', 'bio', 'avatar_url')


def get_profile(backend) -> dict:
    user = require_user(backend)
    return backend.table('users').select('*').eq('id', user['id']).single().execute().data


def auth_avatar_url(avatar_url: str | None) -> str | None:
    """Raw base64 avatars are stored as-is; auth metadata needs a data URL"""
    if avatar_url and not avatar_url.startswith('data:') and not avatar_url.startswith('http'):
        return f'data:image/png;base64,{avatar_url}'
    return avatar_url


def update_profile(backend, data: dict) -> dict:
    user = require_user(backend)
    fields = {k: v for k, v in data.items() if k in PROFILE_FIELDS}
    profile = backend.table('users').update({**fields, 'updated_at': now_iso()}).eq('id', user['id']) \
        .select().single().execute().data

    metadata = {'name': fields.get('name')}
    avatar = auth_avatar_url(fields.get('avatar_url'))
    if avatar:
        metadata['avatar_url'] = avatar
    try:
        backend.auth.update_user(metadata)
    except BackendError as e:
        log('warning', 'profile', f'Failed to update user metadata: {e.message}')
    return profile


def get_user_role(backend) -> str | None:
    user = backend.auth.get_user()
    if not user:
        return None
    try:
        row = backend.table('users').select('role,email,name').eq('id', user['id']).single().execute().data
    except BackendError as e:
        if is_code(e, 'PGRST116'):
            return None
        raise
    return row.get('role') if row else None


def is_admin(role: str | None) -> bool:
    return role == 'admin'


def is_premium(backend) -> bool:
    """Premium = at least one membership with a subscription"""
    user = backend.auth.get_user()
    if not user:
        return False
    try:
        rows = backend.table('community_members').select('stripe_subscription_id').eq('user_id', user['id']) \
            .not_('stripe_subscription_id', 'is', None).limit(1).execute().data
    except BackendError as e:
        log('warning', 'profile', f'Failed to check premium status: {e.message}')
        return False
    return bool(rows)


def get_community_billing(backend, community_id) -> dict | None:
    if not community_id:
        return None
    return backend.table('communities').select('stripe_subscription_id,stripe_customer_id') \
        .eq('id', community_id).single().execute().data

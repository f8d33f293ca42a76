"""
Communities (tenants), their members and invites.

A community is identified by its slug, which can also be the first label
of the host name (acme.example.com -> 'acme').
"""

import re
import uuid
from datetime import datetime, timedelta, timezone

from feedfy.errors import FeedfyError, BackendError, is_code
from feedfy.media import image_data_url
from feedfy.services import require_user, now_iso, parse_time

ACCESS_TYPES = ('invite_only', 'public_paid', 'both')
MEMBER_ROLES = ('owner', 'admin', 'moderator', 'member')
COMMUNITY_FIELDS = ('slug', 'name', 'description', 'logo_url', 'cover_url', 'logo_data', 'cover_data',
                    'logo_mime_type', 'cover_mime_type', 'access_type', 'settings')
IPV4_RE = re.compile(r'^\d+\.\d+\.\d+\.\d+$')


def _pick(data: dict) -> dict:
    return {k: v for k, v in data.items() if k in COMMUNITY_FIELDS}


# ============================================
# HOST NAME
# ============================================

def extract_slug_from_host(host: str, fallback: str = None) -> str | None:
    """
    Community slug from the request host:
        localhost / IPv4    -> fallback (the remembered selection)
        acme.example.com    -> 'acme'
        example.com         -> None
    """
    hostname = (host or '').split(':')[0]
    if hostname == 'localhost' or IPV4_RE.match(hostname):
        return fallback or None
    parts = hostname.split('.')
    if len(parts) > 2:
        return parts[0]
    return None


def community_redirect_url(slug: str, host: str, scheme: str = 'https', path: str = '/', query: str = '') -> str | None:
    """URL on the community's subdomain, or None if already there (or on localhost)"""
    hostname = (host or '').split(':')[0]
    if hostname == 'localhost' or extract_slug_from_host(host) == slug:
        return None
    domain = '.'.join(hostname.split('.')[-2:])
    query = f'?{query}' if query and not query.startswith('?') else (query or '')
    return f'{scheme}://{slug}.{domain}{path}{query}'


def community_logo_url(community: dict | None) -> str | None:
    if not community:
        return None
    return image_data_url(community.get('logo_data'), community.get('logo_mime_type'), community.get('logo_url'))


def community_cover_url(community: dict | None) -> str | None:
    if not community:
        return None
    return image_data_url(community.get('cover_data'), community.get('cover_mime_type'), community.get('cover_url'))


# ============================================
# COMMUNITIES
# ============================================

def get_community_by_slug(backend, slug: str) -> dict | None:
    if not slug:
        return None
    try:
        return backend.table('communities').select('*').eq('slug', slug).single().execute().data
    except BackendError as e:
        if is_code(e, 'PGRST116'):
            return None
        raise


def get_user_communities(backend) -> list[dict]:
    """Every community the user can see (row-level security decides)"""
    if not backend.auth.get_user():
        return []
    return backend.table('communities').select('*').order('created_at', ascending=False).execute().data or []


def get_owned_communities(backend) -> list[dict]:
    user = backend.auth.get_user()
    if not user:
        return []
    return backend.table('communities').select('*').eq('owner_id', user['id']) \
        .order('created_at', ascending=False).execute().data or []


def create_community(backend, data: dict) -> dict:
    user = require_user(backend)
    fields = _pick(data)
    if fields.get('access_type') and fields['access_type'] not in ACCESS_TYPES:
        raise FeedfyError(f"Invalid access type: {fields['access_type']}")
    community = backend.table('communities').insert({
        **fields,
        'owner_id': user['id'],
        'access_type': fields.get('access_type') or 'invite_only',
    }).select().single().execute().data
    backend.table('community_members').insert({
        'community_id': community['id'],
        'user_id': user['id'],
        'role': 'owner',
    }).execute()
    return community


def update_community(backend, community_id, data: dict):
    backend.table('communities').update(_pick(data)).eq('id', community_id).execute()


def delete_community(backend, community_id):
    backend.table('communities').delete().eq('id', community_id).execute()


def get_community_members(backend, community_id) -> list[dict]:
    if not community_id:
        return []
    return backend.table('community_members').select('*,users!user_id(id,email,name,avatar_url)') \
        .eq('community_id', community_id).order('joined_at', ascending=False).execute().data or []


# ============================================
# INVITES
# ============================================

def create_invite(backend, community_id, email: str, expires_in_days: int = 7) -> dict:
    user = require_user(backend)
    expires_at = datetime.now(timezone.utc) + timedelta(days=expires_in_days)
    return backend.table('community_invites').insert({
        'community_id': community_id,
        'email': email,
        'token': str(uuid.uuid4()),
        'expires_at': expires_at.isoformat(),
        'created_by': user['id'],
    }).select().single().execute().data


def get_community_invites(backend, community_id) -> list[dict]:
    if not community_id:
        return []
    return backend.table('community_invites').select('*').eq('community_id', community_id) \
        .order('created_at', ascending=False).execute().data or []


def accept_invite(backend, token: str):
    """Joins the invite's community as member; returns the community id"""
    user = require_user(backend)
    try:
        invite = backend.table('community_invites').select('*').eq('token', token).single().execute().data
    except BackendError:
        raise FeedfyError('Invalid invite')
    if invite.get('used_at'):
        raise FeedfyError('Invite was already used')
    if parse_time(invite['expires_at']) < datetime.now(timezone.utc):
        raise FeedfyError('Invite expired')
    if invite.get('email') and invite['email'] != user.get('email'):
        raise FeedfyError('This invite is for another email')

    try:
        backend.table('community_members').insert({
            'community_id': invite['community_id'],
            'user_id': user['id'],
            'role': 'member',
        }).execute()
    except BackendError as e:
        if not is_code(e, '23505'):
            raise
    backend.table('community_invites').update({'used_at': now_iso()}).eq('id', invite['id']).execute()
    return invite['community_id']

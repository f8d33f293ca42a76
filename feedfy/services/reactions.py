"""
Reactions on posts and comments (like / love / laugh).

toggle_reaction() and reaction_state() are the in-memory rules the feed uses
for optimistic updates; the *_reaction() functions apply the same rules to the
post_reactions / comment_reactions tables.
"""

from feedfy.errors import FeedfyError
from feedfy.services import require_user, group_by

REACTION_TYPES = ('like', 'love', 'laugh')


def validate_type(reaction_type: str) -> str:
    if reaction_type not in REACTION_TYPES:
        raise FeedfyError(f"Invalid reaction type: {reaction_type}")
    return reaction_type


# ============================================
# IN-MEMORY
# ============================================

def toggle_reaction(reactions: list[dict], user_id: str, reaction_type: str,
                    reaction_id: str = None) -> tuple[list[dict], str]:
    """
    Same type again -> removed, other type -> changed, none -> added.
    Returns (new list, action); the input list is not modified.
    """
    validate_type(reaction_type)
    existing = next((r for r in reactions if r.get('user_id') == user_id), None)
    if existing and existing.get('type') == reaction_type:
        return [r for r in reactions if r.get('user_id') != user_id], 'removed'
    if existing:
        return [dict(r, type=reaction_type) if r.get('user_id') == user_id else r for r in reactions], 'changed'
    new = {'id': reaction_id or f'temp-{user_id}', 'type': reaction_type, 'user_id': user_id, 'user_name': ''}
    return list(reactions) + [new], 'added'


def reaction_state(reactions: list[dict], current_user_id: str = None) -> dict:
    counts = {t: 0 for t in REACTION_TYPES}
    user_reaction = None
    for r in reactions or []:
        if r.get('type') in counts:
            counts[r['type']] += 1
        if current_user_id and r.get('user_id') == current_user_id:
            user_reaction = r.get('type')
    return {'counts': counts, 'user_reaction': user_reaction, 'total_reactions': len(reactions or [])}


# ============================================
# BACKEND
# ============================================

def _by_ids(backend, table: str, column: str, ids: list) -> dict:
    if not ids:
        return {}
    rows = backend.table(table).select('*').in_(column, ids).execute().data or []
    return group_by(rows, column)


def _toggle(backend, table: str, column: str, target_id, reaction_type: str) -> dict:
    validate_type(reaction_type)
    user = require_user(backend)
    existing = backend.table(table).select('*').eq(column, target_id) \
        .eq('user_id', user['id']).maybe_single().execute().data
    if existing and existing['reaction_type'] == reaction_type:
        backend.table(table).delete().eq('id', existing['id']).execute()
        return {'action': 'removed'}
    if existing:
        data = backend.table(table).update({'reaction_type': reaction_type}) \
            .eq('id', existing['id']).select().single().execute().data
        return {'action': 'changed', 'reaction': data}
    data = backend.table(table).insert({
        column: target_id,
        'user_id': user['id'],
        'reaction_type': reaction_type,
    }).select().single().execute().data
    return {'action': 'added', 'reaction': data}


def reactions_by_post_ids(backend, post_ids: list) -> dict:
    return _by_ids(backend, 'post_reactions', 'post_id', post_ids)


def reactions_by_comment_ids(backend, comment_ids: list) -> dict:
    return _by_ids(backend, 'comment_reactions', 'comment_id', comment_ids)


def toggle_post_reaction(backend, post_id, reaction_type: str) -> dict:
    return _toggle(backend, 'post_reactions', 'post_id', post_id, reaction_type)


def toggle_comment_reaction(backend, comment_id, reaction_type: str) -> dict:
    return _toggle(backend, 'comment_reactions', 'comment_id', comment_id, reaction_type)


def as_feed_reactions(rows: list[dict]) -> list[dict]:
    """post_reactions rows -> {id, type, user_id, user_name}"""
    return [{'id': r.get('id'), 'type': r.get('reaction_type'), 'user_id': r.get('user_id'), 'user_name': ''}
            for r in rows or []]

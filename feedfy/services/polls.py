"""
Polls attached to posts (polls, poll_options, poll_votes).
"""

from feedfy.services import require_user


def get_poll_by_post_id(backend, post_id) -> dict | None:
    user = backend.auth.get_user()
    poll = backend.table('polls').select('*').eq('post_id', post_id).maybe_single().execute().data
    if not poll:
        return None
    options = backend.table('poll_options').select('*').eq('poll_id', poll['id']).order('order').execute().data or []
    votes = backend.table('poll_votes').select('option_id,user_id').eq('poll_id', poll['id']).execute().data or []

    counts = {}
    user_votes = []
    for v in votes:
        counts[v['option_id']] = counts.get(v['option_id'], 0) + 1
        if user and v['user_id'] == user['id']:
            user_votes.append(v['option_id'])

    return {
        'id': poll['id'],
        'post_id': poll['post_id'],
        'question': poll['question'],
        'closes_at': poll.get('closes_at'),
        'allow_multiple': poll.get('allow_multiple', False),
        'options': [{**o, 'vote_count': counts.get(o['id'], 0)} for o in options],
        'total_votes': len({v['user_id'] for v in votes}),
        'user_votes': user_votes,
    }


def vote_poll(backend, poll_id, option_id):
    user = require_user(backend)
    backend.table('poll_votes').insert({'poll_id': poll_id, 'option_id': option_id, 'user_id': user['id']}).execute()


def remove_poll_vote(backend, poll_id, option_id):
    user = require_user(backend)
    backend.table('poll_votes').delete().eq('poll_id', poll_id).eq('option_id', option_id) \
        .eq('user_id', user['id']).execute()


def create_poll(backend, post_id, question: str, options: list[str], closes_at: str = None,
                allow_multiple: bool = False) -> dict:
    poll = backend.table('polls').insert({
        'post_id': post_id,
        'question': question,
        'closes_at': closes_at or None,
        'allow_multiple': allow_multiple,
    }).select().single().execute().data
    backend.table('poll_options').insert([
        {'poll_id': poll['id'], 'text': text, 'order': i} for i, text in enumerate(options)
    ]).execute()
    return poll


def post_ids_with_polls(backend, post_ids: list) -> set:
    if not post_ids:
        return set()
    rows = backend.table('polls').select('post_id').in_('post_id', post_ids).execute().data or []
    return {r['post_id'] for r in rows}

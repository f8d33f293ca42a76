"""
Direct and group conversations.

Tables: conversations, conversations_participants (last_read_at per user),
messages (soft-deleted via is_deleted). New messages arrive through the
messages:<conversation_id> change feed and are merged into the last query
result until the next refetch picks them up.
"""

from feedfy.errors import FeedfyError
from feedfy.services import require_user, now_iso, group_by, parse_time

USER_FIELDS = 'id,name,email,avatar_url'
EPOCH = '1970-01-01T00:00:00+00:00'


def get_conversations(backend) -> list[dict]:
    """The user's conversations with participants, last message and unread count"""
    user = backend.auth.get_user()
    if not user:
        return []
    links = backend.table('conversations_participants').select('conversation_id') \
        .eq('user_id', user['id']).execute().data or []
    if not links:
        return []
    conversations = backend.table('conversations').select('*') \
        .in_('id', [l['conversation_id'] for l in links]).order('updated_at', ascending=False).execute().data or []
    if not conversations:
        return []
    participants = backend.table('conversations_participants').select(f'*,user:users!user_id({USER_FIELDS})') \
        .in_('conversation_id', [c['id'] for c in conversations]).execute().data or []
    by_conversation = group_by(participants, 'conversation_id')

    result = []
    for conv in conversations:
        members = by_conversation.get(conv['id'], [])
        last_message = backend.table('messages').select(f'*,sender:users!sender_id({USER_FIELDS})') \
            .eq('conversation_id', conv['id']).eq('is_deleted', False) \
            .order('created_at', ascending=False).limit(1).maybe_single().execute().data
        me = next((p for p in members if p['user_id'] == user['id']), None)
        last_read_at = (me or {}).get('last_read_at') or EPOCH
        unread = backend.table('messages').select('*', count='exact', head=True) \
            .eq('conversation_id', conv['id']).eq('is_deleted', False) \
            .neq('sender_id', user['id']).gt('created_at', last_read_at).execute().count
        result.append({**conv, 'participants': members, 'last_message': last_message, 'unread_count': unread or 0})
    return result


def unread_messages_total(conversations: list[dict]) -> int:
    return sum(c.get('unread_count') or 0 for c in conversations or [])


def get_conversation(backend, conversation_id) -> dict | None:
    if not conversation_id or not backend.auth.get_user():
        return None
    conv = backend.table('conversations').select('*').eq('id', conversation_id).single().execute().data
    participants = backend.table('conversations_participants').select(f'*,user:users!user_id({USER_FIELDS})') \
        .eq('conversation_id', conversation_id).execute().data or []
    return {**conv, 'participants': participants}


def is_participant(backend, conversation_id) -> bool:
    user = backend.auth.get_user()
    if not user or not conversation_id:
        return False
    return bool(backend.table('conversations_participants').select('*', count='exact', head=True)
                .eq('conversation_id', conversation_id).eq('user_id', user['id']).execute().count)


def get_messages(backend, conversation_id) -> list[dict]:
    if not conversation_id or not backend.auth.get_user():
        return []
    return backend.table('messages').select(f'*,sender:users!sender_id({USER_FIELDS})') \
        .eq('conversation_id', conversation_id).eq('is_deleted', False) \
        .order('created_at', ascending=True).execute().data or []


def attach_senders(backend, messages: list[dict]) -> list[dict]:
    """Fills `sender` for messages that came in through the change feed"""
    missing = list({m['sender_id'] for m in messages if not m.get('sender') and m.get('sender_id')})
    if not missing:
        return messages
    users = backend.table('users').select(USER_FIELDS).in_('id', missing).execute().data or []
    by_id = {u['id']: u for u in users}
    return [m if m.get('sender') else {**m, 'sender': by_id.get(m.get('sender_id'))} for m in messages]


def send_message(backend, conversation_id, content: str) -> dict:
    user = require_user(backend)
    content = (content or '').strip()
    if not content:
        raise FeedfyError('Message is empty')
    return backend.table('messages').insert({
        'conversation_id': conversation_id,
        'sender_id': user['id'],
        'content': content,
    }).select(f'*,sender:users!sender_id({USER_FIELDS})').single().execute().data


def create_conversation(backend, type: str, participant_ids: list, name: str = None,
                        community_id=None, course_id=None) -> dict:
    user = require_user(backend)
    if type not in ('dm', 'group'):
        raise FeedfyError(f'Invalid conversation type: {type}')
    conversation = backend.table('conversations').insert({
        'type': type,
        'name': name if type == 'group' else None,
        'community_id': community_id or None,
        'course_id': course_id or None,
    }).select().single().execute().data
    members = list(dict.fromkeys([user['id'], *participant_ids]))
    backend.table('conversations_participants').insert([{
        'conversation_id': conversation['id'],
        'user_id': member,
        'is_admin': member == user['id'] and type == 'group',
    } for member in members]).execute()
    return conversation


def mark_messages_as_read(backend, conversation_id):
    user = require_user(backend)
    backend.table('conversations_participants').update({'last_read_at': now_iso()}) \
        .eq('conversation_id', conversation_id).eq('user_id', user['id']).execute()


# ============================================
# REALTIME
# ============================================

def merge_messages(queried: list[dict], realtime: list[dict]) -> list[dict]:
    """Query result + change feed messages, deduplicated by id, oldest first"""
    seen = set()
    merged = []
    for m in list(queried or []) + list(realtime or []):
        if m['id'] in seen:
            continue
        seen.add(m['id'])
        merged.append(m)
    return sorted(merged, key=lambda m: parse_time(m.get('created_at')) or parse_time(EPOCH))


class MessageStream:
    """Messages pushed for one conversation since the last query"""

    def __init__(self, conversation_id):
        self.conversation_id = conversation_id
        self.messages: list[dict] = []
        self.last_query_size = None

    def on_insert(self, payload: dict):
        record = payload.get('record') or {}
        if not record or record.get('is_deleted'):
            return
        if any(m['id'] == record.get('id') for m in self.messages):
            return
        self.messages.append(record)

    def merge(self, queried: list[dict]) -> list[dict]:
        if self.last_query_size is not None and len(queried) != self.last_query_size:
            self.messages = []
        self.last_query_size = len(queried)
        return merge_messages(queried, self.messages)


def message_stream(feed, conversation_id) -> MessageStream:
    """The messages:<id> channel's stream (subscribed on first use)"""
    channel = feed.channel(f'messages:{conversation_id}')
    if 'stream' not in channel.state:
        stream = MessageStream(conversation_id)
        channel.state['stream'] = stream
        channel.on('INSERT', 'messages', stream.on_insert, filter=f'conversation_id=eq.{conversation_id}').subscribe()
    return channel.state['stream']


def subscribe_unread_messages(feed, cache, user_id: str):
    """New messages or read markers invalidate the user's conversation list"""
    name = f'unread-messages:{user_id}'
    if feed.has_channel(name):
        return feed.channel(name)

    def refresh(payload):
        cache.invalidate(('conversations', user_id))

    return feed.channel(name) \
        .on('INSERT', 'messages', refresh) \
        .on('UPDATE', 'conversations_participants', refresh, filter=f'user_id=eq.{user_id}') \
        .subscribe()

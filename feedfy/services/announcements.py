"""
Site-wide announcements (banner with optional image and button).
"""

from feedfy.services import require_user

# request field -> column
UPDATABLE = {
    'title': 'title',
    'content': 'content',
    'image_url': 'image_url',
    'button_text': 'button_text',
    'button_url': 'button_url',
    'is_active': 'is_active',
}


def get_active_announcements(backend) -> list[dict]:
    return backend.table('announcements').select('*,users!created_by(id,name,avatar_url)') \
        .eq('is_active', True).order('created_at', ascending=False).execute().data or []


def create_announcement(backend, title: str, content: str, image_url: str = None,
                        button_text: str = None, button_url: str = None) -> dict:
    user = require_user(backend)
    return backend.table('announcements').insert({
        'title': title,
        'content': content,
        'image_url': image_url or None,
        'button_text': button_text or None,
        'button_url': button_url or None,
        'created_by': user['id'],
        'is_active': True,
    }).select().single().execute().data


def update_announcement(backend, announcement_id, data: dict) -> dict:
    """Only the keys present in `data` are written"""
    values = {column: data[key] for key, column in UPDATABLE.items() if key in data}
    return backend.table('announcements').update(values).eq('id', announcement_id) \
        .select().single().execute().data


def delete_announcement(backend, announcement_id):
    backend.table('announcements').delete().eq('id', announcement_id).execute()

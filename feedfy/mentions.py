"""
@mention autocomplete: user suggestions and the keyboard-driven popup list.
"""

from typing import Callable, Optional

from feedfy.errors import BackendError
from feedfy.services.users import search_users

MIN_QUERY = 2
MAX_SUGGESTIONS = 5


def mention_items(backend, query: str) -> list[dict]:
    if len(query or '') < MIN_QUERY:
        return []
    try:
        users = search_users(backend, query, MAX_SUGGESTIONS)
    except BackendError:
        return []
    return [{
        'id': u['id'],
        'label': u.get('name') or (u.get('email') or '').split('@')[0],
        'avatar': u.get('avatar_url'),
    } for u in users]


def initials(label: str) -> str:
    return ''.join(part[0] for part in (label or '').split(' ') if part).upper()[:2]


class MentionList:
    """Selection state of the suggestion popup"""

    def __init__(self, items: list[dict], command: Callable[[dict], None]):
        self.items = items
        self.command = command
        self.selected_index = 0

    def update_items(self, items: list[dict]):
        self.items = items
        self.selected_index = 0

    def select_item(self, index: int) -> Optional[dict]:
        if 0 <= index < len(self.items):
            item = self.items[index]
            self.command({'id': item['id'], 'label': item['label']})
            return item
        return None

    def on_key_down(self, key: str) -> bool:
        n = len(self.items)
        if key == 'ArrowUp':
            if n: self.selected_index = (self.selected_index + n - 1) % n
            return True
        if key == 'ArrowDown':
            if n: self.selected_index = (self.selected_index + 1) % n
            return True
        if key == 'Enter':
            self.select_item(self.selected_index)
            return True
        return False


class MentionPopup:
    """Popup wrapper: Escape hides it, other keys go to the list"""

    def __init__(self, mention_list: MentionList):
        self.list = mention_list
        self.visible = True

    def on_key_down(self, key: str) -> bool:
        if key == 'Escape':
            self.visible = False
            return True
        return self.list.on_key_down(key)

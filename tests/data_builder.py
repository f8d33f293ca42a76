"""
Test data builder.
Creates users, courses, posts, ... directly in the fake backend's tables.
"""
import uuid

from fake_backend import FakeDatabase

WEBHOOK_SECRET = 'realtime-secret'
HOTTOK = 'hottok-secret'

FIRST_NAMES = [
    'Alice', 'Bob', 'Charlie', 'Diana', 'Eve', 'Frank', 'Grace', 'Henry',
    'Ivy', 'Jack', 'Karen', 'Leo', 'Mia', 'Nathan', 'Olivia', 'Peter',
]


def auth(user: dict) -> dict:
    """Authorization header for a user created by the builder."""
    return {'Authorization': f"Bearer {user['token']}"}


class DataBuilder:
    """
    Fluent builder for test data.

    Usage:
        b = DataBuilder(db)
        admin = b.with_user(role='admin')
        course = b.with_course()
        b.with_enrollment(admin, course)
        post = b.with_post(admin, course, content='hello')
    """

    def __init__(self, db: FakeDatabase):
        self.db = db
        self.user_count = 0

    def insert(self, table: str, row: dict) -> dict:
        return self.db.insert_row(table, row)

    def with_user(self, name: str = None, role: str = 'student', email: str = None, **fields) -> dict:
        """Auth user + users row. The returned dict carries the bearer token."""
        index = self.user_count
        self.user_count += 1
        if name is None:
            name = FIRST_NAMES[index % len(FIRST_NAMES)]
        email = email or f'{(name or "user").lower()}{index}@test.example.com'
        user_id = str(uuid.uuid4())
        token = f'token-{user_id}'
        self.db.tokens[token] = {'id': user_id, 'email': email}
        row = self.insert('users', {'id': user_id, 'name': name, 'email': email, 'role': role, **fields})
        return {**row, 'token': token}

    def with_community(self, slug: str = 'acme', owner: dict = None, **fields) -> dict:
        community = self.insert('communities', {
            'id': str(uuid.uuid4()), 'slug': slug, 'name': slug.title(),
            'owner_id': owner['id'] if owner else None, 'access_type': 'invite_only', **fields,
        })
        if owner:
            self.with_member(community, owner, role='owner')
        return community

    def with_member(self, community: dict, user: dict, role: str = 'member', **fields) -> dict:
        return self.insert('community_members', {
            'community_id': community['id'], 'user_id': user['id'], 'role': role, **fields,
        })

    def with_course(self, title: str = 'Course', community: dict = None, **fields) -> dict:
        course = self.insert('courses', {
            'title': title, 'community_id': community['id'] if community else None, **fields,
        })
        if community:
            self.insert('course_communities', {'course_id': course['id'], 'community_id': community['id']})
        return course

    def with_enrollment(self, user: dict, course: dict) -> dict:
        return self.insert('enrollments', {'user_id': user['id'], 'course_id': course['id']})

    def with_module(self, course: dict, title: str = 'Module', order: int = None) -> dict:
        return self.insert('modules', {'course_id': course['id'], 'title': title, 'order': order})

    def with_lesson(self, module: dict, title: str = 'Lesson', order: int = None, **fields) -> dict:
        return self.insert('lessons', {'module_id': module['id'], 'title': title, 'order': order, **fields})

    def with_post(self, user: dict, course: dict = None, content: str = 'Hello', **fields) -> dict:
        return self.insert('posts', {
            'user_id': user['id'], 'course_id': course['id'] if course else None, 'content': content, **fields,
        })

    def with_comment(self, user: dict, post: dict, content: str = 'Nice', parent: dict = None) -> dict:
        return self.insert('comments', {
            'user_id': user['id'], 'post_id': post['id'], 'content': content,
            'parent_id': parent['id'] if parent else None,
        })

    def with_reaction(self, user: dict, post: dict, reaction_type: str = 'like') -> dict:
        return self.insert('post_reactions', {
            'user_id': user['id'], 'post_id': post['id'], 'reaction_type': reaction_type,
        })

    def with_follow(self, follower: dict, following: dict) -> dict:
        return self.insert('user_follows', {'follower_id': follower['id'], 'following_id': following['id']})

    def with_poll(self, post: dict, question: str = 'Which?', options: list = None) -> tuple[dict, list]:
        poll = self.insert('polls', {'post_id': post['id'], 'question': question, 'allow_multiple': False})
        rows = [self.insert('poll_options', {'poll_id': poll['id'], 'text': text, 'order': i})
                for i, text in enumerate(options or ['A', 'B'])]
        return poll, rows

    def with_notification(self, user: dict, type: str = 'comment', **fields) -> dict:
        return self.insert('notifications', {'user_id': user['id'], 'type': type, 'title': type, **fields})

    def with_conversation(self, members: list, type: str = 'dm', name: str = None) -> dict:
        conversation = self.insert('conversations', {'type': type, 'name': name})
        conversation['updated_at'] = conversation['created_at']
        for member in members:
            self.insert('conversations_participants', {'conversation_id': conversation['id'], 'user_id': member['id']})
        return conversation

    def with_message(self, conversation: dict, sender: dict, content: str = 'Hi', **fields) -> dict:
        return self.insert('messages', {
            'conversation_id': conversation['id'], 'sender_id': sender['id'], 'content': content, **fields,
        })


def change(type: str, table: str, record: dict = None, old_record: dict = None) -> dict:
    """Database webhook payload"""
    return {'type': type, 'table': table, 'schema': 'public', 'record': record, 'old_record': old_record}

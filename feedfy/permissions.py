"""
Permission predicates for posts and comments.

Pure functions of (user, role, optional owned resource). `user` is the auth
user dict (only 'id' is used), `role` is users.role ('admin' | 'student' | None).
"""

POST_ACTIONS = ('create', 'read', 'update', 'delete', 'moderate', 'pin', 'unpin')
COMMENT_ACTIONS = ('create', 'read', 'update', 'delete', 'moderate')


def can(user: dict | None, role: str | None, action: str, post: dict | None = None) -> bool:
    if not user:
        return action == 'read'
    if role == 'admin':
        return True
    if action in ('create', 'read'):
        return True
    if not post:
        return False
    if action in ('update', 'delete'):
        return post.get('user_id') == user.get('id')
    # moderate, pin, unpin: admins only
    return False


def can_comment(user: dict | None, role: str | None, action: str, comment: dict | None = None) -> bool:
    if not user:
        return action == 'read'
    if role == 'admin':
        return True
    if action in ('create', 'read'):
        return True
    if not comment:
        return False
    if action in ('update', 'delete', 'moderate'):
        author = comment.get('author_id', comment.get('user_id'))
        return author == user.get('id')
    return False


class Permissions:
    """Checks bound to one user/role pair"""

    def __init__(self, user: dict | None, role: str | None):
        self.user = user
        self.role = role

    def can_create(self): return can(self.user, self.role, 'create')
    def can_read(self): return can(self.user, self.role, 'read')
    def can_update(self, post): return can(self.user, self.role, 'update', post)
    def can_delete(self, post): return can(self.user, self.role, 'delete', post)
    def can_moderate(self, post): return can(self.user, self.role, 'moderate', post)
    def can_pin(self, post): return can(self.user, self.role, 'pin', post)
    def can_unpin(self, post): return can(self.user, self.role, 'unpin', post)
    def is_admin(self): return self.role == 'admin'
    def can_comment_update(self, comment): return can_comment(self.user, self.role, 'update', comment)
    def can_comment_delete(self, comment): return can_comment(self.user, self.role, 'delete', comment)
    def can_comment_moderate(self, comment): return can_comment(self.user, self.role, 'moderate', comment)

    def to_dict(self, post: dict = None) -> dict:
        return {
            'can_create': self.can_create(),
            'can_update': self.can_update(post),
            'can_delete': self.can_delete(post),
            'can_moderate': self.can_moderate(post),
            'can_pin': self.can_pin(post),
            'is_admin': self.is_admin(),
        }

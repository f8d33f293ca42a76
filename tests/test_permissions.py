"""
Permission predicates for posts and comments.
"""
from feedfy.permissions import Permissions, can, can_comment

ALICE = {'id': 'u-alice'}
BOB = {'id': 'u-bob'}
POST = {'id': 1, 'user_id': 'u-alice'}


class TestPostPermissions:
    """can() for each role and action."""

    def test_anonymous_can_only_read(self):
        """Without a user only 'read' is allowed."""
        assert can(None, None, 'read')
        for action in ('create', 'update', 'delete', 'moderate', 'pin', 'unpin'):
            assert not can(None, None, action, POST)

    def test_admin_can_do_everything(self):
        """Admins pass every check, even on other users' posts."""
        for action in ('create', 'read', 'update', 'delete', 'moderate', 'pin', 'unpin'):
            assert can(BOB, 'admin', action, POST)

    def test_student_can_create_and_read(self):
        assert can(BOB, 'student', 'create')
        assert can(BOB, 'student', 'read')

    def test_owner_can_update_and_delete(self):
        """The author edits and deletes their own post."""
        assert can(ALICE, 'student', 'update', POST)
        assert can(ALICE, 'student', 'delete', POST)

    def test_other_user_cannot_update_or_delete(self):
        assert not can(BOB, 'student', 'update', POST)
        assert not can(BOB, 'student', 'delete', POST)

    def test_owner_cannot_moderate_or_pin(self):
        """Moderation and pinning are admin-only, ownership does not help."""
        for action in ('moderate', 'pin', 'unpin'):
            assert not can(ALICE, 'student', action, POST)

    def test_update_without_post_is_denied(self):
        assert not can(ALICE, 'student', 'update')


class TestCommentPermissions:
    """can_comment() - the author may also moderate their own comment."""

    def test_author_can_moderate_own_comment(self):
        comment = {'id': 5, 'user_id': 'u-alice'}
        assert can_comment(ALICE, 'student', 'moderate', comment)
        assert not can_comment(BOB, 'student', 'moderate', comment)

    def test_author_id_takes_precedence(self):
        """Mapped comments carry author_id instead of user_id."""
        comment = {'id': 5, 'author_id': 'u-bob', 'user_id': 'u-alice'}
        assert can_comment(BOB, 'student', 'delete', comment)
        assert not can_comment(ALICE, 'student', 'delete', comment)

    def test_anonymous_comment_access(self):
        assert can_comment(None, None, 'read')
        assert not can_comment(None, None, 'create')


class TestPermissionsObject:
    """Permissions bound to one user/role."""

    def test_to_dict_for_owner(self):
        perms = Permissions(ALICE, 'student').to_dict(POST)

        assert perms == {
            'can_create': True,
            'can_update': True,
            'can_delete': True,
            'can_moderate': False,
            'can_pin': False,
            'is_admin': False,
        }

    def test_to_dict_for_admin(self):
        perms = Permissions(BOB, 'admin').to_dict(POST)

        assert all(perms.values())

    def test_comment_checks(self):
        perms = Permissions(BOB, 'student')
        comment = {'id': 1, 'user_id': 'u-bob'}

        assert perms.can_comment_update(comment)
        assert perms.can_comment_delete(comment)
        assert not perms.can_comment_update({'id': 2, 'user_id': 'u-alice'})

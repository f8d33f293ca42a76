"""
Reactions: in-memory toggle rules and the reaction endpoints.
"""
import pytest

from data_builder import auth
from feedfy.errors import FeedfyError
from feedfy.services.reactions import reaction_state, toggle_reaction


class TestToggleReaction:
    """Same type removes, other type changes, none adds."""

    def test_add(self):
        reactions, action = toggle_reaction([], 'u1', 'like')

        assert action == 'added'
        assert reactions == [{'id': 'temp-u1', 'type': 'like', 'user_id': 'u1', 'user_name': ''}]

    def test_same_type_removes(self):
        start = [{'id': 1, 'type': 'like', 'user_id': 'u1'}, {'id': 2, 'type': 'like', 'user_id': 'u2'}]

        reactions, action = toggle_reaction(start, 'u1', 'like')

        assert action == 'removed'
        assert [r['user_id'] for r in reactions] == ['u2']

    def test_other_type_changes(self):
        start = [{'id': 1, 'type': 'like', 'user_id': 'u1'}]

        reactions, action = toggle_reaction(start, 'u1', 'laugh')

        assert action == 'changed'
        assert reactions == [{'id': 1, 'type': 'laugh', 'user_id': 'u1'}]
        assert start[0]['type'] == 'like'

    def test_invalid_type(self):
        with pytest.raises(FeedfyError):
            toggle_reaction([], 'u1', 'angry')


class TestReactionState:
    def test_counts_and_user_reaction(self):
        reactions = [
            {'type': 'like', 'user_id': 'u1'},
            {'type': 'like', 'user_id': 'u2'},
            {'type': 'love', 'user_id': 'u3'},
        ]

        state = reaction_state(reactions, 'u3')

        assert state == {
            'counts': {'like': 2, 'love': 1, 'laugh': 0},
            'user_reaction': 'love',
            'total_reactions': 3,
        }

    def test_empty(self):
        assert reaction_state([], 'u1')['user_reaction'] is None
        assert reaction_state(None)['total_reactions'] == 0


class TestReactionApi:
    def test_toggle_post_reaction_cycle(self, client, builder, db):
        """add -> change -> remove on the same post."""
        user = builder.with_user()
        post = builder.with_post(user)
        url = f"/api/posts/{post['id']}/reactions"

        assert client.post(url, json={'type': 'like'}, headers=auth(user)).json['action'] == 'added'
        assert client.post(url, json={'type': 'love'}, headers=auth(user)).json['action'] == 'changed'
        assert db.rows('post_reactions')[0]['reaction_type'] == 'love'
        assert client.post(url, json={'type': 'love'}, headers=auth(user)).json['action'] == 'removed'
        assert db.rows('post_reactions') == []

    def test_invalid_type_is_rejected(self, client, builder):
        user = builder.with_user()
        post = builder.with_post(user)

        response = client.post(f"/api/posts/{post['id']}/reactions", json={'type': 'angry'}, headers=auth(user))

        assert response.status_code == 400
        assert response.json['error'] == 'Invalid reaction type: angry'

    def test_anonymous_cannot_react(self, client, builder):
        post = builder.with_post(builder.with_user())

        response = client.post(f"/api/posts/{post['id']}/reactions", json={'type': 'like'})

        assert response.status_code == 401

    def test_post_reaction_state(self, client, builder):
        alice = builder.with_user()
        bob = builder.with_user()
        post = builder.with_post(alice)
        builder.with_reaction(alice, post, 'like')
        builder.with_reaction(bob, post, 'laugh')

        state = client.get(f"/api/posts/{post['id']}/reactions", headers=auth(bob)).json

        assert state['counts'] == {'like': 1, 'love': 0, 'laugh': 1}
        assert state['user_reaction'] == 'laugh'

    def test_comment_reactions_grouped_by_comment(self, client, builder):
        user = builder.with_user()
        post = builder.with_post(user)
        first = builder.with_comment(user, post)
        second = builder.with_comment(user, post)

        client.post(f"/api/comments/{first['id']}/reactions", json={'type': 'like'}, headers=auth(user))
        client.post(f"/api/comments/{second['id']}/reactions", json={'type': 'love'}, headers=auth(user))
        grouped = client.get(f"/api/comments/reactions?ids={first['id']},{second['id']}", headers=auth(user)).json

        assert [r['reaction_type'] for r in grouped[str(first['id'])]] == ['like']
        assert [r['reaction_type'] for r in grouped[str(second['id'])]] == ['love']

"""
Polls attached to posts.
"""
from data_builder import auth


class TestPolls:
    def test_create(self, client, builder, db):
        user = builder.with_user()
        post = builder.with_post(user)

        response = client.post(f"/api/posts/{post['id']}/poll", json={
            'question': 'Best editor?', 'options': [' vim ', 'emacs', '  '],
        }, headers=auth(user))

        assert response.status_code == 201
        assert [o['text'] for o in db.rows('poll_options')] == ['vim', 'emacs']
        poll = client.get(f"/api/posts/{post['id']}/poll").json
        assert poll['question'] == 'Best editor?'
        assert [(o['text'], o['order'], o['vote_count']) for o in poll['options']] == [('vim', 0, 0), ('emacs', 1, 0)]

    def test_needs_two_options(self, client, builder):
        user = builder.with_user()
        post = builder.with_post(user)

        response = client.post(f"/api/posts/{post['id']}/poll", json={'question': 'Q', 'options': ['only', '']},
                               headers=auth(user))

        assert response.status_code == 400
        assert response.json == {'error': 'A poll needs a question and at least two options'}

    def test_no_poll(self, client, builder):
        post = builder.with_post(builder.with_user())

        assert client.get(f"/api/posts/{post['id']}/poll").json is None

    def test_vote_and_remove(self, client, builder):
        alice = builder.with_user()
        bob = builder.with_user()
        post = builder.with_post(alice)
        poll, (a, b) = builder.with_poll(post, options=['A', 'B'])
        url = f"/api/polls/{poll['id']}/vote"

        client.post(url, json={'option_id': a['id']}, headers=auth(alice))
        client.post(url, json={'option_id': a['id']}, headers=auth(bob))

        result = client.get(f"/api/posts/{post['id']}/poll", headers=auth(alice)).json
        assert [o['vote_count'] for o in result['options']] == [2, 0]
        assert result['total_votes'] == 2
        assert result['user_votes'] == [a['id']]

        client.delete(url, json={'option_id': a['id']}, headers=auth(alice))

        result = client.get(f"/api/posts/{post['id']}/poll", headers=auth(alice)).json
        assert result['options'][0]['vote_count'] == 1
        assert result['user_votes'] == []

    def test_remove_vote_by_query_parameter(self, client, builder, db):
        user = builder.with_user()
        poll, (a, _) = builder.with_poll(builder.with_post(user))
        builder.insert('poll_votes', {'poll_id': poll['id'], 'option_id': a['id'], 'user_id': user['id']})

        client.delete(f"/api/polls/{poll['id']}/vote?option_id={a['id']}", headers=auth(user))

        assert db.rows('poll_votes') == []

    def test_voting_twice_conflicts(self, client, builder):
        user = builder.with_user()
        poll, (a, _) = builder.with_poll(builder.with_post(user))
        url = f"/api/polls/{poll['id']}/vote"
        client.post(url, json={'option_id': a['id']}, headers=auth(user))

        assert client.post(url, json={'option_id': a['id']}, headers=auth(user)).status_code == 409

    def test_vote_requires_login(self, client, builder):
        poll, (a, _) = builder.with_poll(builder.with_post(builder.with_user()))

        assert client.post(f"/api/polls/{poll['id']}/vote", json={'option_id': a['id']}).status_code == 401

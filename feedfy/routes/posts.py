from flask import current_app, jsonify, request

from feedfy.context import (get_backend, get_cache, get_feed, cached, invalidate, current_user, current_role,
                            require_user, user_id, json_body)
from feedfy.errors import NotFound, PermissionDenied, FeedfyError
from feedfy.mappers import to_social_post
from feedfy.permissions import Permissions
from feedfy.services import comments, polls, posts, reactions
from feedfy.services.feed import feed_watcher
from feedfy.share import get_post_url

POST_KEYS = (('all-posts',), ('posts',), ('following-posts',))


def _post_or_404(post_id) -> dict:
    post = posts.get_post(get_backend(), post_id)
    if not post:
        raise NotFound('Post not found')
    return post


def _comment_or_404(comment_id) -> dict:
    comment = comments.get_comment(get_backend(), comment_id)
    if not comment:
        raise NotFound('Comment not found')
    return comment


def _permissions() -> Permissions:
    return Permissions(current_user(), current_role())


def register(app):
    # ============================================
    # FEED
    # ============================================

    @app.route('/api/posts')
    def list_posts():
        """?view=following | ?course_id=... | default: all posts of enrolled courses"""
        backend = get_backend()
        course_id = request.args.get('course_id')
        if course_id:
            return jsonify(cached('posts', course_id, fn=lambda: posts.get_posts_by_course(backend, course_id)))
        if request.args.get('view') == 'following':
            return jsonify(cached('following-posts', fn=lambda: posts.get_following_posts(backend)))
        return jsonify(cached('all-posts', fn=lambda: posts.get_all_posts(backend)))

    @app.route('/api/feed')
    def social_feed():
        """Feed items with reactions attached"""
        backend = get_backend()
        if request.args.get('view') == 'following':
            rows = cached('following-posts', fn=lambda: posts.get_following_posts(backend))
        else:
            rows = cached('all-posts', fn=lambda: posts.get_all_posts(backend))
        ids = [p['id'] for p in rows]
        key = ','.join(str(i) for i in ids)
        by_post = cached('post-reactions', key, fn=lambda: reactions.reactions_by_post_ids(backend, ids))
        with_polls = cached('poll-post-ids', key, fn=lambda: polls.post_ids_with_polls(backend, ids))
        return jsonify([{**to_social_post(p, by_post.get(p['id']) or by_post.get(str(p['id']))),
                         'has_poll': p['id'] in with_polls} for p in rows])

    @app.route('/api/feed/new-posts')
    def new_posts():
        user = require_user()
        course_ids = cached('enrolled-course-ids', fn=lambda: posts.enrolled_course_ids(get_backend(), user['id']))
        watcher = feed_watcher(get_feed(), user['id'], course_ids)
        return jsonify(watcher.to_dict() if watcher else {'has_new_posts': False, 'new_post_count': 0})

    @app.route('/api/feed/new-posts/dismiss', methods=['POST'])
    def dismiss_new_posts():
        user = require_user()
        channel = get_feed().channels.get(f"feed-realtime:{user['id']}")
        if channel and 'watcher' in channel.state:
            channel.state['watcher'].dismiss()
        invalidate(('all-posts',))
        return jsonify({'status': 'ok'})

    # ============================================
    # POSTS
    # ============================================

    @app.route('/api/posts/<post_id>')
    def get_post(post_id):
        return jsonify(cached('post', post_id, fn=lambda: _post_or_404(post_id)))

    @app.route('/api/posts', methods=['POST'])
    def create_post():
        require_user()
        if not _permissions().can_create():
            raise PermissionDenied('You are not allowed to create posts')
        data = json_body()
        if not data.get('content') and not data.get('title'):
            raise FeedfyError('Post is empty')
        post = posts.create_post(get_backend(), data)
        invalidate(*POST_KEYS, ('trending-hashtags',))
        return jsonify(post), 201

    @app.route('/api/posts/<post_id>', methods=['PUT'])
    def update_post(post_id):
        require_user()
        post = _post_or_404(post_id)
        if not _permissions().can_update(post):
            raise PermissionDenied('You are not allowed to edit this post')
        updated = posts.update_post(get_backend(), post_id, json_body())
        invalidate(*POST_KEYS, ('post', post_id))
        return jsonify(updated)

    @app.route('/api/posts/<post_id>', methods=['DELETE'])
    def delete_post(post_id):
        require_user()
        post = _post_or_404(post_id)
        if not _permissions().can_delete(post):
            raise PermissionDenied('You are not allowed to delete this post')
        posts.delete_post(get_backend(), post_id)
        get_cache().update_matching(('all-posts',), lambda rows: posts.remove_from_list(rows, post_id))
        invalidate(*POST_KEYS, ('post', post_id))
        return '', 204

    @app.route('/api/posts/<post_id>/pin', methods=['POST'])
    def pin_post(post_id):
        require_user()
        post = _post_or_404(post_id)
        if not _permissions().can_pin(post):
            raise PermissionDenied('Only administrators can pin posts')
        updated = posts.pin_post(get_backend(), post_id)
        invalidate(*POST_KEYS, ('post', post_id))
        return jsonify(updated)

    @app.route('/api/posts/<post_id>/unpin', methods=['POST'])
    def unpin_post(post_id):
        require_user()
        post = _post_or_404(post_id)
        if not _permissions().can_unpin(post):
            raise PermissionDenied('Only administrators can unpin posts')
        updated = posts.unpin_post(get_backend(), post_id)
        invalidate(*POST_KEYS, ('post', post_id))
        return jsonify(updated)

    @app.route('/api/posts/<post_id>/permissions')
    def post_permissions(post_id):
        return jsonify(_permissions().to_dict(_post_or_404(post_id)))

    @app.route('/api/posts/<post_id>/share-url')
    def share_url(post_id):
        url = get_post_url(post_id, request.args.get('community'), current_app.config['PUBLIC_BASE_URL'])
        return jsonify({'url': url})

    # ============================================
    # COMMENTS
    # ============================================

    @app.route('/api/posts/<post_id>/comments')
    def list_comments(post_id):
        rows = cached('comments', post_id, fn=lambda: comments.get_comments_by_post(get_backend(), post_id))
        if request.args.get('tree'):
            return jsonify(comments.build_comment_tree(rows))
        return jsonify(rows)

    @app.route('/api/posts/<post_id>/comments', methods=['POST'])
    def create_comment(post_id):
        data = json_body()
        content = (data.get('content') or '').strip()
        if not content:
            raise FeedfyError('Comment is empty')
        comment = comments.create_comment(get_backend(), post_id, content, data.get('parent_id'))
        invalidate(('comments', post_id), ('posts',), ('all-posts',))
        return jsonify(comment), 201

    @app.route('/api/comments/<comment_id>', methods=['PUT'])
    def update_comment(comment_id):
        require_user()
        comment = _comment_or_404(comment_id)
        if not _permissions().can_comment_update(comment):
            raise PermissionDenied('You are not allowed to edit this comment')
        updated = comments.update_comment(get_backend(), comment_id, json_body().get('content', ''))
        invalidate(('comments', comment['post_id']))
        return jsonify(updated)

    @app.route('/api/comments/<comment_id>', methods=['DELETE'])
    def delete_comment(comment_id):
        require_user()
        comment = _comment_or_404(comment_id)
        if not _permissions().can_comment_delete(comment):
            raise PermissionDenied('You are not allowed to delete this comment')
        comments.delete_comment(get_backend(), comment_id)
        invalidate(('comments', comment['post_id']), ('posts',), ('all-posts',))
        return '', 204

    # ============================================
    # REACTIONS
    # ============================================

    @app.route('/api/posts/<post_id>/reactions')
    def post_reactions(post_id):
        rows = cached('post-reactions', post_id,
                      fn=lambda: reactions.reactions_by_post_ids(get_backend(), [post_id]))
        mine = user_id()
        flat = [r for group in rows.values() for r in group]
        return jsonify(reactions.reaction_state(reactions.as_feed_reactions(flat), mine))

    @app.route('/api/posts/<post_id>/reactions', methods=['POST'])
    def toggle_post_reaction(post_id):
        result = reactions.toggle_post_reaction(get_backend(), post_id, json_body().get('type', ''))
        invalidate(('post-reactions',), ('all-posts',))
        return jsonify(result)

    @app.route('/api/comments/<comment_id>/reactions', methods=['POST'])
    def toggle_comment_reaction(comment_id):
        result = reactions.toggle_comment_reaction(get_backend(), comment_id, json_body().get('type', ''))
        invalidate(('comment-reactions',))
        return jsonify(result)

    @app.route('/api/comments/reactions')
    def comment_reactions():
        """?ids=1,2,3"""
        ids = [i for i in request.args.get('ids', '').split(',') if i]
        rows = cached('comment-reactions', ','.join(ids),
                      fn=lambda: reactions.reactions_by_comment_ids(get_backend(), ids))
        return jsonify({str(k): v for k, v in rows.items()})

    # ============================================
    # POLLS
    # ============================================

    @app.route('/api/posts/<post_id>/poll')
    def get_poll(post_id):
        return jsonify(cached('poll', post_id, fn=lambda: polls.get_poll_by_post_id(get_backend(), post_id)))

    @app.route('/api/posts/<post_id>/poll', methods=['POST'])
    def create_poll(post_id):
        require_user()
        data = json_body()
        options = [o.strip() for o in data.get('options') or [] if o and o.strip()]
        if not data.get('question') or len(options) < 2:
            raise FeedfyError('A poll needs a question and at least two options')
        poll = polls.create_poll(get_backend(), post_id, data['question'], options,
                                 data.get('closes_at'), bool(data.get('allow_multiple')))
        invalidate(('poll',), ('poll-post-ids',))
        return jsonify(poll), 201

    @app.route('/api/polls/<poll_id>/vote', methods=['POST'])
    def vote_poll(poll_id):
        polls.vote_poll(get_backend(), poll_id, json_body().get('option_id'))
        invalidate(('poll',))
        return jsonify({'status': 'ok'})

    @app.route('/api/polls/<poll_id>/vote', methods=['DELETE'])
    def remove_poll_vote(poll_id):
        option_id = json_body().get('option_id') or request.args.get('option_id')
        polls.remove_poll_vote(get_backend(), poll_id, option_id)
        invalidate(('poll',))
        return jsonify({'status': 'ok'})

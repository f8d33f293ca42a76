from flask import jsonify, request

from feedfy.context import get_backend, cached, invalidate, require_user, json_body
from feedfy.errors import FeedfyError
from feedfy.mentions import mention_items
from feedfy.services import hashtags, saved_posts, search, users


def register(app):
    # === Users / follow graph ===

    @app.route('/api/users/<uid>')
    def public_profile(uid):
        return jsonify(cached('public-profile', uid, fn=lambda: users.get_public_profile(get_backend(), uid)))

    @app.route('/api/users/<uid>/posts')
    def user_posts(uid):
        return jsonify(cached('user-posts', uid, fn=lambda: users.get_posts_by_user(get_backend(), uid)))

    @app.route('/api/users/<uid>/follow')
    def is_following(uid):
        return jsonify({'following': cached('is-following', uid, fn=lambda: users.is_following(get_backend(), uid))})

    @app.route('/api/users/<uid>/follow', methods=['POST'])
    def follow(uid):
        user = require_user()
        if user['id'] == uid:
            raise FeedfyError('You cannot follow yourself')
        users.follow_user(get_backend(), uid)
        invalidate(('is-following', uid), ('public-profile', uid), ('following-posts',))
        return jsonify({'following': True})

    @app.route('/api/users/<uid>/follow', methods=['DELETE'])
    def unfollow(uid):
        users.unfollow_user(get_backend(), uid)
        invalidate(('is-following', uid), ('public-profile', uid), ('following-posts',))
        return jsonify({'following': False})

    @app.route('/api/users/search')
    def search_users():
        query = request.args.get('q', '')
        limit = request.args.get('limit', 10, type=int)
        return jsonify(users.search_users(get_backend(), query, limit) if query else [])

    @app.route('/api/mentions')
    def mentions():
        return jsonify(mention_items(get_backend(), request.args.get('q', '')))

    # === Hashtags ===

    @app.route('/api/hashtags/trending')
    def trending_hashtags():
        limit = request.args.get('limit', 10, type=int)
        return jsonify(cached('trending-hashtags', limit,
                              fn=lambda: hashtags.get_trending_hashtags(get_backend(), limit)))

    @app.route('/api/hashtags/search')
    def search_hashtags():
        query = request.args.get('q', '')
        if not query:
            return jsonify([])
        return jsonify(hashtags.search_hashtags(get_backend(), query, request.args.get('limit', 10, type=int)))

    @app.route('/api/hashtags/<tag>/posts')
    def hashtag_posts(tag):
        return jsonify(cached('hashtag-posts', tag.lower(),
                              fn=lambda: hashtags.get_posts_by_hashtag(get_backend(), tag)))

    # === Search ===

    @app.route('/api/search')
    def global_search():
        query = search.normalize_query(request.args.get('q', ''))
        community_id = request.args.get('community_id')
        if not query:
            results = []
        else:
            results = cached('search', query, community_id or '', stale_time=30,
                             fn=lambda: search.search(get_backend(), query, community_id))
        return jsonify({'results': results, 'grouped': search.group_results(results),
                        'has_results': len(results) > 0})

    # === Saved posts ===

    @app.route('/api/saved-posts')
    def list_saved_posts():
        saved = cached('saved-posts', fn=lambda: saved_posts.get_saved_posts(get_backend()))
        if request.args.get('details'):
            ids = ','.join(str(i) for i in saved_posts.saved_post_ids(saved))
            return jsonify(cached('saved-posts-details', ids,
                                  fn=lambda: saved_posts.get_saved_posts_with_details(get_backend(), saved)))
        return jsonify(saved)

    @app.route('/api/saved-posts/ids')
    def saved_post_ids():
        saved = cached('saved-posts', fn=lambda: saved_posts.get_saved_posts(get_backend()))
        return jsonify(saved_posts.saved_post_ids(saved))

    @app.route('/api/posts/<post_id>/saved')
    def is_post_saved(post_id):
        saved = cached('saved-posts', fn=lambda: saved_posts.get_saved_posts(get_backend()))
        return jsonify({'saved': saved_posts.is_post_saved(saved, post_id)})

    @app.route('/api/posts/<post_id>/saved', methods=['POST'])
    def save_post(post_id):
        row = saved_posts.save_post(get_backend(), post_id)
        invalidate(('saved-posts',), ('saved-posts-details',), ('is-post-saved', post_id))
        return jsonify(row), 201

    @app.route('/api/posts/<post_id>/saved', methods=['DELETE'])
    def unsave_post(post_id):
        saved_posts.unsave_post(get_backend(), post_id)
        invalidate(('saved-posts',), ('saved-posts-details',), ('is-post-saved', post_id))
        return '', 204

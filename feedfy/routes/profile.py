from flask import current_app, jsonify

from feedfy.context import get_backend, cached, invalidate, current_role, require_user, user_id, json_body
from feedfy.services import profile


def register(app):
    @app.route('/api/profile')
    def get_profile():
        require_user()
        return jsonify(cached('profile', fn=lambda: profile.get_profile(get_backend())))

    @app.route('/api/profile', methods=['PUT'])
    def update_profile():
        require_user()
        updated = profile.update_profile(get_backend(), json_body())
        invalidate(('profile', user_id()), ('users',), ('public-profile',), ('all-posts',), ('posts',),
                   ('comments',))
        return jsonify(updated)

    @app.route('/api/profile/role')
    def get_role():
        role = current_role()
        return jsonify({'role': role, 'is_admin': profile.is_admin(role)})

    @app.route('/api/profile/premium')
    def get_premium():
        premium = cached('isPremium', stale_time=current_app.config['ROLE_STALE_SECONDS'],
                         fn=lambda: profile.is_premium(get_backend()))
        return jsonify({'is_premium': premium})

    @app.route('/api/communities/<community_id>/billing')
    def community_billing(community_id):
        require_user()
        return jsonify(cached('community-billing', community_id,
                              fn=lambda: profile.get_community_billing(get_backend(), community_id)))

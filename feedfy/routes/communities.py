from flask import Response, current_app, jsonify, request

from feedfy.context import get_backend, cached, invalidate, require_user, require_admin, json_body
from feedfy.errors import NotFound, FeedfyError
from feedfy.model import Setting
from feedfy.services import communities
from feedfy.theme import COLOR_PRESETS, render_theme_css

COMMUNITY_KEYS = (('communities',), ('owned-communities',), ('community',))


def _with_images(community: dict | None) -> dict | None:
    if not community:
        return None
    return {**community, 'logo_src': communities.community_logo_url(community),
            'cover_src': communities.community_cover_url(community)}


def _preset_of(community: dict | None) -> str:
    settings = (community or {}).get('settings') or {}
    return settings.get('color_preset') or Setting.get_value('color_preset', '')


def register(app):
    @app.route('/api/communities')
    def list_communities():
        rows = cached('communities', fn=lambda: communities.get_user_communities(get_backend()))
        return jsonify([_with_images(c) for c in rows])

    @app.route('/api/communities/owned')
    def owned_communities():
        rows = cached('owned-communities', fn=lambda: communities.get_owned_communities(get_backend()))
        return jsonify([_with_images(c) for c in rows])

    @app.route('/api/communities/current')
    def current_community():
        """Community of the request host; ?slug= (or the default_community setting) on localhost"""
        fallback = request.args.get('slug') or Setting.get_value('default_community', '')
        slug = communities.extract_slug_from_host(request.host, fallback)
        community = cached('community', slug or '', fn=lambda: communities.get_community_by_slug(get_backend(), slug))
        return jsonify({'slug': slug, 'community': _with_images(community)})

    @app.route('/api/communities/<slug>/redirect')
    def community_redirect(slug):
        url = communities.community_redirect_url(slug, request.host, request.scheme,
                                                 request.args.get('path', '/'), request.args.get('query', ''))
        return jsonify({'url': url})

    @app.route('/api/communities/slug/<slug>')
    def community_by_slug(slug):
        community = cached('community', slug, fn=lambda: communities.get_community_by_slug(get_backend(), slug))
        if not community:
            raise NotFound('Community not found')
        return jsonify(_with_images(community))

    @app.route('/api/communities', methods=['POST'])
    def create_community():
        require_admin()
        data = json_body()
        if not data.get('slug') or not data.get('name'):
            raise FeedfyError('Name and slug are required')
        community = communities.create_community(get_backend(), data)
        invalidate(*COMMUNITY_KEYS)
        return jsonify(community), 201

    @app.route('/api/communities/<community_id>', methods=['PUT'])
    def update_community(community_id):
        require_admin()
        communities.update_community(get_backend(), community_id, json_body())
        invalidate(*COMMUNITY_KEYS)
        return jsonify({'status': 'ok'})

    @app.route('/api/communities/<community_id>', methods=['DELETE'])
    def delete_community(community_id):
        require_admin()
        communities.delete_community(get_backend(), community_id)
        invalidate(*COMMUNITY_KEYS)
        return '', 204

    @app.route('/api/communities/<community_id>/members')
    def community_members(community_id):
        require_user()
        return jsonify(cached('community-members', community_id,
                              fn=lambda: communities.get_community_members(get_backend(), community_id)))

    # === Invites ===

    @app.route('/api/communities/<community_id>/invites')
    def community_invites(community_id):
        require_admin()
        return jsonify(communities.get_community_invites(get_backend(), community_id))

    @app.route('/api/communities/<community_id>/invites', methods=['POST'])
    def create_community_invite(community_id):
        require_admin()
        data = json_body()
        if not data.get('email'):
            raise FeedfyError('E-mail is required')
        days = data.get('expires_in_days') or current_app.config['COMMUNITY_INVITE_DAYS']
        invite = communities.create_invite(get_backend(), community_id, data['email'], int(days))
        invalidate(('community-invites', community_id))
        return jsonify(invite), 201

    @app.route('/api/community-invites/<token>/accept', methods=['POST'])
    def accept_community_invite(token):
        community_id = communities.accept_invite(get_backend(), token)
        invalidate(*COMMUNITY_KEYS, ('community-members', community_id), ('community-invites', community_id))
        return jsonify({'community_id': community_id})

    # === Theme ===

    @app.route('/api/theme/presets')
    def theme_presets():
        return jsonify(COLOR_PRESETS)

    @app.route('/api/theme.css')
    def instance_theme_css():
        return Response(render_theme_css(Setting.get_value('color_preset', '')), mimetype='text/css')

    @app.route('/api/communities/<slug>/theme.css')
    def community_theme_css(slug):
        community = cached('community', slug, fn=lambda: communities.get_community_by_slug(get_backend(), slug))
        return Response(render_theme_css(_preset_of(community)), mimetype='text/css')

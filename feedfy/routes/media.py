from flask import current_app, jsonify, request

from feedfy.context import get_backend, get_reporter, cached, require_user, require_admin, json_body
from feedfy.errors import FeedfyError
from feedfy.services import gifs, link_preview, storage

GIF_SEARCH_STALE = 300
GIF_TRENDING_STALE = 600
LINK_PREVIEW_STALE = 86400


def register(app):
    # === Storage ===

    @app.route('/api/media/upload', methods=['POST'])
    def upload_media():
        """multipart: file + path (folder inside the bucket)"""
        require_admin()
        file = request.files.get('file')
        if not file or not file.filename:
            raise FeedfyError('No file uploaded')
        path = request.form.get('path', 'uploads').strip('/') or 'uploads'
        url = storage.upload_file(get_backend(), file.filename, file.read(), path, content_type=file.mimetype)
        return jsonify({'url': url}), 201

    @app.route('/api/media/delete', methods=['POST'])
    def delete_media():
        require_admin()
        return jsonify({'deleted': storage.delete_file(get_backend(), json_body().get('url', ''))})

    # === GIFs ===

    @app.route('/api/gifs/search')
    def search_gifs():
        query = request.args.get('q', '').strip()
        if len(query) < 2:
            return jsonify([])
        return jsonify(cached('gif-search', query, stale_time=GIF_SEARCH_STALE,
                              fn=lambda: gifs.search_gifs(query, api_key=current_app.config['TENOR_API_KEY'],
                                                       reporter=get_reporter(), backend=get_backend())))

    @app.route('/api/gifs/trending')
    def trending_gifs():
        return jsonify(cached('trending-gifs', stale_time=GIF_TRENDING_STALE,
                              fn=lambda: gifs.get_trending_gifs(api_key=current_app.config['TENOR_API_KEY'],
                                                          reporter=get_reporter(), backend=get_backend())))

    # === Link preview ===

    @app.route('/api/link-preview')
    def preview_link():
        require_user()
        url = request.args.get('url', '')
        if not url:
            return jsonify(None)
        return jsonify(cached('link-preview', url, stale_time=LINK_PREVIEW_STALE,
                              fn=lambda: link_preview.fetch_link_preview(get_backend(), url)))

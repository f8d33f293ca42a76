"""
Uploads into the storage bucket, GIF search and link previews.
"""
import io
import json

import pytest
import requests

from data_builder import auth
from feedfy.services import gifs
from feedfy.services.storage import object_path

TENOR_RESULT = {
    'id': 'g1',
    'content_description': 'cat typing',
    'media_formats': {
        'gif': {'url': 'https://media.tenor.com/g1.gif'},
        'tinygif': {'url': 'https://media.tenor.com/g1-tiny.gif', 'dims': [220, 124]},
    },
}


def tenor_response(status: int = 200, body: dict = None, url: str = 'https://tenor.googleapis.com/v2/search'):
    response = requests.Response()
    response.status_code = status
    response.url = url
    response._content = json.dumps(body or {}).encode()
    response.headers['content-type'] = 'application/json'
    return response


@pytest.fixture
def tenor(app, monkeypatch):
    """Replaces requests.get for the GIF service; records the calls"""
    app.config['TENOR_API_KEY'] = 'tenor-key'
    calls = []
    responses = []

    def get(url, params=None, timeout=None):
        calls.append({'url': url, 'params': params, 'timeout': timeout})
        return responses.pop(0) if responses else tenor_response(body={'results': [TENOR_RESULT]})

    monkeypatch.setattr(gifs.requests, 'get', get)
    return calls, responses


class TestUpload:
    def test_upload_creates_bucket(self, client, builder, storage):
        admin = builder.with_user(role='admin')

        response = client.post('/api/media/upload', data={
            'file': (io.BytesIO(b'\x89PNG'), 'avatar.png', 'image/png'), 'path': '/avatars/',
        }, content_type='multipart/form-data', headers=auth(admin))

        assert response.status_code == 201
        assert response.json['url'].startswith('http://backend.test/storage/v1/object/public/course-media/avatars/')
        assert response.json['url'].endswith('.png')
        bucket, = storage.buckets
        assert (bucket['name'], bucket['public'], bucket['file_size_limit']) == ('course-media', True, 52428800)
        assert list(storage.objects.values()) == [b'\x89PNG']

    def test_missing_bucket(self, client, builder, storage):
        storage.allow_create = False
        admin = builder.with_user(role='admin')

        response = client.post('/api/media/upload', data={'file': (io.BytesIO(b'x'), 'a.jpg')},
                               content_type='multipart/form-data', headers=auth(admin))

        assert response.status_code == 400
        assert response.json['error'].startswith('Storage bucket "course-media" is not configured')

    def test_no_file(self, client, builder):
        admin = builder.with_user(role='admin')

        response = client.post('/api/media/upload', data={}, content_type='multipart/form-data', headers=auth(admin))

        assert response.json == {'error': 'No file uploaded'}

    def test_admin_only(self, client, builder):
        response = client.post('/api/media/upload', data={'file': (io.BytesIO(b'x'), 'a.jpg')},
                               content_type='multipart/form-data', headers=auth(builder.with_user()))

        assert response.status_code == 403

    def test_object_path(self):
        assert object_path('photo.final.JPG', 'lessons', now_ms=1700000000000) == 'lessons/1700000000000.JPG'


class TestDelete:
    def test_delete_by_public_url(self, client, builder, storage):
        admin = builder.with_user(role='admin')
        storage.objects['course-media/avatars/1.png'] = b'x'

        response = client.post('/api/media/delete', json={
            'url': 'http://backend.test/storage/v1/object/public/course-media/avatars/1.png',
        }, headers=auth(admin))

        assert response.json == {'deleted': True}
        assert storage.objects == {}

    def test_url_outside_bucket(self, client, builder):
        admin = builder.with_user(role='admin')

        response = client.post('/api/media/delete', json={'url': 'https://elsewhere.test/a.png'}, headers=auth(admin))

        assert response.json == {'deleted': False}


class TestGifs:
    def test_search(self, client, tenor):
        calls, _ = tenor

        body = client.get('/api/gifs/search?q=cats').json

        assert body == [{
            'id': 'g1', 'title': 'cat typing', 'url': 'https://media.tenor.com/g1.gif',
            'preview': 'https://media.tenor.com/g1-tiny.gif', 'width': 220, 'height': 124,
        }]
        assert calls[0]['url'] == 'https://tenor.googleapis.com/v2/search'
        assert calls[0]['params'] == {'q': 'cats', 'limit': '20', 'key': 'tenor-key', 'client_key': 'feedfy',
                                      'media_filter': 'gif,tinygif'}

    def test_search_is_cached(self, client, tenor):
        calls, _ = tenor

        client.get('/api/gifs/search?q=cats')
        client.get('/api/gifs/search?q=cats')

        assert len(calls) == 1

    def test_short_query(self, client, tenor):
        calls, _ = tenor

        assert client.get('/api/gifs/search?q=c').json == []
        assert calls == []

    def test_trending(self, client, tenor):
        calls, _ = tenor

        client.get('/api/gifs/trending')

        assert calls[0]['url'] == 'https://tenor.googleapis.com/v2/featured'
        assert 'q' not in calls[0]['params']

    def test_no_api_key(self, app, client, tenor):
        calls, _ = tenor
        app.config['TENOR_API_KEY'] = ''

        assert client.get('/api/gifs/search?q=cats').json == []
        assert calls == []

    def test_failure_is_reported(self, client, tenor, db):
        _, responses = tenor
        responses.append(tenor_response(500, {'error': {'message': 'quota'}}))

        assert client.get('/api/gifs/search?q=dogs').json == []
        report, = db.rows('error_reports')
        assert report['api_status'] == 500
        assert report['type'] == 'api'

    def test_missing_dimensions_default(self):
        result, = gifs.map_results([{'id': 'x', 'media_formats': {'gif': {'url': 'u'}}}])

        assert (result['preview'], result['width'], result['height']) == ('u', 200, 200)


class TestLinkPreview:
    def test_preview(self, client, builder, functions):
        functions.handlers['link-preview'] = lambda params: {
            'url': params['url'], 'title': 'Example', 'description': 'd', 'image': 'i.png',
            'siteName': 'ex', 'extra': 'dropped',
        }

        body = client.get('/api/link-preview?url=https://example.com', headers=auth(builder.with_user())).json

        assert body == {'url': 'https://example.com', 'title': 'Example', 'description': 'd',
                        'image': 'i.png', 'siteName': 'ex'}

    def test_failures_give_no_preview(self, client, builder, functions):
        user = builder.with_user()
        functions.handlers['link-preview'] = lambda params: {'error': 'blocked'}

        assert client.get('/api/link-preview?url=https://a.test', headers=auth(user)).json is None
        assert client.get('/api/link-preview?url=https://b.test', headers=auth(user)).json is None
        assert client.get('/api/link-preview', headers=auth(user)).json is None

    def test_unknown_function(self, client, builder):
        assert client.get('/api/link-preview?url=https://a.test', headers=auth(builder.with_user())).json is None

    def test_requires_login(self, client):
        assert client.get('/api/link-preview?url=https://a.test').status_code == 401

"""
GIF search (Tenor v2 API).
"""

import requests

from feedfy import config
from feedfy.reporting import report_http_failure

MEDIA_FILTER = 'gif,tinygif'
DEFAULT_SIZE = 200


def map_results(results: list[dict]) -> list[dict]:
    gifs = []
    for r in results or []:
        formats = r.get('media_formats') or {}
        gif = formats.get('gif') or formats.get('mediumgif') or {}
        preview = formats.get('tinygif') or formats.get('nanogif') or {}
        dims = preview.get('dims') or []
        gifs.append({
            'id': r.get('id'),
            'title': r.get('title') or r.get('content_description') or '',
            'url': gif.get('url') or '',
            'preview': preview.get('url') or gif.get('url') or '',
            'width': (dims[0] if len(dims) > 0 else 0) or DEFAULT_SIZE,
            'height': (dims[1] if len(dims) > 1 else 0) or DEFAULT_SIZE,
        })
    return gifs


def _fetch(endpoint: str, params: dict, api_key: str, reporter=None, backend=None) -> list[dict]:
    api_key = api_key if api_key is not None else config.TENOR_API_KEY
    if not api_key:
        return []
    params = {**params, 'key': api_key, 'client_key': config.TENOR_CLIENT_KEY, 'media_filter': MEDIA_FILTER}
    response = requests.get(f'{config.TENOR_API_URL}/{endpoint}', params=params, timeout=config.REQUEST_TIMEOUT)
    if not response.ok:
        if reporter is not None and backend is not None:
            report_http_failure(reporter, backend, response)
        return []
    return map_results(response.json().get('results') or [])


def search_gifs(query: str, limit: int = 20, api_key: str = None, reporter=None, backend=None) -> list[dict]:
    return _fetch('search', {'q': query, 'limit': str(limit)}, api_key, reporter, backend)


def get_trending_gifs(limit: int = 20, api_key: str = None, reporter=None, backend=None) -> list[dict]:
    return _fetch('featured', {'limit': str(limit)}, api_key, reporter, backend)

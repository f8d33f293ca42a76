"""
Open Graph preview of a URL, fetched by the link-preview edge function.
"""

import requests

from feedfy.errors import BackendError

PREVIEW_FIELDS = ('url', 'title', 'description', 'image', 'siteName')


def fetch_link_preview(backend, url: str) -> dict | None:
    """{url, title, description, image, siteName}, or None on any failure"""
    if not url:
        return None
    try:
        data = backend.functions.invoke('link-preview', {'url': url})
    except (BackendError, requests.RequestException, ValueError):
        return None
    if not isinstance(data, dict) or data.get('error'):
        return None
    return {k: data.get(k) for k in PREVIEW_FIELDS}

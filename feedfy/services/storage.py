"""
Media uploads into the public course-media bucket.
"""

import time

from feedfy import config
from feedfy.errors import FeedfyError, BackendError


def ensure_bucket(backend, bucket: str = config.STORAGE_BUCKET):
    buckets = backend.storage.list_buckets() or []
    if not any(b.get('name') == bucket for b in buckets):
        backend.storage.create_bucket(bucket, public=True, file_size_limit=config.STORAGE_MAX_BYTES)


def object_path(filename: str, path: str, now_ms: int = None) -> str:
    """'<path>/<ms timestamp>.<ext>'"""
    ext = filename.rsplit('.', 1)[-1]
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f'{path}/{now_ms}.{ext}'


def upload_file(backend, filename: str, content: bytes, path: str, content_type: str = None,
                cache_control: str = config.STORAGE_CACHE_CONTROL) -> str:
    """Uploads and returns the public URL of the new object"""
    bucket = config.STORAGE_BUCKET
    ensure_bucket(backend, bucket)
    file_path = object_path(filename, path)
    try:
        backend.storage.upload(bucket, file_path, content, content_type=content_type,
                               cache_control=cache_control, upsert=False)
    except BackendError as e:
        if 'Bucket not found' in e.message:
            raise FeedfyError(f'Storage bucket "{bucket}" is not configured. '
                              'Create it in the hosted backend or use external URLs.')
        raise
    return backend.storage.get_public_url(bucket, file_path)


def delete_file(backend, url: str) -> bool:
    bucket = config.STORAGE_BUCKET
    parts = (url or '').split(f'{bucket}/', 1)
    path = parts[1] if len(parts) > 1 else ''
    if not path:
        return False
    backend.storage.remove(bucket, [path])
    return True

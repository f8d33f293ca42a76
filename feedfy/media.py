"""
Avatar, image and video URL normalization.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

UI_AVATARS_URL = 'https://ui-avatars.com/api/'
DEFAULT_IMAGE_MIME = 'image/png'

YOUTUBE_RE = re.compile(r'(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^"&?/\s]{11})')
YOUTUBE_EMBED_RE = re.compile(r'embed/([^"&?/\s]{11})')
VIMEO_RE = re.compile(r'vimeo\.com/(\d+)')
VIMEO_PLAYER_RE = re.compile(r'video/(\d+)')


def encode_uri_component(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def get_avatar_url(avatar_url: Optional[str], fallback_name: str = None) -> Optional[str]:
    """
    Avatar URL for display:
        ''/None     -> generated initials avatar (or None without a name)
        data:/http  -> unchanged
        other       -> raw base64, wrapped as PNG data URL
    """
    if not avatar_url:
        if fallback_name:
            return f'{UI_AVATARS_URL}?name={encode_uri_component(fallback_name)}'
        return None
    if avatar_url.startswith('data:') or avatar_url.startswith('http'):
        return avatar_url
    return f'data:{DEFAULT_IMAGE_MIME};base64,{avatar_url}'


def image_data_url(data: Optional[str], mime_type: Optional[str] = None, url: Optional[str] = None) -> Optional[str]:
    """Stored base64 image wins over the plain URL"""
    if data:
        return f'data:{mime_type or DEFAULT_IMAGE_MIME};base64,{data}'
    return url or None


@dataclass
class VideoSource:
    provider: str   # youtube | vimeo
    video_id: str

    @property
    def embed_url(self) -> str:
        if self.provider == 'youtube':
            return f'https://www.youtube.com/embed/{self.video_id}'
        return f'https://player.vimeo.com/video/{self.video_id}'

    def to_dict(self) -> dict:
        return {'provider': self.provider, 'video_id': self.video_id, 'embed_url': self.embed_url}


def parse_video_url(url: Optional[str]) -> Optional[VideoSource]:
    if not url:
        return None
    m = YOUTUBE_RE.search(url)
    if m:
        return VideoSource('youtube', m.group(1))
    m = VIMEO_RE.search(url)
    if m:
        return VideoSource('vimeo', m.group(1))
    if 'youtube.com/embed' in url or 'youtu.be' in url:
        m = YOUTUBE_EMBED_RE.search(url)
        if m:
            return VideoSource('youtube', m.group(1))
    if 'vimeo.com/video' in url:
        m = VIMEO_PLAYER_RE.search(url)
        if m:
            return VideoSource('vimeo', m.group(1))
    return None

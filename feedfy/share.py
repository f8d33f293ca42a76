"""
Share-sheet fallback: native share on mobile devices, clipboard otherwise.
"""

import re
from typing import Callable, Optional

MOBILE_RE = re.compile(r'Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini', re.I)


class ShareCancelled(Exception):
    """The user dismissed the native share sheet."""


def is_mobile_device(user_agent: Optional[str]) -> bool:
    return bool(user_agent and MOBILE_RE.search(user_agent))


def choose_share_method(user_agent: Optional[str], native_available: bool) -> str:
    return 'native' if native_available and is_mobile_device(user_agent) else 'clipboard'


def share_content(data: dict, user_agent: Optional[str], native_share: Optional[Callable] = None,
                  clipboard: Optional[Callable] = None) -> tuple[bool, str]:
    """
    Runs the share fallback chain and returns (success, method).
    native_share(data) may raise ShareCancelled (no fallback) or any OSError
    (falls through to the clipboard); clipboard(url) may raise OSError.
    """
    if native_share and is_mobile_device(user_agent):
        try:
            native_share(data)
            return True, 'native'
        except ShareCancelled:
            return False, 'native'
        except OSError:
            pass
    if not clipboard:
        return False, 'clipboard'
    try:
        clipboard(data['url'])
        return True, 'clipboard'
    except OSError:
        return False, 'clipboard'


def get_post_url(post_id, community_slug: str = None, base_url: str = '') -> str:
    base_url = base_url.rstrip('/')
    if community_slug:
        return f'{base_url}/c/{community_slug}/post/{post_id}'
    return f'{base_url}/post/{post_id}'

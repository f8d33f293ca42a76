"""
Configuration - environment variables and application constants.

Values come from the process environment (or a local .env file);
create_app() copies them into app.config so tests can override them.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ====== Hosted backend ======
SUPABASE_URL = os.getenv('SUPABASE_URL', 'http://localhost:54321')
SUPABASE_ANON_KEY = os.getenv('SUPABASE_ANON_KEY', '')
SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY', '')
REQUEST_TIMEOUT = 10    # Seconds

# ====== Webhooks ======
HOTMART_HOTTOK = os.getenv('HOTMART_HOTTOK', '')
REALTIME_WEBHOOK_SECRET = os.getenv('REALTIME_WEBHOOK_SECRET', '')

# ====== Third party ======
TENOR_API_KEY = os.getenv('TENOR_API_KEY', '')
TENOR_API_URL = 'https://tenor.googleapis.com/v2'
TENOR_CLIENT_KEY = 'feedfy'

# ====== Server ======
DATA_DIR = os.getenv('FEEDFY_DATA_DIR', 'data')
DEFAULT_PORT = int(os.getenv('FEEDFY_PORT', '5000'))
PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', 'http://localhost:5173')

# ====== Query cache ======
QUERY_STALE_SECONDS = 60
UNREAD_POLL_SECONDS = 30
ROLE_STALE_SECONDS = 300
CACHE_GC_SECONDS = 300      # Entries not read for this long are dropped
CACHE_MAX_ENTRIES = 5000

# ====== Change feeds ======
REALTIME_IDLE_SECONDS = 1800   # Channels unused this long are removed

# ====== Storage ======
STORAGE_BUCKET = 'course-media'
STORAGE_MAX_BYTES = 52428800  # 50MB
STORAGE_CACHE_CONTROL = '3600'

# ====== Error reporting ======
ERROR_REPORT_COOLDOWN = 10       # Seconds between identical reports
ERROR_REPORT_MAX_HASHES = 100

# ====== Invites ======
COMMUNITY_INVITE_DAYS = 7


def as_dict() -> dict:
    """All upper-case settings of this module, for app.config.update()."""
    return {k: v for k, v in globals().items() if k.isupper()}

"""
Studio Configuration - All constants and settings.
"""
import os
import sys
from pathlib import Path

# ============================================
# SCREEN & DISPLAY (portrait reel viewport)
# ============================================

SCREEN_WIDTH = 540
SCREEN_HEIGHT = 960

# ============================================
# NETWORK ENDPOINTS
# ============================================

SUPABASE_URL = os.environ.get('SUPABASE_URL', 'http://localhost:54321').rstrip('/')
SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')
API_URL = os.environ.get('STUDIO_API_URL', 'http://localhost:3001').rstrip('/')
APP_URL = os.environ.get('STUDIO_APP_URL', 'http://localhost:5173').rstrip('/')

# Optional password sign-in at startup
STUDIO_EMAIL = os.environ.get('STUDIO_EMAIL')
STUDIO_PASSWORD = os.environ.get('STUDIO_PASSWORD')

# Storage bucket holding reel uploads
VIDEO_BUCKET = 'studio-videos'

# ============================================
# PATHS
# ============================================

DATA_DIR = Path(os.environ.get('STUDIO_DATA_DIR', Path.home() / '.studio'))
POSITIONS_PATH = DATA_DIR / 'positions.json'
THUMBS_DIR = DATA_DIR / 'thumbs'

LOG_DIR = Path.home() / 'studio' / 'logs'
LOG_FILE = LOG_DIR / 'studio.log'
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB per file
LOG_BACKUP_COUNT = 10

# ============================================
# COMMAND LINE FLAGS
# ============================================

MOCK_MODE = '--mock' in sys.argv or '-m' in sys.argv
FULLSCREEN = '--fullscreen' in sys.argv or '-f' in sys.argv
DESKTOP_MODE = '--desktop' in sys.argv


def _flag_value(name: str):
    """Value of `--name=value` or `--name value` on the command line."""
    for i, arg in enumerate(sys.argv):
        if arg.startswith(name + '='):
            return arg.split('=', 1)[1]
        if arg == name and i + 1 < len(sys.argv):
            return sys.argv[i + 1]
    return None


# Shared links open the feed with this reel first
HIGHLIGHT_ID = _flag_value('--highlight')
START_CATEGORY = _flag_value('--category') or 'All'

# ============================================
# COLORS
# ============================================

COLORS = {
    'bg_primary': (0, 0, 0),
    'bg_card': (18, 18, 22),
    'bg_elevated': (40, 40, 48),
    'accent': (124, 58, 237),  # Purple #7C3AED
    'like': (239, 68, 68),
    'text_primary': (255, 255, 255),
    'text_secondary': (170, 170, 180),
    'text_muted': (96, 96, 104),
    'success': (29, 185, 84),
    'error': (232, 80, 80),
}

CARD_PADDING = 24
PROGRESS_BAR_HEIGHT = 4

# ============================================
# FEED
# ============================================

PAGE_SIZE = 10
FAST_PATH_COUNT = 3          # Items enriched synchronously on page 0
MAX_CONSECUTIVE_ERRORS = 3   # Stop paging once exceeded
ENGAGEMENT_WINDOW_DAYS = 7
CATEGORIES = [
    'All', 'Tech', 'Comedy', 'Sports', 'Education', 'Inspiration',
    'Music', 'Gaming', 'Food', 'Fitness', 'Lifestyle', 'Art',
]

# Composite engagement weights
SCORE_WEIGHTS = {'views': 1, 'likes': 3, 'comments': 6, 'shares': 4}

# ============================================
# PREFETCH
# ============================================

PREFETCH_WINDOW = 3          # Items from the end that trigger the next page
PREFETCH_PAGE_CAP = 2        # Pages fetched ahead of the one being viewed
PRELOAD_AHEAD = 2            # Video URLs warmed ahead of the active card
PRELOAD_QUEUE_MAX = 8
PRELOAD_COOLDOWN = 0.25      # Seconds between warmed URLs
PRELOAD_BYTES = 256 * 1024   # Enough for container metadata

# ============================================
# VISIBILITY & PLAYBACK
# ============================================

DESKTOP_VISIBILITY = 0.99
MOBILE_VISIBILITY = 0.6
SNAP_DECAY_RATE = 12.0
DEFAULT_VIDEO_DURATION = 30.0
POSITION_EXPIRY_HOURS = 24
OUTRO_DURATION = 3.0

# ============================================
# TOUCH & GESTURES
# ============================================

SWIPE_THRESHOLD = 60      # Minimum distance for swipe
SWIPE_VELOCITY = 0.4      # Minimum velocity (pixels/ms)
LONG_PRESS_TIME = 0.8     # Hold to open comments (seconds)

# ============================================
# NOTICES & NOTIFICATIONS
# ============================================

NOTICE_DURATION = 3.0
NOTIFICATION_POLL_INTERVAL = 15.0
REALTIME_HEARTBEAT_INTERVAL = 25.0

# ============================================
# RECORDING
# ============================================

SAMPLE_RATE = 44100
RECORD_MIN_SECONDS = 10
RECORD_MAX_SECONDS = 60
MIC_GAIN = 1.0
BACKGROUND_GAIN = 0.35
# Optional background track mixed under the mic (16-bit PCM WAV)
BACKGROUND_TRACK = _flag_value('--sound') or os.environ.get('STUDIO_BACKGROUND_TRACK')
CAPTURE_CHUNK = 1024         # Frames per mic callback

# ============================================
# UI
# ============================================

TARGET_FPS = 60
IMAGE_CACHE_MAX_SIZE = 40    # Poster surfaces kept in memory
AVATAR_SIZE = 44

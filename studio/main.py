#!/usr/bin/env python3
"""
Studio - Reel feed viewer

Usage:
    python -m studio                    # Windowed, mobile behaviour (snap + sound)
    python -m studio --desktop          # Desktop behaviour (full visibility, muted)
    python -m studio --mock             # Demo data, no network
    python -m studio --highlight <id>   # Open a shared reel first
"""
import os
import sys
import shutil
import logging
import platform
from logging.handlers import RotatingFileHandler

from .config import (
    SCREEN_WIDTH, SCREEN_HEIGHT, SUPABASE_URL, API_URL,
    MOCK_MODE, FULLSCREEN, DESKTOP_MODE, HIGHLIGHT_ID, DATA_DIR,
    LOG_DIR, LOG_FILE, LOG_MAX_BYTES, LOG_BACKUP_COUNT,
)
from .app import Studio


def setup_logging():
    """Configure logging with console and rotating file handler."""
    level_name = os.environ.get('STUDIO_LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)

    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )
    file_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(console_formatter)
    console.setLevel(level)

    root = logging.getLogger()
    root.setLevel(min(level, logging.DEBUG))
    root.addHandler(console)

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(logging.DEBUG)  # File always gets DEBUG
        root.addHandler(file_handler)
        root.info(f'Logging to: {LOG_FILE}')
    except OSError as e:
        root.warning(f'Could not create log file: {e}')

    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('websocket').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)


def log_system_info(logger: logging.Logger):
    """Log a short environment banner at startup."""
    logger.info('=' * 50)
    logger.info('STUDIO STARTUP')
    logger.info('=' * 50)
    logger.info(f'Python: {sys.version.split()[0]}')
    logger.info(f'Platform: {platform.system()} {platform.release()}')
    try:
        total, used, free = shutil.disk_usage(DATA_DIR if DATA_DIR.exists() else '/')
        logger.info(f'Disk: {free // (1024**3)} GB free of {total // (1024**3)} GB')
    except OSError:
        logger.debug('Disk usage unavailable')
    logger.info('=' * 50)


def main():
    """Entry point for the Studio viewer."""
    setup_logging()
    logger = logging.getLogger(__name__)
    log_system_info(logger)

    if MOCK_MODE:
        logger.info('Mode: MOCK (demo data)')
    else:
        logger.info(f'Store: {SUPABASE_URL}')
        logger.info(f'Backend: {API_URL}')
    logger.info(f'Layout: {"desktop" if DESKTOP_MODE else "mobile"}')
    logger.info(f'Screen: {SCREEN_WIDTH}x{SCREEN_HEIGHT}, fullscreen={FULLSCREEN}')
    if HIGHLIGHT_ID:
        logger.info(f'Highlight: {HIGHLIGHT_ID}')

    print()
    print('Controls:')
    print('   ↑ ↓     Previous / next reel')
    print('   Space   Pause / resume')
    print('   L S H   Like, subscribe, share')
    print('   C       Comments')
    print('   M       Sound on/off')
    print('   R       Record voice-over')
    print('   Tab T   Category, sort')
    print('   Esc     Quit')
    print()

    app = Studio(fullscreen=FULLSCREEN)
    app.start()


if __name__ == '__main__':
    main()

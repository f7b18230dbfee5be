"""
Renderer - All drawing/rendering logic for the reel viewer.
"""
import logging
from typing import Dict, Optional, Tuple

import pygame

from .context import RenderContext
from .helpers import draw_aa_circle, draw_pill, fit_text, shade_bottom
from .image_cache import ImageCache
from ..models import Video, ACTIVE_PAUSED_BY_USER
from ..utils import format_count
from ..config import (
    SCREEN_WIDTH, SCREEN_HEIGHT, COLORS, CARD_PADDING, PROGRESS_BAR_HEIGHT,
    AVATAR_SIZE,
)

logger = logging.getLogger(__name__)

CARD_SIZE = (SCREEN_WIDTH, SCREEN_HEIGHT)


class Renderer:
    """Draws the reel stack, overlays and toasts."""

    def __init__(self, screen: pygame.Surface, image_cache: ImageCache):
        self.screen = screen
        self.image_cache = image_cache

        self.font_large = pygame.font.Font(None, 40)
        self.font_medium = pygame.font.Font(None, 30)
        self.font_small = pygame.font.Font(None, 24)

        self._text_cache: Dict[Tuple[str, int, tuple], pygame.Surface] = {}
        self._shade: Optional[pygame.Surface] = None

    def _text(self, text: str, font: pygame.font.Font, color: tuple) -> pygame.Surface:
        key = (text, id(font), color)
        surface = self._text_cache.get(key)
        if surface is None:
            if len(self._text_cache) > 300:
                self._text_cache.clear()
            surface = font.render(text, True, color)
            self._text_cache[key] = surface
        return surface

    def draw(self, ctx: RenderContext):
        self.screen.fill(COLORS['bg_primary'])

        if not ctx.videos:
            message = 'Loading reels...' if ctx.is_loading else 'No reels yet'
            self._draw_centered(message, self.font_medium, COLORS['text_secondary'])
        else:
            for index, video in enumerate(ctx.videos):
                offset = index - ctx.scroll_y
                if -1.0 < offset < 1.0:
                    self._draw_card(ctx, index, video, int(offset * SCREEN_HEIGHT))
            end_offset = len(ctx.videos) - ctx.scroll_y
            if ctx.end_of_feed and end_offset < 1.0:
                self._draw_end_card(int(end_offset * SCREEN_HEIGHT))

        self._draw_header(ctx)
        self._draw_notices(ctx)

    # ============================================
    # CARDS
    # ============================================

    def _draw_card(self, ctx: RenderContext, index: int, video: Video, y: int):
        poster = self.image_cache.get(video.thumbnail_url, CARD_SIZE)
        self.screen.blit(poster, (0, y))

        if self._shade is None:
            self._shade = pygame.Surface(CARD_SIZE, pygame.SRCALPHA)
            shade_bottom(self._shade, SCREEN_HEIGHT // 3)
        self.screen.blit(self._shade, (0, y))

        self._draw_meta(ctx, video, y)
        self._draw_actions(ctx, video, y)

        progress = ctx.progress.get(index, 0.0)
        bar_y = y + SCREEN_HEIGHT - PROGRESS_BAR_HEIGHT
        pygame.draw.rect(self.screen, COLORS['text_muted'], (0, bar_y, SCREEN_WIDTH, PROGRESS_BAR_HEIGHT))
        pygame.draw.rect(self.screen, COLORS['accent'],
                         (0, bar_y, int(SCREEN_WIDTH * progress), PROGRESS_BAR_HEIGHT))

        if index == ctx.active_index:
            if ctx.card_states.get(index) == ACTIVE_PAUSED_BY_USER:
                self._draw_pause_badge(y)
            elif ctx.in_outro:
                self._draw_centered('Replaying...', self.font_medium, COLORS['text_primary'], y)

    def _draw_meta(self, ctx: RenderContext, video: Video, y: int):
        x = CARD_PADDING
        bottom = y + SCREEN_HEIGHT - CARD_PADDING - PROGRESS_BAR_HEIGHT
        text_width = SCREEN_WIDTH - CARD_PADDING * 2 - 80

        avatar = self.image_cache.get(video.creator.avatar_url, (AVATAR_SIZE, AVATAR_SIZE))
        avatar_y = bottom - 110
        self.screen.blit(avatar, (x, avatar_y))

        name = video.creator.name or video.channel_name or 'Unknown'
        self.screen.blit(self._text(fit_text(self.font_medium, name, text_width - AVATAR_SIZE - 12),
                                    self.font_medium, COLORS['text_primary']),
                         (x + AVATAR_SIZE + 12, avatar_y + 4))

        subs = ctx.subscriber_counts.get(video.channel_id, video.subscriber_count)
        label = 'Subscribed' if video.channel_id in ctx.subscribed else 'Subscribe'
        sub_text = self._text(f'{label} · {format_count(subs)}', self.font_small, COLORS['text_secondary'])
        self.screen.blit(sub_text, (x + AVATAR_SIZE + 12, avatar_y + 28))

        title = fit_text(self.font_large, video.title or 'Untitled', text_width)
        self.screen.blit(self._text(title, self.font_large, COLORS['text_primary']), (x, bottom - 56))

        if video.description:
            desc = fit_text(self.font_small, video.description, text_width)
            self.screen.blit(self._text(desc, self.font_small, COLORS['text_secondary']), (x, bottom - 22))

    def _draw_actions(self, ctx: RenderContext, video: Video, y: int):
        x = SCREEN_WIDTH - CARD_PADDING - 24
        base = y + SCREEN_HEIGHT - 420
        liked = video.id in ctx.liked
        rows = [
            ('♥', video.likes_count, COLORS['like'] if liked else COLORS['text_primary']),
            ('✎', video.comments_count, COLORS['text_primary']),
            ('↗', video.shares_count, COLORS['text_primary']),
            ('▶', video.views, COLORS['text_secondary']),
        ]
        for row, (icon, value, color) in enumerate(rows):
            cy = base + row * 78
            draw_aa_circle(self.screen, COLORS['bg_elevated'], (x, cy), 24)
            glyph = self._text(icon, self.font_medium, color)
            self.screen.blit(glyph, glyph.get_rect(center=(x, cy)))
            count = self._text(format_count(value), self.font_small, COLORS['text_primary'])
            self.screen.blit(count, count.get_rect(center=(x, cy + 38)))

    def _draw_pause_badge(self, y: int):
        cx, cy = SCREEN_WIDTH // 2, y + SCREEN_HEIGHT // 2
        draw_aa_circle(self.screen, COLORS['bg_elevated'], (cx, cy), 48)
        pygame.draw.rect(self.screen, COLORS['text_primary'], (cx - 18, cy - 22, 12, 44))
        pygame.draw.rect(self.screen, COLORS['text_primary'], (cx + 6, cy - 22, 12, 44))

    def _draw_end_card(self, y: int):
        pygame.draw.rect(self.screen, COLORS['bg_card'], (0, y, SCREEN_WIDTH, SCREEN_HEIGHT))
        self._draw_centered("You're all caught up", self.font_large, COLORS['text_primary'], y)

    # ============================================
    # OVERLAYS
    # ============================================

    def _draw_header(self, ctx: RenderContext):
        chip = f'{ctx.category} · {"Trending" if ctx.sort == "engagement" else "Newest"}'
        surface = self._text(chip, self.font_small, COLORS['text_primary'])
        draw_pill(self.screen, COLORS['bg_elevated'],
                  (CARD_PADDING - 10, CARD_PADDING - 6, surface.get_width() + 20, surface.get_height() + 12), 180)
        self.screen.blit(surface, (CARD_PADDING, CARD_PADDING))

        right = SCREEN_WIDTH - CARD_PADDING
        sound = self._text('Sound on' if ctx.sound_on else 'Muted', self.font_small, COLORS['text_secondary'])
        self.screen.blit(sound, (right - sound.get_width(), CARD_PADDING))

        if ctx.unread_notifications:
            badge = self._text(str(ctx.unread_notifications), self.font_small, COLORS['text_primary'])
            bx = right - sound.get_width() - 30
            draw_aa_circle(self.screen, COLORS['like'], (bx, CARD_PADDING + 8), 12)
            self.screen.blit(badge, badge.get_rect(center=(bx, CARD_PADDING + 8)))

        if ctx.recording_seconds is not None:
            rec = self._text(f'REC {ctx.recording_seconds:0.0f}s', self.font_small, COLORS['error'])
            self.screen.blit(rec, (CARD_PADDING, CARD_PADDING + 36))

    def _draw_notices(self, ctx: RenderContext):
        y = SCREEN_HEIGHT - 160
        for notice in reversed(ctx.notices):
            color = COLORS['error'] if notice.level == 'error' else COLORS['bg_elevated']
            surface = self._text(notice.message, self.font_small, COLORS['text_primary'])
            w, h = surface.get_width() + 32, surface.get_height() + 16
            x = (SCREEN_WIDTH - w) // 2
            draw_pill(self.screen, color, (x, y, w, h), 230)
            self.screen.blit(surface, (x + 16, y + 8))
            y -= h + 8

    def _draw_centered(self, text: str, font: pygame.font.Font, color: tuple, y: int = 0):
        surface = self._text(text, font, color)
        self.screen.blit(surface, surface.get_rect(center=(SCREEN_WIDTH // 2, y + SCREEN_HEIGHT // 2)))

"""
UI Helpers - Drawing utilities for pygame.
"""
import pygame
import pygame.gfxdraw
from PIL import Image


def draw_aa_circle(surface: pygame.Surface, color: tuple, center: tuple, radius: int):
    """Draw an anti-aliased filled circle."""
    cx, cy = int(center[0]), int(center[1])
    r = int(radius)
    pygame.gfxdraw.aacircle(surface, cx, cy, r, color)
    pygame.gfxdraw.filled_circle(surface, cx, cy, r, color)


def draw_pill(surface: pygame.Surface, color: tuple, rect: tuple, alpha: int = 255):
    """Rounded badge/button background. Supports translucency."""
    x, y, w, h = rect
    if alpha >= 255:
        pygame.draw.rect(surface, color, rect, border_radius=h // 2)
        return
    pill = pygame.Surface((w, h), pygame.SRCALPHA)
    pygame.draw.rect(pill, (*color[:3], alpha), (0, 0, w, h), border_radius=h // 2)
    surface.blit(pill, (x, y))


def fit_text(font: pygame.font.Font, text: str, max_width: int) -> str:
    """Truncate text with an ellipsis so it renders within max_width."""
    if font.size(text)[0] <= max_width:
        return text
    while text and font.size(text + '...')[0] > max_width:
        text = text[:-1]
    return text.rstrip() + '...'


def fit_cover(img: Image.Image, size: tuple) -> Image.Image:
    """Scale and center-crop an image to fill `size` (object-fit: cover)."""
    target_w, target_h = size
    scale = max(target_w / img.width, target_h / img.height)
    resized = img.resize(
        (max(1, round(img.width * scale)), max(1, round(img.height * scale))),
        Image.Resampling.LANCZOS,
    )
    left = (resized.width - target_w) // 2
    top = (resized.height - target_h) // 2
    return resized.crop((left, top, left + target_w, top + target_h))


def shade_bottom(surface: pygame.Surface, height: int, max_alpha: int = 200):
    """Dark gradient over the bottom of a card so overlay text stays readable."""
    w, h = surface.get_size()
    height = min(height, h)
    gradient = pygame.Surface((w, height), pygame.SRCALPHA)
    for row in range(height):
        alpha = int(max_alpha * row / max(1, height - 1))
        pygame.draw.line(gradient, (0, 0, 0, alpha), (0, row), (w, row))
    surface.blit(gradient, (0, h - height))

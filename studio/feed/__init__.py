"""
Studio Feed - Paging, enrichment and ranking of the reel feed.
"""
from .loader import FeedLoader
from .enrichment import Enricher
from .ranking import rank_by_engagement, sort_newest, move_to_front
from .sidebar import load_sidebar

__all__ = ['FeedLoader', 'Enricher', 'rank_by_engagement', 'sort_newest', 'move_to_front', 'load_sidebar']

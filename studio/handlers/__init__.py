"""
Studio Handlers - Input and event handling.
"""
from .touch import TouchHandler
from .realtime import RealtimeListener, realtime_url

__all__ = ['TouchHandler', 'RealtimeListener', 'realtime_url']

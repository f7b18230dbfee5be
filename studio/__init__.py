"""
Studio - Short-video reel feed client.
"""
__version__ = '0.4.0'

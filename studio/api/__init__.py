"""
Studio API modules - Remote store and backend integrations.
"""
from .rest import RestClient, AuthSession
from .memory import MemoryStore, seed_demo
from .server import ServerAPI, NullServerAPI

__all__ = ['RestClient', 'AuthSession', 'MemoryStore', 'seed_demo', 'ServerAPI', 'NullServerAPI']

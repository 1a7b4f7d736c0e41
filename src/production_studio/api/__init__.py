"""HTTP and WebSocket surface for running productions"""

from .main import create_app

__all__ = ['create_app']

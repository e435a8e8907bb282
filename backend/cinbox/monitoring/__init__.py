"""
Monitoring module for read-only inbox visibility.

Provides HTTP endpoints for observing the inbox loop, items and tokens.
Does NOT move, retry or otherwise touch items.
"""

from .app import create_app
from .server import router

__all__ = ["create_app", "router"]

"""
Services package for the arena core.

Shared infrastructure used by the operations layer.
"""

from .cache import TTLCache

__all__ = ['TTLCache']

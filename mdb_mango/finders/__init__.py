"""
Finders: read-only stores with sync and async interfaces.
"""

from .finder import MangoFinder
from .finder_async import MangoFinderAsync

__all__ = [
    "MangoFinder",
    "MangoFinderAsync",
]

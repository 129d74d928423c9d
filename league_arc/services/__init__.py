"""
Services package for League Arc.

Read-side services over the database: league standings, the global
leaderboard and the fixture generation lock.
"""

from .base import BaseService
from .generation_lock import GenerationLock

__all__ = ['BaseService', 'GenerationLock']

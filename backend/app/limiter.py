"""
Global rate limiter instance (slowapi).

Separated from main.py to avoid circular imports when used in routers.
Search providers bill per query, so the search routes carry their own limits.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["120/minute"])

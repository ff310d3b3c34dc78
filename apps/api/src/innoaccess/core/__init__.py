"""
Core module - Configuration, database, auth, email, and utilities.
"""

from innoaccess.core.config import get_settings, settings
from innoaccess.core.database import Base, close_db, get_db, init_db
from innoaccess.core.redis import close_redis, get_redis, init_redis
from innoaccess.core.security import decode_token, secrets_match

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
    # Security
    "decode_token",
    "secrets_match",
]

"""Infrastructure helpers shared by the engine and the store."""

from .storage import SQLiteManager
from .ua_pool import UserAgentPool

__all__ = ["SQLiteManager", "UserAgentPool"]

"""Rate limiting middleware using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Visitor writes are anonymous, so the client address is the only key
limiter = Limiter(key_func=get_remote_address)


def get_limiter() -> Limiter:
    """Get the global limiter instance."""
    return limiter


def reset_limiter() -> None:
    """Clear recorded hits. Used in tests to isolate rate limit state."""
    limiter.reset()
    # In-memory storage keeps its counters in a plain dict
    storage = getattr(limiter, "_storage", None)
    if storage is not None and hasattr(storage, "storage"):
        storage.storage.clear()

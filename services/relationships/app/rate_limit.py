"""
Global slowapi rate limiter.

Imported by the social graph router for per-endpoint limits.  Mounted onto
app.state in main.py so slowapi middleware can find it; create_app() toggles
``limiter.enabled`` from Settings.rate_limit_enabled.

Storage: RATE_LIMIT_STORAGE_URI (e.g. redis://localhost:6379/0 in production),
in-memory otherwise.
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

FOLLOW_RATE_LIMIT = "50/hour"

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
)

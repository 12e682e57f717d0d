from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings


# Shared so routes can declare tighter per-endpoint limits than the default
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])

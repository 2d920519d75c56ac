from slowapi import Limiter

from ward_access.core import config
from ward_access.features.users.dependencies import get_authorization_header


# Keyed by bearer token so each caller gets their own budget
limiter = Limiter(key_func=get_authorization_header, enabled=config.RATE_LIMIT_ENABLED)

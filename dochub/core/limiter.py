from slowapi import Limiter
from slowapi.util import get_remote_address
from dochub.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

# Applied to the credential endpoints
CREDENTIALS_RATE_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"

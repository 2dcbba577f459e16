"""Rate limiting with slowapi.

Every route gets ``DEFAULT_LIMIT`` per client IP. Credential endpoints and
workbook uploads are tightened with ``@limiter.limit(...)`` using the named
limits below; decorated handlers must accept a ``request: Request`` argument.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

DEFAULT_LIMIT = "60/minute"
LOGIN_LIMIT = "10/minute"
REFRESH_LIMIT = "20/minute"
UPLOAD_LIMIT = "5/minute"

limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT_LIMIT])

"""
API Authentication for FastAPI endpoints
"""

import hashlib
import hmac
from typing import List, Optional

from config import settings

# API key header and query parameter names
API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY = "api_key"


def configured_api_keys() -> List[str]:
    """Configured keys (comma-separated API_KEY); empty means authentication is off."""
    if not settings.API_KEY:
        return []
    return [key.strip() for key in settings.API_KEY.split(",") if key.strip()]


def check_api_key(api_key: Optional[str]) -> bool:
    """
    Verify API key against configured keys

    Supports:
    - Single API key from environment variable
    - Multiple API keys (comma-separated)
    - Hashed keys, stored as "hash:<sha256 hex>"
    """
    valid_keys = configured_api_keys()

    if not valid_keys:
        # No API key configured - allow all requests (development mode)
        return True

    if not api_key:
        return False

    for valid_key in valid_keys:
        if valid_key.startswith("hash:"):
            provided_hash = hashlib.sha256(api_key.encode()).hexdigest()
            if hmac.compare_digest(valid_key[5:].encode(), provided_hash.encode()):
                return True
        elif hmac.compare_digest(valid_key.encode(), api_key.encode()):
            return True

    return False

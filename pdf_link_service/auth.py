"""
Authentication Module

Checks the shared bearer secret on the conversion endpoint. The secret comes
from the settings object held on app.state; nothing is re-read per request.
"""

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)

MALFORMED_CREDENTIALS = "Authorization header missing or invalid"
INVALID_TOKEN = "Invalid token"


def tokens_match(presented: str, expected: str) -> bool:
    """Byte-for-byte comparison in constant time."""
    return secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


async def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> HTTPAuthorizationCredentials:
    """
    Verify shared secret token.

    Args:
        request: Incoming request (settings are read from app.state)
        credentials: Bearer token from request header, None if missing/not Bearer

    Returns:
        The credentials if valid

    Raises:
        HTTPException: 401 if the header is missing, malformed or the token is wrong
    """
    client = request.client.host if request.client else "unknown"

    if credentials is None or not credentials.credentials:
        logger.warning(f"Rejected {request.url.path} from {client}: missing bearer credentials")
        raise HTTPException(status_code=401, detail=MALFORMED_CREDENTIALS)

    expected_secret = request.app.state.settings.bearer_token
    if not tokens_match(credentials.credentials, expected_secret):
        logger.warning(f"Rejected {request.url.path} from {client}: invalid token")
        raise HTTPException(status_code=401, detail=INVALID_TOKEN)

    return credentials

"""
Authentication dependencies for FastAPI.

The marketplace does not store identities: the bearer token's user id is
trusted as-is and used as the ledger account key.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from inspectswap.app.core.exceptions import AuthenticationError
from inspectswap.app.core.jwt import decode_access_token

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload; ``user_id`` is normalized to a string
        (falls back to ``sub`` when the provider omits it)

    Raises:
        AuthenticationError: 401 if the token is invalid or carries no user id
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("user_id") or payload.get("sub")
    if user_id is None or str(user_id).strip() == "":
        raise AuthenticationError("Invalid token payload")

    payload["user_id"] = str(user_id)
    return payload

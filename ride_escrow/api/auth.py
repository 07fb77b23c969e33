"""
Caller identity.

Every command runs on behalf of the account named in the ``sub`` claim of
an HS256 bearer token.  The core trusts that identity as-is; wallet
signature checks and the like belong to whoever issues the token.

Wallet administration (deposits, freezes, balance reads) additionally
requires ``"admin": true`` in the token.
"""

from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ride_escrow.config import settings

bearer_scheme = HTTPBearer(auto_error=False)

# Matches the width of the account columns
MAX_ACCOUNT_LENGTH = 64


def create_access_token(account: str, **claims) -> str:
    """Sign a JWT for *account* with the configured secret."""
    return jwt.encode(
        {"sub": account, **claims}, settings.secret_key, algorithm=settings.jwt_algorithm
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode(credentials: Optional[HTTPAuthorizationCredentials]) -> dict[str, Any]:
    if credentials is None:
        raise _unauthorized("Missing Bearer token")
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise _unauthorized("Invalid or expired token")
    account = payload.get("sub")
    if not account or not isinstance(account, str) or len(account) > MAX_ACCOUNT_LENGTH:
        raise _unauthorized("Invalid token payload")
    return payload


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Decode the bearer token and return the caller's account id."""
    return _decode(credentials)["sub"]


async def get_optional_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Like ``get_caller`` but anonymous reads get ``None``."""
    if credentials is None:
        return None
    return await get_caller(credentials)


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    payload = _decode(credentials)
    if payload.get("admin") is not True:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin token required"
        )
    return payload["sub"]

"""
Ledgerline - FastAPI Dependencies

Shared dependencies for authentication and request language.
"""

from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.utils.i18n import normalize_language
from app.utils.security import verify_access_token


# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """
    Accept or reject the caller's bearer JWT.

    There is no local user table; the verified token payload is returned
    so handlers can log the subject.

    Raises:
        HTTPException: If the token is missing, invalid or has no subject
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_lang(
    request: Request,
    lang: Optional[str] = Query(None, description="Response language (en, fa)"),
) -> str:
    """Language for messages: ?lang= first, then Accept-Language."""
    return normalize_language(lang or request.headers.get("accept-language"))

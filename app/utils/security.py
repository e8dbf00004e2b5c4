"""
Ledgerline - Security Utilities

Bearer token handling. Tokens are minted by the external identity
service and verified here with the shared secret; ``create_access_token``
is kept for service-to-service calls and for tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Encode ``data`` as an access token.

    ``exp`` defaults to ``access_token_expire_minutes`` from now; ``iss``
    is added when an issuer is configured.
    """
    claims = dict(data)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims["exp"] = datetime.now(timezone.utc) + lifetime
    claims["type"] = ACCESS_TOKEN_TYPE
    if settings.jwt_issuer and "iss" not in claims:
        claims["iss"] = settings.jwt_issuer
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Signature-, expiry- and issuer-checked payload, or None."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"verify_aud": False},
        )
    except ExpiredSignatureError:
        logger.info("Rejected expired bearer token")
        return None
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        return None


def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Payload of a valid access token, or None."""
    payload = decode_token(token)
    if payload and payload.get("type") == ACCESS_TOKEN_TYPE:
        return payload
    return None

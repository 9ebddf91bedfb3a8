"""JWT helpers backing the identity gate."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from app.core.config import settings
from app.core.errors import Unauthorized

ALGORITHM = "HS256"


def _create_token(data: Dict[str, Any], expires: timedelta) -> str:
    now = datetime.now(timezone.utc)
    expire = now + expires
    to_encode = data.copy()
    to_encode.update(
        {
            "exp": expire,
            "iat": now,
            "nbf": now,
            "iss": settings.JWT_ISSUER,
            "aud": settings.JWT_AUDIENCE,
        }
    )
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(user_id: str, role: str) -> str:
    """Mint an access token the way the identity provider does (dev and tests)."""

    minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES or 15
    return _create_token(
        {"sub": user_id, "role": role, "type": "access"}, timedelta(minutes=minutes)
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature, audience, issuer and token type; return the claims."""

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError as exc:
        raise Unauthorized("Invalid token") from exc
    if payload.get("type") != "access":
        raise Unauthorized("Invalid token type")
    if not payload.get("sub"):
        raise Unauthorized("Invalid token")
    return payload

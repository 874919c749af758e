# backend/kisanvaani/utils/auth.py
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from kisanvaani.config import settings
from kisanvaani.errors import AuthenticationError

DEFAULT_EXPIRY = timedelta(days=7)

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None, **claims) -> str:
    to_encode = dict(claims)
    to_encode["sub"] = user_id
    to_encode["exp"] = datetime.now(timezone.utc) + (expires_delta or DEFAULT_EXPIRY)
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def decode_token(token: Optional[str]) -> str:
    """Validate a bearer token and return its subject (the user id)."""
    if not token:
        raise AuthenticationError("Authentication error: token missing")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Authentication error: token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Authentication error: invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Authentication error: token has no subject")
    return str(user_id)

def bearer_token(header: Optional[str]) -> Optional[str]:
    """'Bearer <tok>' -> '<tok>'; anything else -> None."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()

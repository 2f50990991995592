"""HS256 JWT token creation and validation for admin sessions."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import jwt, JWTError

from api.config.settings import settings


def create_token(data: dict[str, Any], expires_delta: timedelta = None) -> str:
    """
    Create an HS256-signed JWT token.

    Args:
        data: Claims to include in the token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode.update({"exp": expire, "iat": now})

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_admin_token(
    user_id: str,
    email: str,
    roles: list[str],
    chapter_id: Optional[int],
    expires_delta: timedelta = None,
) -> str:
    """Issue a token carrying the claims the admin endpoints resolve context from."""
    return create_token(
        {"sub": user_id, "email": email, "roles": roles, "chapter_id": chapter_id},
        expires_delta=expires_delta,
    )


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an HS256-signed JWT token.

    Raises:
        JWTError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired")
    except jwt.JWTClaimsError as e:
        raise JWTError(f"Invalid token claims: {e}")
    except JWTError as e:
        raise JWTError(f"Invalid token: {e}")


def should_refresh_token(payload: dict[str, Any]) -> bool:
    """Check if token should be refreshed (less than 50% lifetime remaining)."""
    exp = payload.get("exp")
    iat = payload.get("iat")

    if not exp or not iat:
        return False

    now = datetime.now(timezone.utc).timestamp()
    return (exp - now) < ((exp - iat) * 0.5)

from datetime import datetime, timedelta, timezone
from typing import Optional, Any
import hashlib
import hmac
import uuid

from jose import JWTError, jwt

from app.config import settings


def hash_code(code: str) -> str:
    """Hash a one-time code for storage."""
    return hashlib.sha256(code.encode()).hexdigest()


def verify_code_hash(code: str, code_hash: str) -> bool:
    """Constant-time comparison of a code against its stored hash."""
    return hmac.compare_digest(hash_code(code), code_hash)


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The subject of the token (the user's email)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include (role, name, supplier_id)

    Returns:
        Encoded JWT token string
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "jti": str(uuid.uuid4()),
        "type": "access"
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Decode and validate an access token.

    Returns:
        The claims, or None if the token is invalid, expired or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None

    if payload.get("type") != "access" or not payload.get("sub"):
        return None
    return payload

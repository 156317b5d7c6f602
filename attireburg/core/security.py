from datetime import datetime, timedelta, timezone
from typing import Optional, Any
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext

from attireburg.config import settings


# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a bcrypt hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    subject: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The subject of the token (usually user ID)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

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


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def verify_access_token(token: str) -> Optional[str]:
    """
    Verify an access token and return the subject (user ID).

    Returns:
        User ID string or None if invalid
    """
    payload = decode_token(token)
    if payload is None:
        return None

    if payload.get("type") != "access":
        return None

    return payload.get("sub")


# ==================== UNSUBSCRIBE LINKS ====================

def _variant_claim(variant_id: Optional[str | uuid.UUID]) -> str:
    return str(variant_id) if variant_id else ""


def create_unsubscribe_token(
    email: str,
    product_id: str | uuid.UUID,
    variant_id: Optional[str | uuid.UUID] = None,
) -> str:
    """
    Signed token embedded in waitlist email unsubscribe links.

    Binds the link to one (email, product, variant) subscription so that a
    link cannot be replayed against somebody else's address.
    """
    expire = datetime.now(timezone.utc) + timedelta(days=settings.UNSUBSCRIBE_TOKEN_MAX_AGE_DAYS)
    to_encode = {
        "sub": email.strip().lower(),
        "pid": str(product_id),
        "vid": _variant_claim(variant_id),
        "exp": expire,
        "type": "unsubscribe",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_unsubscribe_token(
    token: Optional[str],
    email: str,
    product_id: str | uuid.UUID,
    variant_id: Optional[str | uuid.UUID] = None,
) -> bool:
    """Check that an unsubscribe token is valid and matches the request."""
    if not token:
        return False

    payload = decode_token(token)
    if payload is None or payload.get("type") != "unsubscribe":
        return False

    return (
        payload.get("sub") == email.strip().lower()
        and payload.get("pid") == str(product_id)
        and payload.get("vid", "") == _variant_claim(variant_id)
    )

"""
JWT Token Handler Utilities
"""
import os
from datetime import datetime, timedelta
from typing import Tuple, Optional, Dict, Any
import jwt


JWT_SECRET = os.getenv("JWT_SECRET", "procto-dev-access-secret-min-32-chars")
REFRESH_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "procto-dev-refresh-secret-min-32-chars")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))
REFRESH_TOKEN_EXPIRE_DAYS = 7


def create_access_token(user_id: str, role: str) -> str:
    """Create a signed access token carrying the user's role"""
    now = datetime.utcnow()
    payload = {
        "user_id": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    """Create a signed refresh token"""
    now = datetime.utcnow()
    payload = {
        "user_id": user_id,
        "type": "refresh",
        "iat": now,
        "exp": now + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    }
    return jwt.encode(payload, REFRESH_SECRET, algorithm=JWT_ALGORITHM)


def create_tokens(user_id: str, role: str) -> Tuple[str, str]:
    """
    Create access and refresh tokens for a user.

    Args:
        user_id: The user's UUID string
        role: User role (student, faculty, admin)

    Returns:
        Tuple of (access_token, refresh_token)
    """
    return create_access_token(user_id, role), create_refresh_token(user_id)


def verify_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token string
        token_type: Either "access" or "refresh"

    Returns:
        Decoded payload dictionary

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Token is invalid or of the wrong type
    """
    secret = JWT_SECRET if token_type == "access" else REFRESH_SECRET

    payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])

    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError(f"Invalid token type. Expected {token_type}")

    return payload


def refresh_access_token(refresh_token: str, role_lookup) -> Optional[str]:
    """
    Generate a new access token from a valid refresh token.

    Args:
        refresh_token: Valid refresh token
        role_lookup: Callable mapping a user id to its current role,
            or None when the user no longer exists

    Returns:
        New access token or None if the refresh token is invalid
    """
    try:
        payload = verify_token(refresh_token, token_type="refresh")
    except jwt.PyJWTError:
        return None

    user_id = payload.get("user_id")
    if not user_id:
        return None

    role = role_lookup(user_id)
    if not role:
        return None

    return create_access_token(user_id, role)


def get_user_id_from_token(token: str) -> Optional[str]:
    """
    Extract user ID from a token without full verification (for logging purposes).
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
        return payload.get("user_id")
    except jwt.PyJWTError:
        return None

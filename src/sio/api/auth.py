"""
Authentication Module

JWT-based authentication for the SIO API. The admission lifecycle only
receives the role carried by the token.
"""

from datetime import datetime, timedelta, timezone
import hashlib

import structlog
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from sio.config import get_settings
from sio.models import Role

logger = structlog.get_logger(__name__)


# Simple password hashing (for demo - use bcrypt in production)
def _hash_password(password: str) -> str:
    """Hash password using SHA256 (demo only - use bcrypt in production)."""
    return hashlib.sha256(password.encode()).hexdigest()


def _verify_password(password: str, hashed: str) -> bool:
    """Verify password against hash."""
    return _hash_password(password) == hashed

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# Models
# =============================================================================

class TokenPayload(BaseModel):
    """JWT token payload."""
    sub: str  # User ID
    username: str
    role: Role
    exp: datetime | None = None


class User(BaseModel):
    """Authenticated staff member."""
    id: str
    username: str
    role: Role
    is_active: bool = True
    full_name: str | None = None


class UserInfo(BaseModel):
    """Public user fields returned at login."""
    username: str
    role: Role


class TokenResponse(BaseModel):
    """Token response model."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserInfo


class LoginRequest(BaseModel):
    """Login request model."""
    username: str
    password: str


# =============================================================================
# In-Memory User Store (for development)
# =============================================================================

DEMO_USERS = {
    "medico": {
        "id": "1",
        "password_hash": _hash_password("1234"),
        "role": Role.DOCTOR,
        "full_name": "Medico di turno",
    },
    "infermiere": {
        "id": "2",
        "password_hash": _hash_password("1234"),
        "role": Role.NURSE,
        "full_name": "Infermiere di triage",
    },
    "amministrativo": {
        "id": "3",
        "password_hash": _hash_password("1234"),
        "role": Role.ADMINISTRATIVE,
        "full_name": "Accettazione amministrativa",
    },
}


# =============================================================================
# Authentication Functions
# =============================================================================

def authenticate_user(username: str, password: str) -> User | None:
    """
    Authenticate a user by username and password.

    Returns User if valid, None otherwise.
    """
    user_data = DEMO_USERS.get(username)
    if not user_data:
        return None

    if not _verify_password(password, user_data["password_hash"]):
        return None

    return User(
        id=user_data["id"],
        username=username,
        role=user_data["role"],
        full_name=user_data.get("full_name"),
    )


def create_access_token(user: User, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token for a user.

    Args:
        user: The authenticated user
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    settings = get_settings().auth

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "username": user.username,
        "role": user.role.value,
        "iat": now,
        "exp": now + expires_delta,
    }

    return jwt.encode(
        payload,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> TokenPayload:
    """
    Decode and validate a JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    settings = get_settings().auth

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
        return TokenPayload(
            sub=payload.get("sub"),
            username=payload.get("username"),
            role=payload.get("role"),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc) if payload.get("exp") else None,
        )
    except (JWTError, ValueError) as e:
        logger.warning("JWT decode error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


# =============================================================================
# Dependency Injection
# =============================================================================

async def get_current_user(
    bearer: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    Usage:
        @router.get("/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"role": user.role}
    """
    if bearer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = decode_token(bearer.credentials)

    user_data = DEMO_USERS.get(token_data.username)
    if user_data is None or user_data["id"] != token_data.sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return User(
        id=token_data.sub,
        username=token_data.username,
        role=token_data.role,
        full_name=user_data.get("full_name"),
    )


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get current user and verify they are active."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )
    return current_user

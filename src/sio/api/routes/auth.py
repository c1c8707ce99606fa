"""
Authentication Routes

Login and current user endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from sio.api.auth import (
    LoginRequest,
    TokenResponse,
    User,
    UserInfo,
    authenticate_user,
    create_access_token,
    get_current_active_user,
    get_settings,
)

import structlog

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """
    Authenticate and get access token.

    **Demo Credentials** (password ``1234``):
    - medico (DOC)
    - infermiere (INF)
    - amministrativo (AMM)
    """
    user = authenticate_user(request.username, request.password)

    if not user:
        logger.info("Login rejected", username=request.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = get_settings().auth
    access_token = create_access_token(user)

    return TokenResponse(
        access_token=access_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserInfo(username=user.username, role=user.role),
    )


@router.get("/me", response_model=User)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user),
):
    """Get current authenticated user information."""
    return current_user

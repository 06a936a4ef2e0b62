"""
Authentication endpoints for lab staff login and account management
"""

from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address
from datetime import timedelta
import logging

from labflow.config import settings
from labflow.database import get_db
from labflow.schemas.user import UserCreate, UserLogin, UserResponse, UserSummary, TokenResponse
from labflow.services.user_service import UserService
from labflow.auth.auth_handler import AuthHandler, get_current_user, admin_required, user_required
from labflow.utils.error_handler import DatabaseError

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")  # Prevent brute force attacks
async def login(
    request: Request,
    login_data: UserLogin,
    db: Session = Depends(get_db)
):
    """Authenticate user and return access token"""
    try:
        user_service = UserService(db)
        auth_handler = AuthHandler()

        user = await user_service.authenticate_user(login_data)

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username/email or password"
            )

        expires_minutes = settings.access_token_expire_minutes
        token_data = {
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
            "email": user.email
        }
        access_token = auth_handler.create_access_token(
            data=token_data,
            expires_delta=timedelta(minutes=expires_minutes)
        )

        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=expires_minutes * 60,
            user=UserResponse.model_validate(user)
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed"
        )


@router.get("/me", response_model=UserResponse)
@limiter.limit("30/minute")
async def get_current_user_info(
    request: Request,
    current_user: dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get current user information"""
    user = await UserService(db).get_user_by_id(current_user["user_id"])

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserResponse.model_validate(user)


@router.get("/users", response_model=list[UserSummary])
@limiter.limit("30/minute")
async def list_users(
    request: Request,
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Active lab users, for assignment pickers and the analytics legend"""
    return await UserService(db).list_active_users()


@router.post("/users", response_model=UserResponse, status_code=201)
@limiter.limit("10/minute")
async def create_user(
    request: Request,
    user_data: UserCreate,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Create a lab staff account (Admin only)"""
    try:
        new_user = await UserService(db).create_user(user_data)
        logger.info(f"Admin {current_user['username']} created user: {new_user.username}")
        return new_user

    except HTTPException:
        raise
    except DatabaseError as e:
        logger.error(f"Failed to create user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user account"
        )

"""
Authentication endpoints for signup, login and the current user
"""

from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from datetime import timedelta
import logging

from app.config import settings
from app.database import get_db
from app.schemas.user import UserCreate, StaffCreate, UserLogin, UserResponse, TokenResponse
from app.services.user_service import UserService
from app.auth.auth_handler import AuthHandler, get_current_user, admin_required
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

async def _register(db: Session, user_data: UserCreate) -> UserResponse:
    try:
        new_user = await UserService(db).create_user(user_data)
        logger.info(f"New {new_user.role} account registered: {new_user.username}")
        return UserResponse.from_orm(new_user)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Signup failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user account"
        )

@router.post("/signup", response_model=UserResponse, status_code=201)
@limiter.limit("5/minute")
async def signup(
    request: Request,
    user_data: UserCreate,
    db: Session = Depends(get_db)
):
    """Register a new customer account"""
    return await _register(db, user_data)

@router.post("/staff", response_model=UserResponse, status_code=201)
@limiter.limit("10/minute")
async def create_staff_account(
    request: Request,
    staff_data: StaffCreate,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Create an admin or collection agent account (admin)"""
    return await _register(db, staff_data)

@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
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

        expires_in = settings.access_token_expire_minutes * 60
        access_token = auth_handler.create_user_token(user, expires_delta=timedelta(seconds=expires_in))

        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=expires_in,
            user=UserResponse.from_orm(user)
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
    user_service = UserService(db)
    user = await user_service.get_user_by_id(current_user["user_id"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return UserResponse.from_orm(user)

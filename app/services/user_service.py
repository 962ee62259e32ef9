"""
User service for registration and login
"""

from sqlalchemy.orm import Session
from sqlalchemy import or_
from fastapi import HTTPException, status
from datetime import datetime
from typing import Optional, Union
import logging

from app.models.user import User, ROLE_AGENT, ROLE_USER
from app.schemas.user import UserCreate, StaffCreate, UserLogin
from app.auth.auth_handler import AuthHandler
from app.utils.error_handler import DatabaseError

logger = logging.getLogger(__name__)

class UserService:
    """Service for user management operations"""

    def __init__(self, db: Session):
        self.db = db
        self.auth_handler = AuthHandler()

    async def create_user(self, user_data: Union[UserCreate, StaffCreate]) -> User:
        """Create an account; only StaffCreate data carries a non-customer role"""
        try:
            conditions = [User.username == user_data.username.lower()]
            if user_data.email:
                conditions.append(User.email == user_data.email.lower())
            existing_user = self.db.query(User).filter(or_(*conditions)).first()

            if existing_user:
                if existing_user.username == user_data.username.lower():
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="Username already registered"
                    )
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Email already registered"
                )

            db_user = User(
                username=user_data.username.lower(),
                email=user_data.email.lower() if user_data.email else None,
                hashed_password=self.auth_handler.get_password_hash(user_data.password),
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                role=getattr(user_data, "role", ROLE_USER),
                phone_number=user_data.phone_number,
                is_active=True,
            )

            self.db.add(db_user)
            self.db.commit()
            self.db.refresh(db_user)

            logger.info(f"Created new user: {db_user.username} ({db_user.role})")
            return db_user

        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create user: {e}")
            raise DatabaseError(f"Failed to create user account: {str(e)}", e)

    async def authenticate_user(self, login_data: UserLogin) -> Optional[User]:
        """Authenticate user credentials"""
        try:
            user = self.db.query(User).filter(
                or_(
                    User.username == login_data.username_or_email.lower(),
                    User.email == login_data.username_or_email.lower()
                )
            ).first()

            if not user:
                logger.warning(f"Login attempt with non-existent user: {login_data.username_or_email}")
                return None

            if not user.is_active:
                logger.warning(f"Login attempt with inactive user: {user.username}")
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Account is deactivated"
                )

            if not self.auth_handler.verify_password(login_data.password, user.hashed_password):
                logger.warning(f"Failed login attempt for user: {user.username}")
                return None

            user.last_login = datetime.utcnow()
            self.db.commit()

            logger.info(f"Successful login for user: {user.username}")
            return user

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Authentication error: {e}")
            raise DatabaseError(f"Authentication failed: {str(e)}", e)

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    async def list_agents(self, active_only: bool = True) -> list[User]:
        """Home-visit agents available for assignment"""
        query = self.db.query(User).filter(User.role == ROLE_AGENT)
        if active_only:
            query = query.filter(User.is_active == True)  # noqa: E712
        return query.order_by(User.first_name, User.last_name).all()

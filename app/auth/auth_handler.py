"""
Authentication and role checks for customers, admins and collection agents
"""

from datetime import datetime, timedelta
from typing import Optional
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from jose import JWTError, jwt

from app.config import settings
from app.models.user import User, ROLE_ADMIN, ROLE_AGENT, ROLE_USER

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=4)
security = HTTPBearer()

def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

class AuthHandler:
    """Password hashing and bearer tokens"""

    def __init__(self):
        self.pwd_context = pwd_context

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    def create_user_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Token carrying the user's id, username and role"""
        claims = {"sub": str(user.id), "username": user.username, "role": user.role}
        return self.create_access_token(claims, expires_delta=expires_delta)

    def verify_token(self, token: str) -> dict:
        try:
            return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            raise _credentials_error()

auth_handler = AuthHandler()

def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """Claims of the caller's bearer token as {"user_id", "username", "role"}"""
    payload = auth_handler.verify_token(credentials.credentials)

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        raise _credentials_error()

    return {
        "user_id": int(user_id),
        "username": payload.get("username"),
        "role": payload.get("role", ROLE_USER),
    }

class RoleChecker:
    """Dependency that admits only callers holding one of the allowed roles"""

    def __init__(self, allowed_roles: list):
        self.allowed_roles = allowed_roles

    def __call__(self, user: dict = Depends(get_current_user)):
        if user.get("role", ROLE_USER) not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted"
            )
        return user

admin_required = RoleChecker([ROLE_ADMIN])
# Customers place and track orders; admins may act on their behalf
user_required = RoleChecker([ROLE_USER, ROLE_ADMIN])
field_staff_required = RoleChecker([ROLE_AGENT, ROLE_ADMIN])

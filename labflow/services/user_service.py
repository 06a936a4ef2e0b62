"""
User service for authentication and user management
"""

from sqlalchemy.orm import Session
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from fastapi import HTTPException, status
from typing import Optional
import logging

from labflow.models.user import User
from labflow.schemas.user import UserCreate, UserLogin
from labflow.auth.auth_handler import AuthHandler
from labflow.utils.datetime_utils import utcnow
from labflow.utils.error_handler import DatabaseError

logger = logging.getLogger(__name__)


class UserService:
    """Service for user management operations"""

    def __init__(self, db: Session):
        self.db = db
        self.auth_handler = AuthHandler()

    async def create_user(self, user_data: UserCreate) -> User:
        """Create a new user account"""
        username = user_data.username.lower()
        email = user_data.email.lower()

        existing_user = self.db.query(User).filter(
            or_(User.username == username, User.email == email)
        ).first()

        if existing_user:
            if existing_user.username == username:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Username already registered"
                )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        db_user = User(
            username=username,
            email=email,
            hashed_password=self.auth_handler.get_password_hash(user_data.password),
            role=user_data.role,
            is_active=True,
        )

        try:
            self.db.add(db_user)
            self.db.commit()
            self.db.refresh(db_user)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create user: {e}")
            raise DatabaseError(f"Failed to create user account: {str(e)}", e)

        logger.info(f"Created new user: {db_user.username} ({db_user.email})")
        return db_user

    async def authenticate_user(self, login_data: UserLogin) -> Optional[User]:
        """Authenticate user credentials"""
        identifier = login_data.username_or_email.lower()
        user = self.db.query(User).filter(
            or_(User.username == identifier, User.email == identifier)
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

        user.last_login = utcnow()
        self.db.commit()

        logger.info(f"Successful login for user: {user.username}")
        return user

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    async def list_active_users(self) -> list[User]:
        return (
            self.db.query(User)
            .filter(User.is_active.is_(True))
            .order_by(User.username)
            .all()
        )

    def get_usernames(self) -> dict:
        """User id to display name, for every account"""
        try:
            return dict(self.db.query(User.id, User.username).all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to load usernames: {e}")
            raise DatabaseError(f"Failed to load usernames: {str(e)}", e)

    def ensure_admin(self, username: str, email: str, password: str) -> User:
        """Create the admin account if no user with that email exists yet"""
        user = self.db.query(User).filter(User.email == email.lower()).first()
        if user:
            return user

        user = User(
            username=username.lower(),
            email=email.lower(),
            hashed_password=self.auth_handler.get_password_hash(password),
            role="admin",
            is_active=True,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Bootstrapped admin account: {user.username}")
        return user

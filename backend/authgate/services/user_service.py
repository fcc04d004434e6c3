"""User service - credential store lookups and user management"""

from sqlalchemy.orm import Session
from typing import List, Optional
from authgate.models.user import User
from authgate.schemas.user import UserCreate, UserResponse
from authgate.core.security import (
    DUMMY_PASSWORD_HASH,
    get_password_hash,
    utc_now,
    verify_password,
)
from authgate.core.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
)
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for user management"""

    @staticmethod
    def create_user(db: Session, user_data: UserCreate) -> UserResponse:
        """
        Create new user

        Args:
            db: Database session
            user_data: User creation data

        Returns:
            Created user
        """
        existing = UserService.find_by_email(db, user_data.email)
        if existing:
            raise DuplicateEmailError()

        user = User(
            email=user_data.email,
            name=user_data.name,
            password_hash=get_password_hash(user_data.password),
            role=user_data.role.value
        )

        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"Created user {user.id} (role: {user.role})")
        return UserResponse.model_validate(user)

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> User:
        """
        Authenticate user by email and password

        Unknown email, wrong password and disabled account all raise the same
        InvalidCredentialsError. The unknown-email path still runs one bcrypt
        check against a dummy hash so response time does not reveal whether
        the email is registered.

        Args:
            db: Database session
            email: Email address
            password: Password

        Returns:
            Authenticated user
        """
        user = UserService.find_by_email(db, email)

        if user is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash) or not user.is_active:
            raise InvalidCredentialsError()

        user.last_login = utc_now()
        db.commit()

        logger.info(f"User authenticated: {user.id}")
        return user

    @staticmethod
    def find_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)"""
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_all_users(db: Session, role: Optional[str] = None) -> List[UserResponse]:
        """
        Get all users, optionally filtered by role

        Args:
            db: Database session
            role: Optional role filter

        Returns:
            List of users
        """
        query = db.query(User)

        if role:
            query = query.filter(User.role == role)

        users = query.order_by(User.id).all()
        return [UserResponse.model_validate(user) for user in users]


# Singleton instance
user_service = UserService()

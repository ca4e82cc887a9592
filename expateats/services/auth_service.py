# expateats/services/auth_service.py

"""
Сервисный слой для регистрации и логина.

Знает про модели, БД и хэширование, но не про HTTP-исключения:
результат входа возвращается как AuthResult, а роут решает, что ответить.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from expateats.models import User
from expateats.schemas import UserCreate
from expateats.utils.security import hash_password, verify_password

MAX_FAILED_ATTEMPTS = 5
LOCKOUT_TIME = timedelta(minutes=30)


@dataclass
class AuthResult:
    success: bool
    message: str
    user: Optional[User] = None
    locked: bool = False
    attempts_remaining: Optional[int] = None


def create_user(db: Session, user_in: UserCreate, role: str = "user") -> User:
    """
    Создать локального пользователя. Уникальность username/email
    проверяет вызывающий код.
    """
    db_user = User(
        username=user_in.username,
        email=user_in.email,
        password=hash_password(user_in.password),
        name=user_in.name,
        city=user_in.city,
        country=user_in.country,
        bio=user_in.bio,
        role=role or "user",
        auth_provider="local",
    )

    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def authenticate_user(
    db: Session,
    username: str,
    password: str,
    now: Optional[datetime] = None,
) -> AuthResult:
    """
    Аутентифицировать пользователя по username (или email) и паролю.

    Заблокированный аккаунт пароль не проверяет вовсе. Каждая ошибка
    увеличивает счётчик, на пятой аккаунт блокируется на 30 минут.
    """
    user = get_user_by_username(db, username) or get_user_by_email(db, username)
    if user is None:
        return AuthResult(success=False, message="Invalid credentials")

    return _validate_user_login(db, user, password, now or datetime.utcnow())


def _validate_user_login(db: Session, user: User, password: str, now: datetime) -> AuthResult:
    if user.account_locked_until and now < user.account_locked_until:
        remaining = math.ceil((user.account_locked_until - now).total_seconds() / 60)
        return AuthResult(
            success=False,
            message=f"Account locked. Try again in {remaining} minutes.",
            locked=True,
        )

    if not verify_password(password, user.password):
        failed_attempts = (user.failed_login_attempts or 0) + 1
        user.failed_login_attempts = failed_attempts
        user.account_locked_until = None
        if failed_attempts >= MAX_FAILED_ATTEMPTS:
            user.account_locked_until = now + LOCKOUT_TIME
            logger.warning("Account {} locked after {} failed logins", user.id, failed_attempts)
        db.commit()

        return AuthResult(
            success=False,
            message="Invalid credentials",
            attempts_remaining=MAX_FAILED_ATTEMPTS - failed_attempts,
        )

    user.failed_login_attempts = 0
    user.account_locked_until = None
    user.last_login_at = now
    db.commit()
    db.refresh(user)

    return AuthResult(success=True, message="Login successful", user=user)


# ===============
# Поиск по полям
# ===============

def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def get_user_by_google_id(db: Session, google_id: str) -> Optional[User]:
    return db.query(User).filter(User.google_id == google_id).first()


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


# ============
# Google OAuth
# ============

def create_google_user(
    db: Session,
    *,
    google_id: str,
    email: str,
    name: Optional[str] = None,
    profile_picture: Optional[str] = None,
    google_email: Optional[str] = None,
) -> User:
    """Пользователь только с Google: без username и пароля, email подтверждён"""
    db_user = User(
        google_id=google_id,
        email=email,
        google_email=google_email or email,
        name=name,
        profile_picture=profile_picture,
        auth_provider="google",
        role="user",
        email_verified=True,
        username=None,
        password=None,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def link_google_account(
    db: Session,
    user: User,
    *,
    google_id: str,
    google_email: str,
    profile_picture: Optional[str] = None,
) -> User:
    """Привязать Google к существующему аккаунту: провайдер становится hybrid"""
    user.google_id = google_id
    user.google_email = google_email
    if profile_picture:
        user.profile_picture = profile_picture
    user.auth_provider = "hybrid"
    user.email_verified = True
    db.commit()
    db.refresh(user)
    return user


def unlink_google_account(db: Session, user: User) -> Optional[User]:
    """
    Отвязать Google. Нельзя, если у пользователя нет username и пароля:
    тогда возвращаем None.
    """
    if not user.password or not user.username:
        return None

    user.google_id = None
    user.google_email = None
    user.auth_provider = "local"
    db.commit()
    db.refresh(user)
    return user


def resolve_google_user(
    db: Session,
    *,
    google_id: str,
    email: str,
    name: Optional[str] = None,
    profile_picture: Optional[str] = None,
) -> User:
    """
    Найти или создать пользователя по профилю Google.

    Сначала по google_id, затем по email (привязка), иначе новый пользователь.
    """
    user = get_user_by_google_id(db, google_id)
    if user is not None:
        return user

    user = get_user_by_email(db, email)
    if user is not None:
        logger.info("Linking Google account to existing user {}", user.id)
        return link_google_account(
            db,
            user,
            google_id=google_id,
            google_email=email,
            profile_picture=profile_picture,
        )

    return create_google_user(
        db,
        google_id=google_id,
        email=email,
        name=name,
        profile_picture=profile_picture,
    )

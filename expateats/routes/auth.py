# expateats/routes/auth.py

"""
API endpoints для регистрации и авторизации.

Вход хранится в серверной сессии (cookie expatEatsSession).
Изменяющие запросы требуют CSRF-токен из GET /api/csrf-token.
"""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from loguru import logger
from sqlalchemy.orm import Session

from expateats.dependencies import current_session, get_current_user
from expateats.models import User
from expateats.schemas import (
    AuthResponse,
    AvailabilityResponse,
    CsrfTokenResponse,
    CurrentUserResponse,
    GoogleStatusResponse,
    MessageResponse,
    UserCreate,
    UserLogin,
)
from expateats.services import auth_service
from expateats.services.csrf_service import issue_token, verify_csrf
from expateats.services.oauth import OAuthError, google_oauth
from expateats.utils.database import get_db
from expateats.utils.exceptions import (
    AccountLocked,
    Conflict,
    InvalidCredentials,
    NotFound,
    ValidationFailed,
)
from expateats.utils.limiter import auth_limit, login_limit
from expateats.utils.session import SessionContext, commit_session, destroy_session

router = APIRouter(
    prefix="/api",
    tags=["auth"],
    responses={400: {"description": "Bad Request"}},
)


def _start_user_session(
        request: Request,
        session: SessionContext,
        user: User,
        remember_me: bool = False,
) -> None:
    """Новая сессия (новый id) для вошедшего пользователя, CSRF-секрет сохраняем"""
    commit_session(
        request,
        session.with_changes(
            user_id=user.id,
            username=user.username or user.email,
            is_admin=user.is_admin,
            remember_me=remember_me,
            oauth_state=None,
        ),
        regenerate=True,
    )


# ==========
# CSRF-ТОКЕН
# ==========

@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def get_csrf_token(request: Request):
    return {"csrf_token": issue_token(request)}


# ===============================
# РЕГИСТРАЦИЯ НОВОГО ПОЛЬЗОВАТЕЛЯ
# ===============================

@router.post(
    "/auth/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_csrf)],
)
@auth_limit
async def register_user(
        user: UserCreate,
        request: Request,
        session: SessionContext = Depends(current_session),
        db: Session = Depends(get_db),
):
    # Проверяем что username не занят
    if auth_service.get_user_by_username(db, user.username):
        raise Conflict("Username already exists", code="USERNAME_EXISTS")

    # Проверяем что email не занят
    if auth_service.get_user_by_email(db, user.email):
        raise Conflict("Email already exists", code="EMAIL_EXISTS")

    db_user = auth_service.create_user(db, user)
    _start_user_session(request, session, db_user)
    logger.info("User {} registered", db_user.id)

    return {"message": "Registration successful", "user": db_user}


# ==============================
# Авторизация созданного профиля
# ==============================

@router.post(
    "/auth/login",
    response_model=AuthResponse,
    dependencies=[Depends(verify_csrf)],
)
@login_limit
async def login_user(
        creds: UserLogin,
        request: Request,
        session: SessionContext = Depends(current_session),
        db: Session = Depends(get_db),
):
    """Логин по username или email"""
    if not creds.username or not creds.password:
        raise ValidationFailed("Username and password are required", code="MISSING_CREDENTIALS")

    result = auth_service.authenticate_user(db, creds.username, creds.password)

    if not result.success:
        if result.locked:
            raise AccountLocked(result.message)
        raise InvalidCredentials(result.message, attempts_remaining=result.attempts_remaining)

    _start_user_session(request, session, result.user, remember_me=creds.remember_me)
    return {"message": result.message, "user": result.user}


# ===============
# LOGOUT ENDPOINT
# ===============

@router.post(
    "/auth/logout",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
@auth_limit
async def logout(request: Request):
    destroy_session(request)
    return {"message": "Logout successful"}


@router.get("/auth/me", response_model=CurrentUserResponse)
async def read_me(current_user: User = Depends(get_current_user)):
    return {"user": current_user}


# ======================
# ПРОВЕРКА ДОСТУПНОСТИ
# ======================

@router.get("/auth/check-username/{username}", response_model=AvailabilityResponse)
async def check_username(username: str, db: Session = Depends(get_db)):
    return {"available": auth_service.get_user_by_username(db, username) is None}


@router.get("/auth/check-email/{email}", response_model=AvailabilityResponse)
async def check_email(email: str, db: Session = Depends(get_db)):
    return {"available": auth_service.get_user_by_email(db, email) is None}


# ============
# GOOGLE OAUTH
# ============

def _require_google():
    if google_oauth is None:
        raise NotFound("Google login is not configured")
    return google_oauth


@router.get("/auth/google")
async def google_login(
        request: Request,
        session: SessionContext = Depends(current_session),
):
    """Редирект на страницу входа Google, state кладём в сессию"""
    provider = _require_google()
    state = secrets.token_urlsafe(16)
    commit_session(request, session.with_changes(oauth_state=state))
    return RedirectResponse(provider.authorization_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/auth/google/callback")
async def google_callback(
        request: Request,
        code: Optional[str] = None,
        state: Optional[str] = None,
        session: SessionContext = Depends(current_session),
        db: Session = Depends(get_db),
):
    provider = _require_google()

    if not code or not state or not session.oauth_state or state != session.oauth_state:
        logger.warning("[OAuth] Invalid state or missing code in Google callback")
        return RedirectResponse("/login?error=oauth_failed", status_code=status.HTTP_302_FOUND)

    try:
        profile = await provider.fetch_profile(code)
    except OAuthError as e:
        logger.error("[OAuth] Callback error: {}", e)
        return RedirectResponse("/login?error=callback_failed", status_code=status.HTTP_302_FOUND)

    user = auth_service.resolve_google_user(
        db,
        google_id=profile.google_id,
        email=profile.email,
        name=profile.name,
        profile_picture=profile.picture,
    )
    _start_user_session(request, session, user)
    logger.info("[OAuth] User {} logged in via Google", user.id)

    return RedirectResponse("/", status_code=status.HTTP_302_FOUND)


@router.get("/auth/google/status", response_model=GoogleStatusResponse)
async def google_status(current_user: User = Depends(get_current_user)):
    return {
        "is_linked": bool(current_user.google_id),
        "auth_provider": current_user.auth_provider or "local",
        "google_email": current_user.google_email,
        "has_password": bool(current_user.password),
    }


@router.post(
    "/auth/google/unlink",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
@auth_limit
async def google_unlink(
        request: Request,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
):
    if auth_service.unlink_google_account(db, current_user) is None:
        raise ValidationFailed(
            "Cannot unlink Google account. You must set a username and password first.",
            code="UNLINK_NOT_ALLOWED",
        )

    logger.info("[OAuth] User {} unlinked Google account", current_user.id)
    return {"message": "Google account unlinked successfully"}

# expateats/utils/session.py

"""
Сессии на cookie + серверное хранилище.

На входе запроса middleware читает cookie, достаёт данные сессии из хранилища
и кладёт в request.state неизменяемый SessionContext. Обработчики его не меняют:
чтобы изменить сессию, они передают новый контекст в commit_session()
или вызывают destroy_session(). После ответа middleware сохраняет результат
и заново выставляет cookie (скользящий срок жизни).
"""

import secrets
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from expateats.config import settings
from expateats.services.session_store import session_store
from expateats.utils.security import sign_session_id, unsign_session_id


@dataclass(frozen=True)
class SessionContext:
    user_id: Optional[int] = None
    username: Optional[str] = None
    is_admin: bool = False
    csrf_secret: Optional[str] = None
    oauth_state: Optional[str] = None
    remember_me: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_empty(self) -> bool:
        return self == SessionContext()

    def with_changes(self, **changes: Any) -> "SessionContext":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionContext":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


def session_max_age(ctx: SessionContext) -> int:
    """Срок жизни сессии в секундах: 30 минут или 30 дней с "remember me" """
    if ctx.remember_me:
        return settings.REMEMBER_ME_DAYS * 24 * 60 * 60
    return settings.SESSION_MAX_AGE_MINUTES * 60


# ==========================
# Доступ к сессии из роутов
# ==========================

def get_session(request: Request) -> SessionContext:
    return getattr(request.state, "session", None) or SessionContext()


def commit_session(
    request: Request,
    ctx: SessionContext,
    *,
    regenerate: bool = False,
) -> SessionContext:
    """
    Запомнить новое состояние сессии, оно сохранится после ответа.

    regenerate=True выдаёт новый id сессии (после входа/регистрации).
    """
    request.state.session_update = ctx
    if regenerate:
        request.state.session_regenerate = True
    return ctx


def destroy_session(request: Request) -> None:
    request.state.session_destroyed = True


# ==========
# Middleware
# ==========

class SessionMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        cookie_name = settings.SESSION_COOKIE_NAME
        session_id: Optional[str] = None
        data: Optional[dict[str, Any]] = None

        cookie = request.cookies.get(cookie_name)
        if cookie:
            session_id = unsign_session_id(cookie)
            if session_id is not None:
                data = await session_store.get(session_id)
                if data is None:
                    # Сессия истекла или удалена
                    session_id = None

        ctx = SessionContext.from_dict(data or {})
        request.state.session = ctx
        request.state.session_update = None
        request.state.session_regenerate = False
        request.state.session_destroyed = False

        response = await call_next(request)

        if request.state.session_destroyed:
            if session_id is not None:
                await session_store.delete(session_id)
            response.delete_cookie(cookie_name, path="/")
            return response

        new_ctx = request.state.session_update or ctx

        # Анонимный запрос, который ничего не сохранил - сессию не создаём
        if session_id is None and new_ctx.is_empty:
            return response

        if session_id is not None and request.state.session_regenerate:
            await session_store.delete(session_id)
            session_id = None
        if session_id is None:
            session_id = secrets.token_urlsafe(32)

        max_age = session_max_age(new_ctx)
        await session_store.set(session_id, new_ctx.to_dict(), ttl=max_age)
        response.set_cookie(
            cookie_name,
            sign_session_id(session_id),
            max_age=max_age,
            path="/",
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
        )
        return response

# expateats/dependencies.py

"""
Зависимости для использования в endpoints
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from expateats.models import User
from expateats.utils.database import get_db
from expateats.utils.exceptions import AdminRequired, AuthenticationRequired
from expateats.utils.session import SessionContext, get_session


def current_session(request: Request) -> SessionContext:
    """Контекст сессии текущего запроса (только чтение)"""
    return get_session(request)


async def get_current_user(
        session: SessionContext = Depends(current_session),
        db: Session = Depends(get_db),
) -> User:
    """
    Получаем текущего авторизованного пользователя

    Берём user_id из сессии, ищем пользователя в БД и возвращаем объект User.
    Нет сессии или пользователь пропал - 401.
    """
    if not session.is_authenticated:
        raise AuthenticationRequired()

    user = db.query(User).filter(User.id == session.user_id).first()
    if user is None:
        raise AuthenticationRequired()

    return user


async def get_current_user_optional(
        session: SessionContext = Depends(current_session),
        db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Необязательный текущий пользователь.

    Если сессии нет - возвращаем None, иначе - объект User.
    """
    if not session.is_authenticated:
        return None

    return db.query(User).filter(User.id == session.user_id).first()


async def require_admin(
        session: SessionContext = Depends(current_session),
        user: User = Depends(get_current_user),
) -> User:
    """
    Только для администраторов: сначала 401 без входа, потом 403 без прав
    """
    if not session.is_admin:
        raise AdminRequired()
    return user

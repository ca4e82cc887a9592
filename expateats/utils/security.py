# expateats/utils/security.py

"""
Утилиты для безопасности: хэширование пароля и подпись cookie сессии
"""

from typing import Optional

import jwt
from passlib.context import CryptContext

from expateats.config import settings

# Контекст bcrypt алгоритм, стоимость из настроек
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

SESSION_COOKIE_ALGORITHM = "HS256"

# =============================
# ФУНКЦИИ ДЛЯ РАБОТЫ С ПАРОЛЯМИ
# =============================

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

# Проверка, что введённый пароль совпадает с хэшем в БД.
# У пользователей только с Google-входом хэша нет
def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)

# ====================================
# ФУНКЦИИ ДЛЯ ПОДПИСИ ID СЕССИИ В COOKIE
# ====================================

def sign_session_id(session_id: str) -> str:
    """
    Подписываем id сессии секретом, чтобы его нельзя было подобрать/подменить
    """
    return jwt.encode(
        {"sid": session_id},
        settings.SESSION_SECRET,
        algorithm=SESSION_COOKIE_ALGORITHM,
    )


def unsign_session_id(cookie_value: str) -> Optional[str]:
    """
    Проверяем подпись cookie и достаём id сессии
    """
    try:
        payload = jwt.decode(
            cookie_value,
            settings.SESSION_SECRET,
            algorithms=[SESSION_COOKIE_ALGORITHM],
        )
    except jwt.InvalidTokenError:
        # Подпись не сошлась или cookie испорчена
        return None
    session_id = payload.get("sid")
    return session_id if isinstance(session_id, str) else None

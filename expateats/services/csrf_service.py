# expateats/services/csrf_service.py

"""
CSRF-токены, привязанные к сессии.

В сессии хранится секрет (создаётся один раз), клиент получает токены
вида "<salt>.<digest>", где digest = HMAC-SHA256(secret, salt).
Токен другой сессии не пройдёт проверку: у неё другой секрет.
"""

import base64
import hashlib
import hmac
import secrets
from typing import Optional

from fastapi import Request
from loguru import logger

from expateats.utils.exceptions import CsrfError
from expateats.utils.session import SessionContext, commit_session, get_session

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")
CSRF_HEADER = "x-csrf-token"
CSRF_BODY_FIELD = "_csrf"


def _digest(secret: str, salt: str) -> str:
    mac = hmac.new(secret.encode(), salt.encode(), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(mac).rstrip(b"=").decode()


def generate_token(session: SessionContext) -> tuple[str, SessionContext]:
    """
    Выдать новый токен. Секрет создаётся в сессии при первом вызове.

    Возвращает токен и (возможно обновлённый) контекст сессии.
    """
    if not session.csrf_secret:
        session = session.with_changes(csrf_secret=secrets.token_urlsafe(18))

    salt = secrets.token_urlsafe(6)
    return f"{salt}.{_digest(session.csrf_secret, salt)}", session


def validate_token(session: SessionContext, token: Optional[str]) -> bool:
    """Без секрета или без токена - всегда False"""
    if not session.csrf_secret or not token:
        return False

    salt, sep, digest = token.partition(".")
    if not sep or not salt or not digest:
        return False

    return hmac.compare_digest(digest, _digest(session.csrf_secret, salt))


def issue_token(request: Request) -> str:
    """Токен для текущего запроса; новый секрет сохраняется в сессии"""
    session = get_session(request)
    token, updated = generate_token(session)
    if updated is not session:
        commit_session(request, updated)
        request.state.session = updated
    return token


async def _extract_token(request: Request) -> Optional[str]:
    token = request.headers.get(CSRF_HEADER)
    if token:
        return token

    if "application/json" in request.headers.get("content-type", ""):
        try:
            body = await request.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            value = body.get(CSRF_BODY_FIELD)
            return value if isinstance(value, str) else None
    return None


async def verify_csrf(request: Request) -> None:
    """
    Зависимость для изменяющих запросов.

    GET/HEAD/OPTIONS пропускаем, иначе нужен валидный токен
    в заголовке X-CSRF-Token или в поле тела "_csrf".
    """
    if request.method in SAFE_METHODS:
        return

    token = await _extract_token(request)
    session = get_session(request)
    if not validate_token(session, token):
        logger.warning(
            "CSRF validation failed: path={} has_secret={} token_provided={}",
            request.url.path,
            bool(session.csrf_secret),
            bool(token),
        )
        raise CsrfError()

"""
Ограничители частоты запросов (fixed window, ключ - IP клиента).

Три независимых счётчика:
- общий на все /api запросы, включая auth;
- общий для auth-эндпоинтов (register/logout/unlink), GET не считается;
- отдельный для логина.
"""

from fastapi import Request
from limits import parse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from slowapi.wrappers import Limit

from expateats.config import settings

GENERAL_SCOPE = "general"
AUTH_SCOPE = "auth"
LOGIN_SCOPE = "login"


def client_ip(request: Request) -> str:
    """
    IP клиента для ключа лимита.

    За прокси (production или TRUST_PROXY) берём первый адрес из X-Forwarded-For.
    """
    if settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_ip,
    storage_uri=settings.REDIS_URL or "memory://",
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)

# Декораторы для роутов
auth_limit = limiter.shared_limit(settings.AUTH_RATE_LIMIT, scope=AUTH_SCOPE)
login_limit = limiter.shared_limit(settings.LOGIN_RATE_LIMIT, scope=LOGIN_SCOPE)

# Общий лимит проверяется зависимостью роутеров, а не middleware
general_limit = Limit(
    parse(settings.GENERAL_RATE_LIMIT),
    key_func=client_ip,
    scope=GENERAL_SCOPE,
    per_method=False,
    methods=None,
    error_message=None,
    exempt_when=None,
    cost=1,
    override_defaults=False,
)


def enforce_general_limit(request: Request) -> None:
    """
    Зависимость для всех /api роутеров: считает запрос в общем окне.

    Счётчик лежит в том же хранилище, что и лимиты декораторов,
    поэтому limiter.reset() сбрасывает и его.
    """
    if not limiter.enabled:
        return
    if not limiter.limiter.hit(general_limit.limit, client_ip(request), GENERAL_SCOPE):
        raise RateLimitExceeded(general_limit)

"""
Точка входа ExpatEats API
Здесь собирается приложение и подключаются маршруты
"""

from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from expateats.config import settings
from expateats.routes import admin, auth, comments, events, places, posts, users
from expateats.services.session_store import session_store
from expateats.utils.database import init_db
from expateats.utils.exceptions import (
    AppError,
    app_error_handler,
    http_exception_handler,
    rate_limit_exceeded_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from expateats.utils.limiter import enforce_general_limit, limiter
from expateats.utils.logging_config import RequestLogMiddleware, configure_logging
from expateats.utils.session import SessionMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    await session_store.connect()
    logger.info("ExpatEats API started ({})", settings.ENVIRONMENT)
    yield
    await session_store.close()


# Создаем приложение
app = FastAPI(
    title="ExpatEats API",
    description="Food places for expats in Portugal: catalog, events and community",
    version="1.0.0",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    lifespan=lifespan,
)

# Глобальные обработчики ошибок
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# =============================
# Ограничитель частоты запросов
# =============================

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Сессии (cookie expatEatsSession) и лог запросов
app.add_middleware(SessionMiddleware)
app.add_middleware(RequestLogMiddleware)

# CORS (чтобы фронтенд мог обращаться к API с cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==============
# HEALTH-CHECKING
# ==============

@app.get("/health")
async def health_check():
    """Проверка, что приложение живо"""
    return {
        "status": "ok",
        "session_store": "ok" if await session_store.ping() else "unavailable",
    }


# =====================
# Подключаем все ROUTES
# =====================

# Общий лимит на все /api запросы (/health в него не входит)
api_limits = [Depends(enforce_general_limit)]

app.include_router(auth.router, dependencies=api_limits) # Регистрация, вход, CSRF, Google
app.include_router(places.router, dependencies=api_limits) # Места, отзывы, категории, города
app.include_router(events.router, dependencies=api_limits) # События
app.include_router(admin.router, dependencies=api_limits) # Модерация
app.include_router(users.router, dependencies=api_limits) # Избранное и список пользователей
app.include_router(posts.router, dependencies=api_limits) # Посты сообщества
app.include_router(comments.router, dependencies=api_limits) # Комментарии


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

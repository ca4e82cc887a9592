# expateats/utils/logging_config.py

"""
Логирование через loguru.

Записи стандартного logging (uvicorn, sqlalchemy) перенаправляются в loguru,
чтобы всё шло в один поток с одним форматом.
"""

import logging
import sys
import time

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from expateats.config import settings


class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Ищем кадр, откуда реально пришла запись
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str | None = None) -> None:
    level = (level or settings.LOG_LEVEL).upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        backtrace=settings.DEBUG,
        diagnose=settings.DEBUG,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Одна строка на каждый запрос к API: метод, путь, статус, время"""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)

        if request.url.path.startswith(settings.API_PREFIX):
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "{} {} {} in {:.0f}ms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
        return response

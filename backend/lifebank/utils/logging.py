from __future__ import annotations

from loguru import logger

from ..engine.errors import RequestError


def log_db_error(context: str, exc: Exception) -> None:
    logger.error("Database error in {}: {}", context, exc)


def log_request_error(context: str, exc: RequestError) -> None:
    logger.warning("{} rejected with {} ({}): {}", context, exc.code.name, exc.category.value, exc.detail)

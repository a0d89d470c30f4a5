# facial_enrollment/logging_utils.py
import logging
import time
from logging.handlers import RotatingFileHandler

from fastapi import Request

from .config import settings

LOGGER_NAME = "facial_enrollment"
LOG_MAX_SIZE = 20 * 1024 * 1024  # 20 MB
LOG_BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logger(level: str | None = None, log_file: str | None = None) -> logging.Logger:
    """
    Configure the package logger once.

    Always logs to stderr; also writes to a size-rotated file when
    ``log_file`` (or LOG_FILE) is set. Calling it again only adjusts the level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or settings.log_level).upper())

    if getattr(logger, "_configured", False):
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    path = log_file or settings.log_file
    if path:
        file_handler = RotatingFileHandler(
            path,
            maxBytes=LOG_MAX_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger._configured = True
    return logger


def get_logger(name: str) -> logging.Logger:
    setup_logger()
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def create_logging_middleware(app, logger):
    """
    Adds a middleware to log method, path, status and response time.
    Bodies are never logged: they carry face descriptors.
    """
    @app.middleware("http")
    async def log_request_response_time(request: Request, call_next):
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "-"

        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        logger.info(
            "IP=%s | %s %s | Status=%s | Time=%.4fs",
            client_ip,
            request.method,
            request.url.path,
            response.status_code,
            process_time,
        )
        response.headers["X-Process-Time"] = str(round(process_time, 4))
        return response

    return app

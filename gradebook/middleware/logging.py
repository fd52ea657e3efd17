import logging
import sys
import time
import uuid
from pathlib import Path

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from gradebook.config import settings

# Query parameters that identify the course a request works on
SCOPE_PARAMS = ("grade_level", "subject_area", "academic_period_id")

QUIET_LOGGERS = ("uvicorn", "sqlalchemy", "aiosqlite", "httpx")


def setup_logging() -> logging.Logger:
    """Send gradebook logs to stdout and, when LOG_FILE is set, to that file."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        Path(settings.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("gradebook")
    logger.setLevel(log_level)
    return logger


def request_scope(request: Request) -> str:
    """grade_level/subject_area/period of the request, as ``key=value`` pairs."""
    return " ".join(
        f"{name}={request.query_params[name]}" for name in SCOPE_PARAMS if name in request.query_params
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request with its id, course scope, status and duration.

    A client supplied X-Request-ID is reused so the id can be followed across
    services; otherwise one is generated. Either way it is echoed back.
    """

    logger = logging.getLogger("gradebook.request")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        scope = request_scope(request)
        label = f"[{request_id}] {request.method} {request.url.path}" + (f" ({scope})" if scope else "")
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception(f"{label} failed after {time.perf_counter() - started:.3f}s")
            raise

        elapsed = time.perf_counter() - started
        # Client and server errors stand out at WARNING
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        self.logger.log(level, f"{label} -> {response.status_code} in {elapsed:.3f}s")

        response.headers["X-Request-ID"] = request_id
        return response


def add_logging_middleware(app: FastAPI):
    app.add_middleware(RequestLoggingMiddleware)

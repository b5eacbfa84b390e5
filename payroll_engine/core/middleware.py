import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from payroll_engine.core.config import settings
from payroll_engine.core.logging import request_id_var

logger = logging.getLogger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds X-Request-ID (incoming or generated) to the logging context."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers[settings.request_id_header] = request_id
        response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}"
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={"request_id": request_id, "duration_ms": round(elapsed_ms, 1)}
        )
        return response

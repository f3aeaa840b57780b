import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from hrms.core.config import settings
from hrms.core.logging import company_id_var, request_id_var

logger = logging.getLogger("hrms.access")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagates (or assigns) a request id and exposes it and the tenant to the log formatter."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        company_token = company_id_var.set(request.headers.get("X-Company-ID", ""))
        try:
            response = await call_next(request)
        finally:
            company_id_var.reset(company_token)
            request_id_var.reset(token)
        response.headers[settings.request_id_header] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            }
        )
        return response

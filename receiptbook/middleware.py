import logging
import secrets
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger("receiptbook")

PUBLIC_PATHS = {"/health"}
SKIP_LOG_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Only lets through requests whose bearer token equals the shared client secret."""

    def __init__(self, app, client_secret: str):
        super().__init__(app)
        self.client_secret = client_secret

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token:
            return JSONResponse({"detail": "Missing bearer token"}, status_code=401)

        # An unset secret must never match
        if not self.client_secret or not secrets.compare_digest(
            token.encode(), self.client_secret.encode()
        ):
            logger.warning("Rejected bearer token", extra={"extra_data": {"path": request.url.path}})
            return JSONResponse({"detail": "Forbidden"}, status_code=403)

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status code and duration for each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000)

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={"extra_data": {
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            }},
        )
        return response

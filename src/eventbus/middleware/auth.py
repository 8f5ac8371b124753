"""Shared-token authentication middleware."""

import secrets
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

PUBLIC_PATHS = frozenset(
    {
        "/health",
        "/health/live",
    }
)


def extract_token(request: Request) -> str:
    """Read the token from a bearer Authorization header or X-API-Key."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.headers.get("X-API-Key", "")


class TokenAuthMiddleware(BaseHTTPMiddleware):
    """Middleware that requires the auth token on protected endpoints.

    Health checks and CORS preflight requests are excluded.
    """

    def __init__(self, app: Callable[..., Awaitable[Response]], token: str) -> None:
        """Initialize middleware with the expected token.

        Args:
            app: ASGI application.
            token: Expected token value.
        """
        super().__init__(app)  # type: ignore[arg-type]
        self._token = token

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Validate the token for non-public endpoints.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            HTTP response, or 401 if authentication fails.
        """
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        provided = extract_token(request)

        if not provided:
            return JSONResponse(
                status_code=401,
                content={"error": "Missing auth token"},
            )

        if not secrets.compare_digest(provided.encode(), self._token.encode()):
            return JSONResponse(
                status_code=401,
                content={"error": "Invalid auth token"},
            )

        return await call_next(request)

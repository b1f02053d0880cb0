"""
Shared-secret check between the auth edge and the studio API.

The edge validates the browser session and forwards the user's id in
X-User-Id. That header is only trustworthy if the request really came from
the edge, so when STUDIO_API_KEY is set every request must also carry it in
X-Api-Key.
"""

import hmac
import logging
from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# Interactive docs stay reachable without the secret
DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """
    Validates the X-Api-Key header against a shared secret.

    Disabled when ``api_key`` is empty, which is the local development
    setup.
    """

    def __init__(
        self,
        app,
        api_key: Optional[str] = None,
        exempt_paths: Optional[Iterable[str]] = None,
        header_name: str = "X-Api-Key",
    ):
        super().__init__(app)
        self._api_key = api_key
        self._exempt_paths = set(exempt_paths or ()) | set(DOCS_PATHS)
        self._header_name = header_name

    def _is_exempt(self, request: Request) -> bool:
        if request.method == "OPTIONS":
            return True
        return request.url.path in self._exempt_paths

    async def dispatch(self, request: Request, call_next):
        if not self._api_key or self._is_exempt(request):
            return await call_next(request)

        provided_key = request.headers.get(self._header_name, "")
        if not hmac.compare_digest(provided_key.encode(), self._api_key.encode()):
            logger.warning(f"Rejected {request.method} {request.url.path}: invalid API key")
            return JSONResponse(
                status_code=403,
                content={"detail": "Invalid or missing API key"},
            )

        return await call_next(request)

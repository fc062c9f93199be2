"""
Response hardening for the CondoHub API.

The API only answers with JSON and file downloads (documents, receipts,
backups), so nothing it returns should ever be framed, sniffed, rendered as a
page or kept by a shared cache.
"""

import logging
from typing import Callable, Iterable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import ENVIRONMENT

logger = logging.getLogger(__name__)

NO_STORE = "no-store, no-cache, must-revalidate"
PRIVATE_DOWNLOAD = "private, no-store"

API_CSP_DIRECTIVES = (
    "default-src 'none'",
    "frame-ancestors 'none'",
    "base-uri 'none'",
    "form-action 'none'",
)

DISABLED_BROWSER_FEATURES = ("camera", "microphone", "geolocation", "payment", "usb", "interest-cohort")


def build_security_headers(production: bool = False) -> dict[str, str]:
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "no-referrer",
        "Content-Security-Policy": "; ".join(API_CSP_DIRECTIVES),
        "Permissions-Policy": ", ".join(f"{feature}=()" for feature in DISABLED_BROWSER_FEATURES),
        "Cross-Origin-Opener-Policy": "same-origin",
    }
    if production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers


def is_download(response: Response) -> bool:
    return response.headers.get("content-disposition", "").startswith("attachment")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamps the hardening headers on every response outside ``exclude_paths``"""

    def __init__(self, app, exclude_paths: Optional[Iterable[str]] = None, production: Optional[bool] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or ())
        if production is None:
            production = ENVIRONMENT == "production"
        self.headers = build_security_headers(production)
        logger.info(f"🛡️ Security headers active, HSTS {'on' if production else 'off'}")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if request.url.path.startswith(self.exclude_paths):
            return response

        response.headers.update(self.headers)
        if is_download(response):
            response.headers["Cache-Control"] = PRIVATE_DOWNLOAD
        elif "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = NO_STORE
        return response

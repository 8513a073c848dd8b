"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings

# Headers a browser client may send
ALLOWED_HEADERS = ["Content-Type", "X-Request-ID", "X-User-Id", "X-User-Role"]


def setup_cors(app: FastAPI) -> None:
    """Allow the appraisal frontend(s) listed in FRONTEND_URL."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.frontend_urls,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Request-ID"],
    )

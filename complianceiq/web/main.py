from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from complianceiq.infrastructure.config import get_settings
from complianceiq.infrastructure.logging import configure_logging
from complianceiq.web.routes import api


def create_application() -> FastAPI:
    settings = get_settings()
    if not settings.is_testing():
        configure_logging(settings.logging)

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router)

    return app


app = create_application()

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import router as api_router
from app.core.config import settings
from app.core.database import SessionLocal, engine
from app.core.errors import register_exception_handlers
from app.core.identity import HttpIdentityProvider, IdentityProvider, LocalIdentityProvider
from app.core.logging import setup_logging
from app.core.middleware import AccessPolicy, AuthMiddleware, CookieSettings, default_access_policy
from app.models.base import Base
import app.models  # noqa: F401

logger = logging.getLogger(__name__)


def _default_identity_provider() -> IdentityProvider:
    if settings.identity_service_url:
        logger.info("Refreshing tokens against %s", settings.identity_service_url)
        return HttpIdentityProvider(settings.identity_service_url)
    return LocalIdentityProvider(SessionLocal)


def create_app(
    identity_provider: IdentityProvider | None = None,
    policy: AccessPolicy | None = None,
) -> FastAPI:
    setup_logging(settings.log_level)

    app = FastAPI(title="Institute API", version="0.1.0")
    register_exception_handlers(app)

    # Added first so CORS wraps it and preflights/401s still carry CORS headers.
    app.add_middleware(
        AuthMiddleware,
        policy=policy or default_access_policy(),
        identity_provider=identity_provider or _default_identity_provider(),
        cookies=CookieSettings.from_settings(settings),
        api_prefix=settings.api_prefix,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.on_event("startup")
    def on_startup():
        Base.metadata.create_all(bind=engine)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from portfolio.api import albums, auth, live, photos
from portfolio.config.settings import Settings, settings
from portfolio.services.context import PortfolioContext
from portfolio.services.firebase_service import FirebaseService
from portfolio.services.identity_service import IdentityProvider
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

logging.basicConfig(
    level=(settings.LOG_LEVEL or "info").upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
log = logging.getLogger("photo-portfolio")


def build_context(app_settings: Settings) -> PortfolioContext:
    """Wire the Firestore store and Firebase identity provider from settings."""
    firebase = FirebaseService(app_settings)
    document_store = firebase.document_store()
    identity_provider = IdentityProvider(app_settings.FIREBASE_API_KEY, app_settings.FIREBASE_AUTH_BASE_URL)
    return PortfolioContext(app_settings, document_store, identity_provider)


def _parse_cors(origins_env: str | None) -> list[str]:
    if not origins_env:
        return ["*"]
    value = origins_env.strip()
    if value == "*" or value == '["*"]':
        return ["*"]

    out = [o.strip() for o in value.split(",") if o.strip()]
    return out or ["*"]


def create_app(context: Optional[PortfolioContext] = None, app_settings: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.context = None
        app.state.startup_error = None
        try:
            log.info("Starting services...")
            app.state.context = context or build_context(app_settings)
            await app.state.context.start()
            log.info("Services ready")
        except Exception as e:
            log.exception(f"Service initialization failed: {e}")
            app.state.startup_error = str(e)
            # Let the app start so /health can report the problem
            log.error("Service initialization failed, but allowing app to start for debugging")

        yield

        if app.state.context is not None:
            await app.state.context.close()

    app = FastAPI(
        title="photo portfolio api",
        description="live album and photo gallery over Cloud Firestore",
        version="1.0.0",
        lifespan=lifespan,
    )

    cors_origins = _parse_cors(app_settings.CORS_ORIGINS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=cors_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(albums.router, prefix="/api/albums", tags=["albums"])
    app.include_router(photos.router, prefix="/api/photos", tags=["photos"])
    app.include_router(auth.router, prefix="/api", tags=["session"])
    app.include_router(live.router, tags=["live"])

    @app.get("/health")
    async def health():
        context = app.state.context
        identity = context.identity.identity if context else None
        albums_state = context.albums.state.value if context and context.albums else None
        status = "ok" if context and context.identity.is_ready else "error"
        if app.state.startup_error:
            status = "error"
        return {
            "status": status,
            "service": "photo-portfolio",
            "version": "1.0.0",
            "error": app.state.startup_error,
            "identity": {
                "ready": bool(context and context.identity.is_ready),
                "provider": identity.provider if identity else None,
                "degraded": identity.is_degraded if identity else None,
            },
            "albums_subscription": albums_state,
        }

    @app.get("/")
    async def root():
        return {
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "portfolio.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )

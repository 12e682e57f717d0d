import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware, structlog
from .ratelimit import limiter
from .models import models  # noqa: F401  registers tables on Base.metadata
from .routes.device_agent import router as device_agent_router
from .routes.devices import router as devices_router
from .routes.integrations import router as integrations_router
from .routes.inventory import router as inventory_router
from .routes.sync import router as sync_router


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Routers
    app.include_router(sync_router)
    app.include_router(device_agent_router)
    app.include_router(devices_router)
    app.include_router(inventory_router)
    app.include_router(integrations_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
        logger.info("startup_complete", environment=settings.environment)

    @app.get("/")
    def root():
        return {"name": settings.app_name, "status": "ok"}

    return app


app = create_app()

import uvicorn
from fastapi import FastAPI

from offer_engine.api.routes.health import router as health_router
from offer_engine.api.routes.internal_offers import router as internal_offers_router
from offer_engine.api.routes.internal_offers_admin import router as internal_offers_admin_router
from offer_engine.core.config import get_settings
from offer_engine.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Offer Engine API",
        version="0.1.0",
        docs_url="/docs" if settings.app_env == "dev" else None,
        redoc_url=None,
    )
    app.include_router(health_router)
    # Engine routes first: /internal/offers/jobs must win over /internal/offers/{offer_id}.
    app.include_router(internal_offers_router)
    app.include_router(internal_offers_admin_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "offer_engine.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()

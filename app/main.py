from fastapi import FastAPI

from app.api.v1.responses import install_error_handlers
from app.api.v1.router import router as v1_router
from app.core.db import SessionLocal
from app.core.telemetry import setup_telemetry
from app.services.container import ServiceContainer, build_container


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    app = FastAPI(title="Listing Hub API", version="0.1.0")
    app.state.services = services if services is not None else build_container(SessionLocal)

    setup_telemetry(app)
    install_error_handlers(app)
    app.include_router(v1_router)
    return app


app = create_app()

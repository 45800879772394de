"""FastAPI application factory"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from coop_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from coop_ledger.api.v1 import actions, ledger, loans, periods, state
from coop_ledger.infrastructure.database.session import init_db
from coop_ledger.infrastructure.observability.logging import setup_logging
from coop_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Cooperative Ledger",
        description="Contributions, loans, penalties and dividends for a savings cooperative",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(state.router, prefix="/v1", tags=["state"])
    app.include_router(actions.router, prefix="/v1", tags=["actions"])
    app.include_router(ledger.router, prefix="/v1", tags=["ledger"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(periods.router, prefix="/v1", tags=["periods"])

    return app


app = create_app()

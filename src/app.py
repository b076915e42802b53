"""Courier FastAPI application.

Processes commands synchronously via HTTP inside the courier domain
context. Collaborators (cache, notifier, audit, realtime) are built once
at startup and installed; the SLA monitor shares them.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from courier.api import ROUTERS, register_courier_exception_handlers
from courier.domain import courier
from courier.services import Services, install, uninstall
from courier.sla.monitor import SLAMonitor
from courier.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"  (handlers fire in UoW)
#   - "production" → event_processing = "async" (handlers fire via Engine)
configure_logging()
courier.init()


def create_app(services: Services | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        installed = install(services or Services.from_env())
        app.state.services = installed
        app.state.sla_monitor = SLAMonitor(
            courier,
            installed,
            rule_timeout=float(os.environ.get("COURIER_SLA_RULE_TIMEOUT_SECONDS", 60)),
        )
        yield
        uninstall()

    app = FastAPI(
        title="Courier API",
        description="Shipment lifecycle, hub manifests, rider delivery, SLA monitoring and tracking",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the courier domain context for each request."""
        with courier.domain_context():
            return await call_next(request)

    for router in ROUTERS:
        app.include_router(router)
    register_courier_exception_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": courier.name})

    return app


app = create_app()

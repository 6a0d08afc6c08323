from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsdesk import __version__
from newsdesk.api.admin import router as admin_router
from newsdesk.api.public import router as public_router
from newsdesk.core.config import settings
from newsdesk.core.logging import setup_logging
from newsdesk.core.scheduler import create_scheduler, shutdown_scheduler
from newsdesk.services.container import Services, build_services

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None, start_jobs: bool = True) -> FastAPI:
    setup_logging(settings.log_level)

    app = FastAPI(title="Newsdesk API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(public_router)
    app.include_router(admin_router)

    app.state.services = services or build_services(settings)
    app.state.scheduler = None

    @app.on_event("startup")
    async def on_startup():
        svc: Services = app.state.services
        loaded = await svc.collector.bootstrap()
        if not start_jobs:
            return
        app.state.scheduler = create_scheduler(svc)
        app.state.scheduler.start()
        if loaded == 0:
            logger.info("no stored articles, running an immediate collection")
            svc.collector.start_background_run(trigger="startup")
        else:
            logger.info("loaded %d stored articles, next collection on schedule", loaded)

    @app.on_event("shutdown")
    async def on_shutdown():
        shutdown_scheduler(app.state.scheduler)
        await app.state.services.close()

    @app.get("/health")
    async def health():
        svc: Services = app.state.services
        return {
            "ok": True,
            "storage": svc.storage.name,
            "collecting": svc.collector.busy,
            "articles": svc.index.counts(),
        }

    return app


app = create_app()

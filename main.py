from contextlib import asynccontextmanager
from functools import partial

import anyio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.application.services import NotificationServices, build_notification_services
from app.application.use_cases.notifications import run_periodic_sweeps
from app.config import get_settings
from app.infrastructure.database import SessionLocal, engine, initialize_database
from app.interfaces.api.routes import register_routes


def _build_lifespan(services: NotificationServices | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables and delivery services on start-up, release them on shutdown."""

        owned = services is None
        if owned:
            initialize_database()
            active = build_notification_services(SessionLocal, get_settings())
        else:
            active = services
        app.state.notification_services = active

        interval = active.settings.dispatch_sweep_interval_seconds
        try:
            async with anyio.create_task_group() as group:
                if interval > 0:
                    group.start_soon(
                        partial(
                            run_periodic_sweeps,
                            active.scheduler,
                            policy=active.retry_policy,
                            interval=interval,
                        )
                    )
                yield
                group.cancel_scope.cancel()
        finally:
            app.state.notification_services = None
            if owned:
                await active.aclose()
                engine.dispose()

    return lifespan


def create_app(services: NotificationServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``services`` replaces the container normally assembled from settings,
    which lets tests inject fake transports and an isolated database.
    """

    settings = services.settings if services is not None else get_settings()
    app = FastAPI(title="Notification Service", lifespan=_build_lifespan(services))
    app.state.notification_services = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()

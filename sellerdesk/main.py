from contextlib import asynccontextmanager
from typing import Callable, Optional
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine
from sellerdesk.api import cur_version
from sellerdesk.api.routers import public_routers
from sellerdesk.common import logger
from sellerdesk.common.custom_exceptions import register_all_exceptions
from sellerdesk.common.logging_setup import setup_logging, shutdown_logging
from sellerdesk.config.admin_config import admin_config
from sellerdesk.config.settings import config_settings
from sellerdesk.db.connection import async_engine, create_all_tables, make_session_factory
from sellerdesk.middlewares.request_id_middleware import RequestIdMiddleware
from sellerdesk.otp.dependencies import build_otp_components
from sellerdesk.otp.notifier import Notifier
from sellerdesk.otp.policy import OtpPolicy


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()
    if config_settings.AUTO_CREATE_TABLES:
        await create_all_tables(app.state.engine)
    logger.info("app.startup", extra={"env": admin_config.ENV})

    try:
        yield
    finally:
        # in-flight code deliveries get a chance to finish before the engine goes
        await app.state.otp.dispatcher.drain()
        await app.state.engine.dispose()
        logger.info("app.shutdown")
        shutdown_logging()


def create_app(engine: Optional[AsyncEngine] = None, notifier: Optional[Notifier] = None,
               clock: Optional[Callable[[], int]] = None, policy: Optional[OtpPolicy] = None):
    app=FastAPI(
        title="Sellerdesk",
        version=cur_version,
        lifespan=app_lifespan)

    engine = engine or async_engine
    app.state.engine = engine
    app.state.session_maker = make_session_factory(engine)
    app.state.otp = build_otp_components(app.state.session_maker, notifier=notifier, policy=policy, clock=clock)
    app.state.rate_limit = {"enabled": config_settings.RATE_LIMIT_ENABLED,
                            "backend": config_settings.RATE_LIMIT_BACKEND,
                            "trust_forwarded_for": config_settings.TRUST_FORWARDED_FOR}

    app.include_router(public_routers)

    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    if admin_config.ENABLE_METRICS:
        from metrics.custom_instrumentator import instrumentator
        instrumentator.instrument(app).expose(app, endpoint="/metrics")

    return app

app=create_app()

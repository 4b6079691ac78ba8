from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI

from classpush.api.router import api_router
from classpush.config import Settings, get_settings
from classpush.notifications.engine import WebPushEngine
from classpush.notifications.errors import ConfigError
from classpush.notifications.keys import (
    VapidKeyPair,
    load_or_create_vapid_keys,
    load_vapid_keypair,
)
from classpush.notifications.push import PushNotifier
from classpush.notifications.store import (
    PushSubscriptionStore,
)
from classpush.notifications.transport import PushTransport

logger = structlog.get_logger()

load_dotenv()


def _load_vapid(settings: Settings) -> VapidKeyPair:
    """Keys from the environment, else the state directory."""
    if settings.vapid_configured:
        return load_vapid_keypair(
            settings.vapid_public_key,
            settings.vapid_private_key,
        )
    return load_or_create_vapid_keys(settings.state_dir)


def build_notifier(
    settings: Settings,
    store: PushSubscriptionStore,
) -> PushNotifier:
    """Construct the push pipeline; raises ConfigError on bad config."""
    engine = WebPushEngine(
        _load_vapid(settings),
        settings.contact_uri,
        default_ttl=settings.push_ttl_seconds,
        token_expiration=settings.vapid_token_ttl_seconds,
    )
    transport = PushTransport(timeout=settings.push_timeout_s)
    return PushNotifier(store=store, engine=engine, transport=transport)


@asynccontextmanager
async def lifespan(
    app: FastAPI,
) -> AsyncGenerator[None]:
    settings = get_settings()
    logger.info("starting_up", version=settings.app_version)

    push_store = PushSubscriptionStore(settings.push_subs_path)
    try:
        notifier: PushNotifier | None = build_notifier(settings, push_store)
        app.state.vapid_public_key = notifier.public_key
        logger.info("push_notifications_enabled", subject=settings.contact_uri)
    except ConfigError as e:
        logger.warning("push_notifications_disabled", error=str(e))
        notifier = None
        app.state.vapid_public_key = ""
    app.state.push_store = push_store
    app.state.push_notifier = notifier

    yield

    if notifier is not None:
        notifier.close()
    logger.info("shutting_down")


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()

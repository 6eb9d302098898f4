"""
Main FastAPI application for TeamPilot.
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Config
from ..services.canned import CannedResponseService
from ..services.credentials import CredentialService
from ..services.im import IMService, IMServiceFactory
from ..services.jira import JiraService
from ..services.monitoring import ChannelMonitorService
from ..services.pipeline import TurnPipeline
from ..services.profiles import ProfileService
from ..store import KeyValueStore, RecordStore, StoreFactory
from .slack import slack_router
from .admin import admin_router

logger = logging.getLogger(__name__)


def create_app(
    config: Config,
    store: Optional[KeyValueStore] = None,
    im_service: Optional[IMService] = None,
    pipeline: Optional[TurnPipeline] = None,
    jira: Optional[JiraService] = None
) -> FastAPI:
    """
    Create FastAPI application.

    Every collaborator is constructed here and attached to ``app.state``;
    pass ``store``, ``im_service``, ``pipeline`` or ``jira`` to substitute your own.
    The Jira client is used by the admin API to check credentials before saving.
    """
    store = store or StoreFactory.create_store(config)
    im_service = im_service or IMServiceFactory.create_service("slack", config.slack.model_dump())
    records = RecordStore(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not await store.ping():
            logger.warning(f"Key-value store ({config.store.backend}) is not reachable, running degraded")
        if not config.slack.bot_user_id:
            config.slack.bot_user_id = await im_service.resolve_bot_user_id()
            if not config.slack.bot_user_id:
                logger.warning("slack.bot_user_id is not set and could not be resolved; the bot may answer its own mentions twice")
        yield
        await app.state.pipeline.close()
        await app.state.jira.close()
        await im_service.close()
        await store.close()

    app = FastAPI(
        title=config.bot.name,
        description="A Slack assistant backed by a hosted LLM with Jira and Salesforce actions",
        version="0.1.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.store = store
    app.state.im_service = im_service
    app.state.pipeline = pipeline or TurnPipeline.from_config(config, records, im_service)
    app.state.canned = CannedResponseService(records, config.store)
    app.state.monitors = ChannelMonitorService(records, config.store, config.bot.max_channel_monitors)
    app.state.profiles = ProfileService(records, config.store)
    app.state.credentials = CredentialService(records, config.store)
    app.state.jira = jira or JiraService()

    app.include_router(slack_router, prefix="/api/slack", tags=["slack"])

    if config.admin.enabled:
        app.include_router(admin_router, prefix="/admin", tags=["admin"])

    @app.get("/api/ping")
    async def ping():
        return {"message": f"{config.bot.name} is running"}

    @app.get("/health")
    async def health_check():
        store_ok = await store.ping()
        return {"status": "healthy" if store_ok else "degraded", "store": store_ok}

    return app

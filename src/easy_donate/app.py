"""Application bootstrap and lifecycle management."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import uvicorn

from .api.server import DonationServer
from .config import Settings, get_settings
from .feed import LiveFeed
from .ledger import DonationLedger
from .logging import configure_logging
from .pipeline import RedemptionPipeline
from .redemption import RedemptionClient

logger = logging.getLogger(__name__)


class EasyDonateApp:
    """Coordinates storage, redemption, live feed and API layers."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        configure_logging(self._settings.log_level)

        self._ledger = DonationLedger.from_settings(self._settings)
        self._client = RedemptionClient(self._settings)
        self._feed = LiveFeed(self._settings.feed_queue_size)
        self._pipeline = RedemptionPipeline(self._ledger, self._client, self._feed, settings=self._settings)
        self._server = DonationServer(self._pipeline, self._ledger, self._feed, self._settings)

        self._api_task: Optional[asyncio.Task[None]] = None
        self._api_server: Optional[uvicorn.Server] = None

    @property
    def pipeline(self) -> RedemptionPipeline:
        return self._pipeline

    async def start(self) -> None:
        await self._ledger.create_schema()
        if not self._settings.truemoney_mobile:
            logger.warning("app.mobile_not_configured")
        self._api_task = asyncio.create_task(self._run_api(), name="donation-api")
        logger.info("app.started", extra={"host": self._settings.api_host, "port": self._settings.api_port})

    async def stop(self) -> None:
        if self._api_server:
            self._api_server.should_exit = True
        if self._api_task:
            try:
                await self._api_task
            except asyncio.CancelledError:
                pass

        await self._client.aclose()
        await self._ledger.aclose()
        logger.info("app.stopped")

    async def _run_api(self) -> None:
        config = uvicorn.Config(
            self._server.app,
            host=self._settings.api_host,
            port=self._settings.api_port,
            log_level=self._settings.log_level.value.lower(),
            loop="asyncio",
            lifespan="off",
        )
        self._api_server = uvicorn.Server(config)
        try:
            await self._api_server.serve()
        except asyncio.CancelledError:
            pass

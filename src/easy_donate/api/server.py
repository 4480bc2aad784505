"""FastAPI adapter exposing claims, dashboard reads and the live feed."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import Settings, get_settings
from ..feed import LiveFeed
from ..ledger import DonationLedger
from ..messages import text
from ..models import CamelModel, DonationClaim, DonationEvent, DonationResult
from ..pipeline import RedemptionPipeline

logger = logging.getLogger(__name__)


class DonateRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    voucher_link: str = Field(..., min_length=1, max_length=2048)
    donor_name: str = Field(..., min_length=1, max_length=100)
    message: Optional[str] = Field(default=None, max_length=500)


def _describe_validation(exc: RequestValidationError) -> list[str]:
    described = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        described.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return described


class DonationServer:
    """Wraps FastAPI application exposing the donation endpoints."""

    def __init__(
        self,
        pipeline: RedemptionPipeline,
        ledger: DonationLedger,
        feed: LiveFeed,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._pipeline = pipeline
        self._ledger = ledger
        self._feed = feed
        self._app = FastAPI(title="Easy Donate", version="1.0.0")

        locale = self._settings.locale

        @self._app.exception_handler(RequestValidationError)
        async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "success": False,
                    "message": text(locale, "invalid_request"),
                    "errors": _describe_validation(exc),
                },
            )

        @self._app.exception_handler(Exception)
        async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
            logger.exception("api.unhandled_error", exc_info=exc)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "message": text(locale, "internal_error")},
            )

        @self._app.get("/health", status_code=status.HTTP_200_OK)
        async def health() -> Dict[str, str]:  # noqa: ANN202 - FastAPI response
            return {"status": "ok"}

        @self._app.post("/api/donate", response_model=DonationResult)
        async def donate(payload: DonateRequest, request: Request) -> DonationResult:
            client_ip = request.client.host if request.client else "unknown"
            claim = DonationClaim(
                voucher_link=payload.voucher_link,
                donor_name=payload.donor_name,
                message=payload.message or "",
                ip_address=client_ip,
            )
            return await self._pipeline.process(claim)

        @self._app.get("/api/donations")
        async def recent_donations(limit: Optional[int] = Query(default=None, ge=1)) -> Dict[str, Any]:
            resolved = min(limit or self._settings.recent_default_limit, self._settings.recent_max_limit)
            records = await self._ledger.recent_completed(resolved)
            return {
                "success": True,
                "data": [
                    DonationEvent.from_record(record).model_dump(mode="json", by_alias=True) for record in records
                ],
            }

        @self._app.get("/api/stats")
        async def stats() -> Dict[str, Any]:
            aggregate = await self._ledger.aggregate()
            return {"success": True, "data": aggregate.model_dump(mode="json", by_alias=True)}

        @self._app.websocket("/ws")
        async def live_feed(websocket: WebSocket) -> None:
            await websocket.accept()
            async with self._feed.subscribe() as subscription:
                try:
                    async for message in subscription.listen():
                        await websocket.send_json(message)
                except WebSocketDisconnect:
                    logger.debug("api.viewer_disconnected")

    @property
    def app(self) -> FastAPI:
        return self._app

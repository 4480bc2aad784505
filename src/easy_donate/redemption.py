"""Client for the external voucher redemption service.

The service does not answer in a single stable shape: the success signal and
the amount may live in several places. Both are resolved by walking ordered
probe lists, first hit wins.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping, Optional

import httpx

from .config import Settings, get_settings
from .errors import (
    ConfigurationError,
    InvalidAmount,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from .models import RedemptionResult

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]
Extractor = Callable[[Payload], Any]

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}


def _dig(payload: Any, *path: str) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def field_at(*path: str) -> Extractor:
    """Build an extractor returning the value at ``path`` or ``None``."""

    def extract(payload: Payload) -> Any:
        return _dig(payload, *path)

    extract.__name__ = "field_at_" + "_".join(path)
    return extract


def equals(extractor: Extractor, expected: Any) -> Extractor:
    def probe(payload: Payload) -> bool:
        return extractor(payload) == expected

    return probe


def present(extractor: Extractor) -> Extractor:
    def probe(payload: Payload) -> bool:
        return bool(extractor(payload))

    return probe


SUCCESS_PROBES: tuple[Extractor, ...] = (
    lambda payload: payload.get("success") is True,
    equals(field_at("status"), "success"),
    equals(field_at("status", "code"), "SUCCESS"),
    equals(field_at("status", "message"), "success"),
    present(field_at("data", "voucher")),
)

ERROR_TEXT_PROBES: tuple[Extractor, ...] = (
    field_at("message"),
    field_at("error"),
    field_at("status", "message"),
)

AMOUNT_PROBES: tuple[Extractor, ...] = (
    field_at("data", "voucher", "amount_baht"),
    field_at("data", "voucher", "redeemed_amount_baht"),
    field_at("data", "my_ticket", "amount_baht"),
    # the service really spells it this way in some answers
    field_at("amount_bath"),
    field_at("amount"),
    field_at("value"),
)


def is_success(payload: Payload) -> bool:
    return any(probe(payload) for probe in SUCCESS_PROBES)


def error_text(payload: Payload) -> Optional[str]:
    for probe in ERROR_TEXT_PROBES:
        value = probe(payload)
        if value:
            return value if isinstance(value, str) else str(value)
    return None


def extract_amount(payload: Payload) -> float:
    """Return the first populated amount field as a positive float.

    Fields holding ``None``, ``""`` or a numeric zero are skipped and the next
    field is tried.

    Raises:
        InvalidAmount: when no field is populated, or the first populated one
            does not parse to a finite number greater than zero.
    """

    for probe in AMOUNT_PROBES:
        raw = probe(payload)
        if not raw:
            continue
        try:
            amount = float(raw)
        except (TypeError, ValueError) as exc:
            raise InvalidAmount(f"unparseable amount: {raw!r}", raw_response=dict(payload)) from exc
        if not math.isfinite(amount) or amount <= 0:
            raise InvalidAmount(f"non-positive amount: {raw!r}", raw_response=dict(payload))
        return amount
    raise InvalidAmount("no amount in response", raw_response=dict(payload))


class RedemptionClient:
    """Redeems voucher hashes against the configured mobile account."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self._settings = settings or get_settings()
        self._timeout = httpx.Timeout(self._settings.redeem_timeout_sec)
        self._client = client or httpx.AsyncClient(headers=REQUEST_HEADERS, timeout=self._timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def redeem(self, voucher_hash: str) -> RedemptionResult:
        mobile = self._settings.truemoney_mobile
        if not mobile:
            raise ConfigurationError("TRUEMONEY_MOBILE is not configured")

        logger.info("redeem.calling", extra={"voucher_hash": voucher_hash})
        payload = {"voucherCode": voucher_hash, "mobileNumber": mobile}
        try:
            response = await self._client.post(
                str(self._settings.redeem_api_url),
                json=payload,
                headers=REQUEST_HEADERS,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("redeem.timeout", extra={"voucher_hash": voucher_hash})
            raise UpstreamTimeout(str(exc) or "redemption call timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("redeem.unavailable", extra={"voucher_hash": voucher_hash, "error": str(exc)})
            raise UpstreamUnavailable(str(exc)) from exc

        logger.info("redeem.response", extra={"voucher_hash": voucher_hash, "status": response.status_code})
        data = self._decode(response)

        if response.is_error:
            message = error_text(data) if data is not None else None
            logger.error(
                "redeem.http_error",
                extra={"status": response.status_code, "body": response.text[:500]},
            )
            if message:
                raise UpstreamRejected(message, raw_response=data)
            raise UpstreamUnavailable(f"HTTP {response.status_code}", raw_response=data)

        if data is None:
            raise UpstreamUnavailable("redemption service returned a non-JSON body")

        if not is_success(data):
            message = error_text(data)
            logger.warning("redeem.rejected", extra={"voucher_hash": voucher_hash, "error": message})
            raise UpstreamRejected(message, raw_response=data)

        amount = extract_amount(data)
        logger.info("redeem.succeeded", extra={"voucher_hash": voucher_hash, "amount": amount})
        return RedemptionResult(amount=amount, raw_response=data)

    @staticmethod
    def _decode(response: httpx.Response) -> Optional[dict[str, Any]]:
        try:
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return {"response": data}
        return data

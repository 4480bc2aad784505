"""Failure kinds raised along the redemption pipeline."""

from __future__ import annotations

from typing import Any, Optional


class DonationError(Exception):
    """Base class for every expected donation failure.

    ``code`` is stable and keys the localized message catalog; ``detail`` carries
    free-form context (upstream text, status codes) for logs and messages.
    """

    code = "donation_error"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.code)
        self.detail = detail


class InvalidVoucherFormat(DonationError):
    """The submitted link does not contain a recognizable voucher hash."""

    code = "invalid_voucher_format"


class DuplicateVoucher(DonationError):
    """The voucher hash is already present in the ledger."""

    code = "duplicate_voucher"


class PersistenceFailure(DonationError):
    """The ledger could not be read or written."""

    code = "persistence_failure"


class RedemptionError(DonationError):
    """Base class for failures of the external redemption call."""

    code = "redemption_error"
    # whether the voucher was actually submitted to the external service
    reached_upstream = True

    def __init__(self, detail: Optional[str] = None, raw_response: Optional[dict[str, Any]] = None) -> None:
        super().__init__(detail)
        self.raw_response = raw_response


class ConfigurationError(RedemptionError):
    """The redemption account identifier is not configured."""

    code = "configuration_error"
    reached_upstream = False


class UpstreamTimeout(RedemptionError):
    code = "upstream_timeout"


class UpstreamRejected(RedemptionError):
    """The service answered but did not report a successful redemption."""

    code = "upstream_rejected"


class UpstreamUnavailable(RedemptionError):
    code = "upstream_unavailable"


class InvalidAmount(RedemptionError):
    """The service reported success without a positive amount."""

    code = "invalid_amount"

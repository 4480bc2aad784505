"""Voucher hash extraction from user-supplied gift links."""

from __future__ import annotations

import re
from typing import Iterable, Pattern

from .errors import InvalidVoucherFormat
from .models import VOUCHER_HASH_MAX_LENGTH


DEFAULT_RULES = (
    # query parameter ?v=<hash> anywhere in the link
    r"[?&]v=([A-Za-z0-9]+)",
    # bare trailing path segment
    r"/([A-Za-z0-9]+)$",
    r"gift\.truemoney\.com/campaign/\?v=([A-Za-z0-9]+)",
)


class VoucherLocator:
    """Ordered regex rules; the first capturing match wins."""

    def __init__(self, rules: Iterable[str] | None = None, max_length: int = VOUCHER_HASH_MAX_LENGTH) -> None:
        self._max_length = max_length
        self._patterns: tuple[Pattern[str], ...] = tuple(re.compile(rule) for rule in (rules or DEFAULT_RULES))

    def extract(self, link: str) -> str:
        """Return the voucher hash embedded in ``link``.

        Raises:
            InvalidVoucherFormat: if the link is empty, no rule matches, or the
                hash exceeds the ledger column width.
        """

        if not isinstance(link, str) or not link.strip():
            raise InvalidVoucherFormat("empty voucher link")

        candidate = link.strip()
        for pattern in self._patterns:
            match = pattern.search(candidate)
            if match and match.group(1):
                voucher_hash = match.group(1)
                if len(voucher_hash) > self._max_length:
                    raise InvalidVoucherFormat(f"voucher hash longer than {self._max_length} characters")
                return voucher_hash
        raise InvalidVoucherFormat(f"unrecognized voucher link: {candidate[:100]}")

"""Localized user-facing messages."""

from __future__ import annotations

from typing import Mapping

from .config import Locale
from .errors import DonationError, UpstreamRejected

CATALOG: Mapping[Locale, Mapping[str, str]] = {
    Locale.EN: {
        "currency": "THB",
        "success": "Thank you {donor} for donating {amount} {currency}!",
        "invalid_voucher_format": "Invalid voucher link format",
        "duplicate_voucher": "voucher already redeemed",
        "persistence_failure": "Donation records are temporarily unavailable, please try again later",
        "configuration_error": "Redemption account is not configured",
        "upstream_timeout": "The redemption service timed out, please try again",
        "upstream_rejected": "Unable to redeem the voucher",
        "upstream_unavailable": "The redemption service is unavailable, please try again later",
        "invalid_amount": "No amount found in the voucher or the voucher is invalid",
        "redemption_error": "Unable to redeem the voucher",
        "donation_error": "Unable to process the donation",
        "invalid_request": "Please provide a voucher link and a donor name",
        "internal_error": "Internal server error",
    },
    Locale.TH: {
        "currency": "บาท",
        "success": "ขอบคุณ {donor} สำหรับการบริจาค {amount} {currency}!",
        "invalid_voucher_format": "รูปแบบลิงก์ไม่ถูกต้อง",
        "duplicate_voucher": "ลิงก์นี้ถูกใช้งานไปแล้ว",
        "persistence_failure": "ระบบบันทึกข้อมูลขัดข้อง กรุณาลองใหม่อีกครั้ง",
        "configuration_error": "กรุณาตั้งค่า TRUEMONEY_MOBILE ใน environment variables",
        "upstream_timeout": "การเชื่อมต่อ API หมดเวลา กรุณาลองใหม่อีกครั้ง",
        "upstream_rejected": "ไม่สามารถแลกซองอังเปาได้",
        "upstream_unavailable": "ไม่สามารถเชื่อมต่อบริการแลกซองได้ กรุณาลองใหม่อีกครั้ง",
        "invalid_amount": "ไม่พบจำนวนเงินในซองอังเปา หรือซองอังเปาไม่ถูกต้อง",
        "redemption_error": "ไม่สามารถแลกซองอังเปาได้",
        "donation_error": "ไม่สามารถดำเนินการบริจาคได้",
        "invalid_request": "กรุณากรอกลิงก์ซองอังเปาและชื่อผู้บริจาค",
        "internal_error": "เกิดข้อผิดพลาดภายในระบบ",
    },
}


def format_amount(amount: float) -> str:
    """Render ``50.0`` as ``50`` and ``1234.5`` as ``1,234.50``."""

    if float(amount).is_integer():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def text(locale: Locale, key: str) -> str:
    catalog = CATALOG.get(locale, CATALOG[Locale.EN])
    return catalog.get(key) or CATALOG[Locale.EN][key]


def success_message(locale: Locale, donor: str, amount: float) -> str:
    return text(locale, "success").format(
        donor=donor,
        amount=format_amount(amount),
        currency=text(locale, "currency"),
    )


def error_message(locale: Locale, error: DonationError) -> str:
    """Return the user-facing text for a pipeline failure."""

    if isinstance(error, UpstreamRejected) and error.detail:
        return error.detail
    return text(locale, error.code)

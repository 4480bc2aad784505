import pytest

from easy_donate.errors import InvalidVoucherFormat
from easy_donate.voucher import VoucherLocator


@pytest.mark.parametrize(
    ("link", "expected"),
    [
        ("https://x/campaign/?v=ABC123", "ABC123"),
        ("https://gift.truemoney.com/campaign/?v=019a2b3c4d5e6f", "019a2b3c4d5e6f"),
        ("https://gift.truemoney.com/campaign/?lang=th&v=Zz9", "Zz9"),
        ("https://example.com/vouchers/Hash42", "Hash42"),
        ("  https://x/campaign/?v=ABC123  ", "ABC123"),
    ],
)
def test_extract_known_link_shapes(link: str, expected: str) -> None:
    assert VoucherLocator().extract(link) == expected


def test_query_parameter_wins_over_trailing_segment() -> None:
    locator = VoucherLocator()
    assert locator.extract("https://x/y/?v=first&z=/second") == "first"


@pytest.mark.parametrize(
    "link",
    ["", "   ", "not a link", "https://x/campaign/?v=", "https://x/path/with-dash/", "https://x/?nav=abc-"],
)
def test_extract_rejects_unrecognized_links(link: str) -> None:
    with pytest.raises(InvalidVoucherFormat):
        VoucherLocator().extract(link)


def test_extract_is_deterministic() -> None:
    locator = VoucherLocator()
    link = "https://gift.truemoney.com/campaign/?v=SameHash1"
    assert locator.extract(link) == locator.extract(link) == "SameHash1"


def test_hash_longer_than_ledger_column_is_rejected() -> None:
    locator = VoucherLocator()
    assert locator.extract("https://x/campaign/?v=" + "A" * 128) == "A" * 128
    with pytest.raises(InvalidVoucherFormat):
        locator.extract("https://x/campaign/?v=" + "A" * 129)
    with pytest.raises(InvalidVoucherFormat):
        locator.extract("https://x/vouchers/" + "B" * 200)

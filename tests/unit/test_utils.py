"""Tests for identifier, period and receipt date utilities."""

from datetime import datetime, timedelta, timezone

import pytest

from storekit_client.utils import (
    billing_period_to_timedelta,
    format_receipt_date,
    generate_request_id,
    generate_transaction_id,
    parse_billing_period,
    parse_receipt_date,
)


class TestIdentifiers:
    """Test identifier generation."""

    def test_transaction_id_format(self):
        transaction_id = generate_transaction_id()
        assert len(transaction_id) == 15
        assert transaction_id.isdigit()

    def test_transaction_ids_unique(self):
        ids = {generate_transaction_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_request_ids_unique(self):
        assert generate_request_id() != generate_request_id()


class TestBillingPeriod:
    """Test ISO 8601 subscription periods."""

    @pytest.mark.parametrize(
        "period,days",
        [("P1D", 1), ("P7D", 7), ("P1W", 7), ("P1M", 30), ("P3M", 90), ("P1Y", 365), ("p1m", 30)],
    )
    def test_parse(self, period, days):
        assert parse_billing_period(period) == days

    def test_timedelta(self):
        assert billing_period_to_timedelta("P1M") == timedelta(days=30)

    @pytest.mark.parametrize("period", ["", "1M", "P", "P0D", "P1H", "PXM"])
    def test_invalid(self, period):
        with pytest.raises(ValueError):
            parse_billing_period(period)


class TestReceiptDates:
    """Test the receipt date format."""

    def test_parse_utc(self):
        assert parse_receipt_date("2030-01-01 00:00:00 UTC") == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_parse_etc_gmt(self):
        parsed = parse_receipt_date("2030-06-15 12:30:45 Etc/GMT")
        assert parsed == datetime(2030, 6, 15, 12, 30, 45, tzinfo=timezone.utc)

    def test_format(self):
        value = datetime(2030, 1, 1, 8, 0, tzinfo=timezone(timedelta(hours=8)))
        assert format_receipt_date(value) == "2030-01-01 00:00:00 Etc/GMT"

    def test_format_naive_assumed_utc(self):
        assert format_receipt_date(datetime(2030, 1, 1)) == "2030-01-01 00:00:00 Etc/GMT"

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "2030-01-01 00:00:00",
            "2030-01-01T00:00:00 UTC",
            "2030-01-01 00:00:00 Not/AZone",
            "2030-01-01 00:00:00 America",
        ],
    )
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_receipt_date(value)

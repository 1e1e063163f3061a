from datetime import datetime
from decimal import Decimal

import pytz

from offer_engine.config import Config
from offer_engine.models.offer import UsageRecord
from offer_engine.utils.formatters import format_datetime, format_price
from offer_engine.utils.messages import Messages


def test_format_price():
    assert format_price(Decimal(1500)) == f"{Config.CURRENCY_SYMBOL}1,500"
    assert format_price(Decimal("99.5")) == f"{Config.CURRENCY_SYMBOL}99.50"


def test_format_datetime_uses_display_timezone(monkeypatch):
    monkeypatch.setattr(Config, "TIMEZONE", "Asia/Kolkata")

    assert format_datetime(datetime(2026, 1, 15, 12, 0, tzinfo=pytz.utc)) == "2026-01-15 17:30:00"
    assert format_datetime(datetime(2026, 1, 15, 12, 0)) == "2026-01-15 17:30:00"


def test_format_percentage_offer(build_offer):
    text = Messages.format_offer(build_offer(usage_limit=10))

    assert "WELCOME10: 10% off" in text
    assert f"Up to {Config.CURRENCY_SYMBOL}200" in text
    assert "Uses left: 10" in text


def test_format_fixed_offer(build_offer):
    text = Messages.format_offer(build_offer(type="fixed", value=Decimal(100), maximum_discount=None))

    assert f"{Config.CURRENCY_SYMBOL}100 off" in text
    assert "Up to" not in text
    assert "Uses left" not in text


def test_format_usage():
    record = UsageRecord(user_id=7, order_id=42, discount_applied=Decimal(60),
                         applied_at=datetime(2026, 1, 15, 12, 0, tzinfo=pytz.utc))

    text = Messages.format_usage(record)

    assert "user 7" in text
    assert "order #42" in text
    assert f"{Config.CURRENCY_SYMBOL}60" in text


def test_minimum_not_met_text():
    assert Messages.minimum_not_met(Decimal(500)) == (
        f"Minimum order amount of {Config.CURRENCY_SYMBOL}500 required"
    )

# offer_engine/utils/formatters.py
from datetime import datetime
import pytz
from decimal import Decimal
from ..config import Config

def format_price(amount: Decimal) -> str:
    """Money with currency symbol; whole amounts drop the paise"""
    amount = Decimal(str(amount))
    if amount == amount.to_integral_value():
        return f"{Config.CURRENCY_SYMBOL}{amount:,.0f}"
    return f"{Config.CURRENCY_SYMBOL}{amount:,.2f}"

def format_datetime(dt: datetime) -> str:
    """Datetime in the configured display timezone"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(local_tz).strftime("%Y-%m-%d %H:%M:%S")

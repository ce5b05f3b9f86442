"""
Currency conversion between an account's native currency and the user's base currency.

Only the USD/BIRR pair is converted. The stored exchange rate is always
expressed as BIRR per 1 USD. Any other currency code is treated as if it
were already denominated in the base currency.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

USD = "USD"
BIRR = "BIRR"
SUPPORTED_CURRENCIES = (USD, BIRR)

# Locale codes that name a supported currency
CURRENCY_ALIASES = {
    "ETB": BIRR,
}

CENTS = Decimal("0.01")
# Scale of the USD columns behind budgets and goals
USD_STORAGE_PLACES = Decimal("0.000001")


@dataclass(frozen=True)
class CurrencySettings:
    base_currency: str = USD
    exchange_rate: Decimal = Decimal("120")


def normalize_currency(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    normalized = value.strip().upper()
    return CURRENCY_ALIASES.get(normalized, normalized)


def coerce_amount(amount: Union[Decimal, int, str]) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        raise TypeError("Monetary amounts must not be floats")
    return Decimal(str(amount))


def _convert(amount: Decimal, source: str, target: str, rate: Decimal) -> Decimal:
    if source == target:
        return amount
    if source == USD and target == BIRR:
        return amount * rate
    if source == BIRR and target == USD:
        return amount / rate
    return amount


def to_base(amount, native_currency: Optional[str], settings: CurrencySettings) -> Decimal:
    """Convert an amount in ``native_currency`` into the user's base currency."""
    value = coerce_amount(amount)
    source = normalize_currency(native_currency) or settings.base_currency
    return _convert(value, source, settings.base_currency, settings.exchange_rate)


def from_base(amount, target_currency: Optional[str], settings: CurrencySettings) -> Decimal:
    """Convert an amount in the user's base currency into ``target_currency``."""
    value = coerce_amount(amount)
    target = normalize_currency(target_currency) or settings.base_currency
    return _convert(value, settings.base_currency, target, settings.exchange_rate)


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents for presentation. Never applied before storage math."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def quantize_stored_usd(value: Decimal) -> Decimal:
    """Round a USD amount to the scale of the budget and goal columns."""
    return value.quantize(USD_STORAGE_PLACES, rounding=ROUND_HALF_UP)

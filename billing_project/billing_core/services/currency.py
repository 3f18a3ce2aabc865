"""
Document currency vs. the organization's base currency.

The exchange rate is whatever the user recorded when issuing the document
(1 document unit = rate base units). It is never fetched or recomputed here.
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError

from ..exceptions import StateConflictError
from .calculations import ZERO, quantize_money, to_decimal

CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")

CURRENCY_SYMBOLS = {
    "USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "MVR": "Rf", "INR": "₹",
    "AUD": "A$", "CAD": "C$", "SGD": "S$", "CNY": "¥", "AED": "د.إ",
    "SAR": "﷼", "THB": "฿", "MYR": "RM", "PHP": "₱", "IDR": "Rp",
    "HKD": "HK$", "NZD": "NZ$", "CHF": "CHF", "SEK": "kr", "NOK": "kr",
    "DKK": "kr", "PLN": "zł", "CZK": "Kč", "HUF": "Ft", "RON": "lei",
    "ZAR": "R", "BRL": "R$", "MXN": "$", "TRY": "₺",
}

# Symbol goes in front of the amount for these, after it for the rest
SYMBOL_FIRST = {"USD", "EUR", "GBP", "JPY", "CNY", "AUD", "CAD", "SGD", "HKD", "NZD"}


@dataclass(frozen=True)
class CurrencyResolution:
    currency: str
    requires_exchange_rate: bool
    exchange_rate: Optional[Decimal]


def is_valid_currency_code(code) -> bool:
    return isinstance(code, str) and bool(CURRENCY_CODE_RE.match(code))


def resolve(currency, exchange_rate, company_settings) -> CurrencyResolution:
    """Work out which currency a document is in and whether it needs a rate.

    ``company_settings`` is passed in explicitly (anything with ``currency``
    and ``base_currency`` attributes) so this stays a pure function.
    """
    resolved = (currency or company_settings.currency).upper()
    rate = to_decimal(exchange_rate, default=None)
    return CurrencyResolution(
        currency=resolved,
        requires_exchange_rate=resolved != company_settings.base_currency.upper(),
        exchange_rate=rate,
    )


def resolve_document(document, company_settings) -> CurrencyResolution:
    return resolve(
        getattr(document, "currency", None),
        getattr(document, "exchange_rate", None),
        company_settings,
    )


def validate(resolution: CurrencyResolution):
    """Fail when a foreign-currency document has no usable rate."""
    errors = {}
    if not is_valid_currency_code(resolution.currency):
        errors["currency"] = ["Currency must be an ISO 4217 code (3 uppercase letters)."]
    if resolution.requires_exchange_rate and (
        resolution.exchange_rate is None or resolution.exchange_rate <= ZERO
    ):
        errors["exchange_rate"] = [
            f"An exchange rate greater than 0 is required for {resolution.currency} documents."
        ]
    if errors:
        raise ValidationError(errors)
    return resolution


def ensure_rate_frozen(document, currency, exchange_rate):
    """Once a document has left draft its currency and rate are part of the audit trail."""
    if document.status == "draft":
        return
    new_rate = to_decimal(exchange_rate, default=None)
    if currency and currency.upper() != document.currency:
        raise StateConflictError(f"Currency of {document} cannot change after it was sent.")
    if new_rate is not None and new_rate != document.exchange_rate:
        raise StateConflictError(f"Exchange rate of {document} cannot change after it was sent.")


def convert_to_base(amount, exchange_rate) -> Decimal:
    rate = to_decimal(exchange_rate, default=None)
    if rate is None or rate <= ZERO:
        return to_decimal(amount)
    return to_decimal(amount) * rate


def convert_from_base(amount, exchange_rate) -> Decimal:
    rate = to_decimal(exchange_rate, default=None)
    if rate is None or rate <= ZERO:
        return to_decimal(amount)
    return to_decimal(amount) / rate


def currency_symbol(code) -> str:
    if not code:
        return "$"
    return CURRENCY_SYMBOLS.get(code.upper(), code.upper())


def format_money(amount, code, *, show_code=False) -> str:
    code = (code or "").upper()
    number = f"{quantize_money(amount):,.2f}"
    symbol = currency_symbol(code)
    text = f"{symbol}{number}" if code in SYMBOL_FIRST else f"{number} {symbol}"
    if show_code and code:
        text += f" {code}"
    return text

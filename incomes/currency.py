from __future__ import annotations

import math
from typing import Dict, Iterable, Mapping, Optional

from sqlmodel import Session, select

from .errors import ConversionError
from .models import Currency


def _normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


class CurrencyConverter:
    """Converts amounts into a single reporting currency.

    ``rates`` maps a currency code to the number of units of that currency
    worth one unit of the reporting currency, so converting divides by the
    source rate. The reporting currency always converts at 1.
    """

    def __init__(self, reporting_currency: str, rates: Mapping[str, float]) -> None:
        self.reporting_currency = _normalize_code(reporting_currency)
        self.rates: Dict[str, float] = {_normalize_code(code): rate for code, rate in rates.items()}

    @classmethod
    def from_currencies(cls, reporting_currency: str, currencies: Iterable[Currency]) -> "CurrencyConverter":
        return cls(reporting_currency, {item.code: item.rate for item in currencies})

    def rate_for(self, currency_code: Optional[str]) -> float:
        code = _normalize_code(currency_code)
        if code == self.reporting_currency:
            return 1.0
        if not code or code not in self.rates:
            raise ConversionError(code)
        rate = self.rates[code]
        if rate is None or not math.isfinite(rate) or rate <= 0:
            raise ConversionError(code, reason=f"invalid rate {rate!r}")
        return rate

    def convert(self, amount: float, currency_code: Optional[str]) -> float:
        return float(amount or 0.0) / self.rate_for(currency_code)

    __call__ = convert


def load_converter(session: Session, reporting_currency: str) -> CurrencyConverter:
    currencies = session.exec(select(Currency)).all()
    return CurrencyConverter.from_currencies(reporting_currency, currencies)


def enabled_currency_choices(session: Session) -> Dict[str, str]:
    rows = session.exec(select(Currency).where(Currency.enabled == True).order_by(Currency.name)).all()  # noqa: E712
    return {row.code: row.name for row in rows}


def ensure_default_currency(session: Session, code: str) -> Currency:
    normalized = _normalize_code(code)
    existing = session.exec(select(Currency).where(Currency.code == normalized)).first()
    if existing:
        return existing
    currency = Currency(name=normalized, code=normalized, rate=1.0, enabled=True)
    session.add(currency)
    session.commit()
    session.refresh(currency)
    return currency

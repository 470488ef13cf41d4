"""Currency conversion collaborator used by finance ingestion."""

from __future__ import annotations

from typing import Mapping, Protocol


class CurrencyConverter(Protocol):
    def __call__(self, amount: float, from_currency: str, to_currency: str) -> float: ...


def identity_converter(amount: float, from_currency: str, to_currency: str) -> float:
    return amount


class RateTableConverter:
    """Converts through a base currency using units-of-base per currency.

    rates={"USD": 1.0, "UZS": 1 / 12_500} means one UZS is worth 1/12500 USD.
    Unknown currencies leave the amount unchanged.
    """

    def __init__(self, rates: Mapping[str, float]):
        self._rates = {code.upper(): rate for code, rate in rates.items()}

    def __call__(self, amount: float, from_currency: str, to_currency: str) -> float:
        src = self._rates.get(from_currency.upper())
        dst = self._rates.get(to_currency.upper())
        if src is None or dst is None or dst == 0.0:
            return amount
        return amount * src / dst

"""MetalpriceAPI.com provider.

Requests USD-based rates for gold (XAU), silver (XAG) and the rupee (INR).
XAU and XAG come back as troy ounces per USD, so they are inverted to USD
per ounce, converted to INR with the INR rate and then to a per-gram price.

Example response::

    {"success": true, "base": "USD",
     "rates": {"XAU": 0.000482, "XAG": 0.0389, "INR": 83.12}}
"""

from typing import Any

from metaltracker.exceptions import SchemaInvalid
from metaltracker.models import RateRecord
from metaltracker.providers.base import RateProvider
from metaltracker.rates.units import gram_price_from_troy_ounce, invert_rate


class MetalpriceProvider(RateProvider):
    """Provider A: inverse USD exchange rates per troy ounce."""

    name = "MetalpriceAPI.com"
    placeholder_key = "YOUR_METALPRICE_API_KEY"

    def _query_params(self) -> dict[str, str]:
        return {
            "api_key": self._api_key,
            "base": "USD",
            "currencies": "XAU,XAG,INR",
        }

    def _parse(self, payload: Any) -> RateRecord:
        rates = self._success_section(payload, "rates")
        xau = self._number(rates, "XAU")
        xag = self._number(rates, "XAG")
        inr_per_usd = self._number(rates, "INR")

        try:
            gold_usd_per_oz = invert_rate(xau)
            silver_usd_per_oz = invert_rate(xag)
        except ValueError as e:
            raise SchemaInvalid(f"{self.name} metal rate: {e}") from e

        return self._build_record(
            gram_price_from_troy_ounce(gold_usd_per_oz * inr_per_usd),
            gram_price_from_troy_ounce(silver_usd_per_oz * inr_per_usd),
        )

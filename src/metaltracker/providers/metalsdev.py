"""Metals.dev provider.

Requests prices already quoted in rupees per gram, so no unit conversion is
needed beyond rounding and the 22k derivation.

Example response::

    {"status": "success", "success": true, "currency": "INR", "unit": "g",
     "metals": {"gold": 6912.43, "silver": 84.71}}
"""

from typing import Any

from metaltracker.models import RateRecord
from metaltracker.providers.base import RateProvider


class MetalsDevProvider(RateProvider):
    """Provider B: INR per gram, direct."""

    name = "Metals.dev"
    placeholder_key = "YOUR_METALSDEV_API_KEY"

    def _query_params(self) -> dict[str, str]:
        return {
            "api_key": self._api_key,
            "currency": "INR",
            "unit": "g",
        }

    def _parse(self, payload: Any) -> RateRecord:
        metals = self._success_section(payload, "metals")
        return self._build_record(
            self._number(metals, "gold"),
            self._number(metals, "silver"),
        )

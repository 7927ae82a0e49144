"""Price provider layer -- external precious-metal rate sources via httpx."""

from metaltracker.providers.base import RateProvider
from metaltracker.providers.metalprice import MetalpriceProvider
from metaltracker.providers.metalsdev import MetalsDevProvider

__all__ = ["MetalpriceProvider", "MetalsDevProvider", "RateProvider"]

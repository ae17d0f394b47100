"""Click capture and click aggregation."""

from .aggregator import Aggregates, AnalyticsAggregator, AnalyticsScope
from .geo import GeoLocator, HttpGeoLocator, get_geo_locator
from .recorder import ClickRecorder

__all__ = [
    "Aggregates",
    "AnalyticsAggregator",
    "AnalyticsScope",
    "ClickRecorder",
    "GeoLocator",
    "HttpGeoLocator",
    "get_geo_locator",
]

"""
Best-effort geo lookup for click events.

Locators are only ever called from recorder worker threads, never from the
redirect path. A locator must not raise for lookup problems; it degrades to
("Unknown", "Unknown").

Provided locators:
    - GeoLocator:     loopback -> ("Local", "Localhost"), everything else Unknown
    - HttpGeoLocator: same local handling, then an HTTP JSON endpoint whose
                      response carries "country" and "city" fields
"""

import ipaddress
import logging
from typing import Optional, Tuple

import requests

from ..models import UNKNOWN

log = logging.getLogger("shortlink.geo")

LOCAL_COUNTRY = "Local"
LOCAL_CITY = "Localhost"

Location = Tuple[str, str]  # (country, city)


def is_local_address(ip_address: Optional[str]) -> bool:
    if not ip_address:
        return False
    if ip_address.strip().lower() == "localhost":
        return True
    try:
        return ipaddress.ip_address(ip_address.strip()).is_loopback
    except ValueError:
        return False


class GeoLocator:
    """Default locator: no external collaborator wired in."""

    def locate(self, ip_address: Optional[str]) -> Location:
        if is_local_address(ip_address):
            return LOCAL_COUNTRY, LOCAL_CITY
        return UNKNOWN, UNKNOWN


class HttpGeoLocator(GeoLocator):
    """
    Geo collaborator over HTTP.

    Args:
        url_template (str): Endpoint with an "{ip}" placeholder,
            e.g. "http://ip-api.com/json/{ip}".
        timeout (float): Seconds before the lookup is given up.
        session (requests.Session, optional): Shared session for keep-alive.
    """

    def __init__(self, url_template: str, timeout: float = 1.0, session: Optional[requests.Session] = None):
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or requests.Session()

    def locate(self, ip_address: Optional[str]) -> Location:
        if not ip_address or is_local_address(ip_address):
            return super().locate(ip_address)
        try:
            resp = self.session.get(self.url_template.format(ip=ip_address), timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            log.debug("Geo lookup failed for %s: %s", ip_address, exc)
            return UNKNOWN, UNKNOWN
        if not isinstance(payload, dict):
            return UNKNOWN, UNKNOWN
        return payload.get("country") or UNKNOWN, payload.get("city") or UNKNOWN


def get_geo_locator(url_template: str = "", timeout: float = 1.0) -> GeoLocator:
    """HTTP locator when an endpoint is configured, else the local-only default."""
    if url_template:
        return HttpGeoLocator(url_template, timeout=timeout)
    return GeoLocator()

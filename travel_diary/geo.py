from __future__ import annotations

import ipaddress
import logging

import httpx

from travel_diary.config import GEO_LOOKUP_FIELDS, GEO_LOOKUP_URL
from travel_diary.models import GeoLocation

logger = logging.getLogger(__name__)


def is_local_ip(ip: str) -> bool:
    """True for loopback, private and link-local addresses.

    Anything that does not parse as an IP address (e.g. "testclient", or a
    mangled proxy header) is treated as local too, so it never reaches the
    lookup service.
    """
    try:
        addr = ipaddress.ip_address(ip)
        return addr.is_loopback or addr.is_private or addr.is_link_local
    except ValueError:
        return True


class GeoResolver:
    """Resolve an IP to country/region/city/ISP via ip-api.com.

    One GET per call, no retries, no caching (the access store keeps the
    result for the lifetime of the visitor record). Never raises.
    """

    def __init__(self, client: httpx.Client | None = None, url: str = GEO_LOOKUP_URL) -> None:
        self._client = client
        self._url = url

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client()
        return self._client

    def resolve(self, ip: str) -> GeoLocation:
        if is_local_ip(ip):
            return GeoLocation.local()

        try:
            resp = self._http().get(
                self._url.format(ip=ip),
                params={"fields": GEO_LOOKUP_FIELDS},
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geolocation lookup for %s failed: %s", ip, exc)
            return GeoLocation.unknown()

        if not isinstance(data, dict) or data.get("status") != "success":
            message = data.get("message", "") if isinstance(data, dict) else ""
            logger.warning("Geolocation lookup for %s unsuccessful: %s", ip, message or "bad response")
            return GeoLocation.unknown()

        return GeoLocation(
            country=str(data.get("country", "")),
            region=str(data.get("regionName", "")),
            city=str(data.get("city", "")),
            isp=str(data.get("isp", "")),
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

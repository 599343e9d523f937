"""
Visitor enrichment: user-agent parsing, coarse IP geolocation and bot
classification.

``enrich(user_agent, ip)`` is a pure function with a fixed contract: it always
returns a VisitorInfo, substituting "Unknown" for anything it cannot derive.
The parsing rules below are deliberately coarse; dashboards only need the
family names.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
import ipaddress
import logging

from shortlink_app.click_processor.models import UNKNOWN, VisitorInfo
from shortlink_app.exceptions import EnrichmentDegraded

logger = logging.getLogger(__name__)

BOT_SIGNATURES = ("bot", "crawler", "spider", "crawling")

# (marker, family) pairs, checked in order; first match wins.
# Order matters: Edge and Opera UAs also contain "Chrome/", Chrome UAs also
# contain "Safari/", iOS UAs also contain "Mac OS X".
_BROWSER_MARKERS = (
    ("Edg/", "Edge"),
    ("Edge/", "Edge"),
    ("OPR/", "Opera"),
    ("Opera", "Opera"),
    ("SamsungBrowser/", "Samsung Internet"),
    ("FxiOS/", "Firefox"),
    ("Firefox/", "Firefox"),
    ("CriOS/", "Chrome"),
    ("Chrome/", "Chrome"),
    ("Version/", "Safari"),
    ("MSIE ", "IE"),
    ("Trident/", "IE"),
    ("curl/", "curl"),
)

_OS_MARKERS = (
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("iPod", "iOS"),
    ("Android", "Android"),
    ("Windows", "Windows"),
    ("CrOS", "Chrome OS"),
    ("Mac OS X", "Mac OS"),
    ("Macintosh", "Mac OS"),
    ("Linux", "Linux"),
)


def is_bot(user_agent: Optional[str]) -> bool:
    """Case-insensitive substring match against BOT_SIGNATURES."""
    if not user_agent:
        return False
    lowered = user_agent.lower()
    return any(signature in lowered for signature in BOT_SIGNATURES)


def parse_user_agent(user_agent: Optional[str]) -> Tuple[str, str, str]:
    """
    Split a user-agent string into (browser, os, device).

    Device is one of "mobile", "tablet" or "desktop" whenever a user agent is
    present; everything is "Unknown" when it is missing.
    """
    if not user_agent:
        return UNKNOWN, UNKNOWN, UNKNOWN

    try:
        browser = next(
            (family for marker, family in _BROWSER_MARKERS if marker in user_agent),
            UNKNOWN,
        )
        if browser == "Safari" and "Safari/" not in user_agent:
            browser = UNKNOWN

        os_name = next(
            (family for marker, family in _OS_MARKERS if marker in user_agent),
            UNKNOWN,
        )

        if "iPad" in user_agent or "Tablet" in user_agent or (
            "Android" in user_agent and "Mobile" not in user_agent
        ):
            device = "tablet"
        elif "Mobi" in user_agent or "iPhone" in user_agent or "iPod" in user_agent:
            device = "mobile"
        else:
            device = "desktop"
    except Exception as e:
        raise EnrichmentDegraded(f"user agent parse failed: {e}") from e

    return browser, os_name, device


def normalize_ip(ip: Optional[str]) -> Optional[str]:
    """Strip whitespace and the IPv4-mapped IPv6 prefix (``::ffff:``)."""
    if not ip:
        return None
    ip = ip.strip()
    if ip.lower().startswith("::ffff:") and "." in ip:
        ip = ip[7:]
    return ip or None


def is_public_ip(ip: Optional[str]) -> bool:
    """False for private, loopback, link-local, reserved and unparseable IPs."""
    if not ip:
        return False
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    )


class GeoResolver(ABC):
    """
    IP -> (country, city) lookup.

    Implementations may return None or raise; enrich() treats both as
    "Unknown".
    """

    @abstractmethod
    def lookup(self, ip: str) -> Optional[Tuple[str, str]]:
        pass


class NullGeoResolver(GeoResolver):
    """No geolocation database configured: every lookup is unknown."""

    def lookup(self, ip: str) -> Optional[Tuple[str, str]]:
        return None


class StaticGeoResolver(GeoResolver):
    """
    Table-driven resolver keyed by network (CIDR) strings.

    Useful for intranet deployments and tests, e.g.
    ``StaticGeoResolver({"8.8.8.0/24": ("US", "Mountain View")})``.
    """

    def __init__(self, table: Dict[str, Tuple[str, str]]):
        self._networks = [
            (ipaddress.ip_network(network, strict=False), location)
            for network, location in table.items()
        ]

    def lookup(self, ip: str) -> Optional[Tuple[str, str]]:
        address = ipaddress.ip_address(ip)
        for network, location in self._networks:
            if address.version == network.version and address in network:
                return location
        return None


def resolve_location(ip: Optional[str], resolver: GeoResolver) -> Tuple[str, str]:
    """(country, city) for a public IP; ("Unknown", "Unknown") otherwise."""
    if not is_public_ip(ip):
        return UNKNOWN, UNKNOWN
    try:
        location = resolver.lookup(ip)
    except Exception as e:
        raise EnrichmentDegraded(f"geolocation failed for {ip}: {e}") from e
    if not location:
        return UNKNOWN, UNKNOWN
    country, city = location
    return country or UNKNOWN, city or UNKNOWN


def enrich(
    user_agent: Optional[str],
    ip: Optional[str],
    geo_resolver: Optional[GeoResolver] = None,
) -> VisitorInfo:
    """
    Derive browser/os/device and country/city for one visit.

    Never raises: an EnrichmentDegraded from either step is logged and the
    affected fields keep their "Unknown" defaults.
    """
    resolver = geo_resolver or NullGeoResolver()
    ip = normalize_ip(ip)
    visitor = VisitorInfo(ip=ip, user_agent=user_agent)

    try:
        visitor.browser, visitor.os, visitor.device = parse_user_agent(user_agent)
    except EnrichmentDegraded as e:
        logger.warning("Enrichment degraded: %s", e)

    try:
        visitor.country, visitor.city = resolve_location(ip, resolver)
    except EnrichmentDegraded as e:
        logger.warning("Enrichment degraded: %s", e)

    return visitor

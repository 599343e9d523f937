"""
FastAPI dependencies for dependency injection.

Routes never build services themselves: the ServiceContainer created in the
application lifespan lives on ``app.state`` and these functions hand its
components to the routes.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (start the app with a container built from test settings)
- Flexible (swap implementations via config)
"""

from typing import Optional

from fastapi import Request

from shortlink_app.click_processor.models import RawVisit
from shortlink_app.click_processor.enrichment import normalize_ip
from shortlink_app.container import ServiceContainer
from shortlink_app.services.analytics_service import AnalyticsService
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.resolver import Resolver


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_link_service(request: Request) -> LinkService:
    return get_container(request).links


def get_resolver(request: Request) -> Resolver:
    return get_container(request).resolver


def get_analytics_service(request: Request) -> AnalyticsService:
    return get_container(request).analytics


def client_ip(request: Request) -> Optional[str]:
    """
    Best guess at the visitor's address behind proxies.

    First X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return normalize_ip(first_hop)

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return normalize_ip(real_ip.strip())

    if request.client:
        return normalize_ip(request.client.host)
    return None


def get_raw_visit(request: Request) -> RawVisit:
    """Request metadata for the click recorder, timestamped by the container clock."""
    return RawVisit(
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
        timestamp=get_container(request).clock(),
    )

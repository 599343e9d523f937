"""
Database models for the short link service.

ShortLink holds the transactional mapping; ClickEvent holds one row per
redirect for analytics. Both live in the same durable store.
"""

from .link import ShortLink
from .click import ClickEvent

__all__ = ["ShortLink", "ClickEvent"]

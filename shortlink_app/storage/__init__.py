"""
Durable store module.

Implements the Strategy Pattern for the authoritative record store holding
short links and click events.
"""

from .strategies import LinkStore, SQLAlchemyLinkStore

__all__ = [
    "LinkStore",
    "SQLAlchemyLinkStore",
]

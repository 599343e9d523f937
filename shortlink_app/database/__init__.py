"""
Database module: declarative base and async engine/session lifecycle.
"""

from .connection import Base, Database

__all__ = ["Base", "Database"]

"""Database configuration and utilities."""

from .session import Base, Store, create_store

__all__ = ["Base", "Store", "create_store"]

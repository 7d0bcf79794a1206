"""System-level bookkeeping tables."""

from sqlalchemy import Column, Integer, Table

from cerca.db.session import Base

# Single-row marker written by data migrations; values only ever increase.
meta_table = Table(
    "meta",
    Base.metadata,
    Column("schemaversion", Integer, nullable=False),
)

"""SQLAlchemy models for forum accounts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from cerca.db.session import Base


class User(Base):
    """Registered account; ids are never reused."""

    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column("passwordhash", Text, nullable=False)


class Admin(Base):
    """Membership of a user in the admin set."""

    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), primary_key=True)


class Registration(Base):
    """Record of where and when an account was registered."""

    __tablename__ = "registrations"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column("userid", Integer, ForeignKey("users.id"))
    host: Mapped[str | None] = mapped_column(Text, nullable=True)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

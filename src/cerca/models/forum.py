"""Models for topics, threads, and posts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from cerca.db.session import Base


class Topic(Base):
    """Forum category; a bucket of threads."""

    __tablename__ = "topics"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Thread(Base):
    """A conversation started by a user within a topic."""

    __tablename__ = "threads"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    publish_time: Mapped[datetime | None] = mapped_column(
        "publishtime", DateTime(timezone=True), nullable=True
    )
    topic_id: Mapped[int | None] = mapped_column("topicid", Integer, ForeignKey("topics.id"))
    # Rewritten to the deleted user when the author is removed.
    author_id: Mapped[int | None] = mapped_column("authorid", Integer, ForeignKey("users.id"))


class Post(Base):
    """A reply within a thread; the first post carries the thread's content."""

    __tablename__ = "posts"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    publish_time: Mapped[datetime | None] = mapped_column(
        "publishtime", DateTime(timezone=True), nullable=True
    )
    last_edit: Mapped[datetime | None] = mapped_column(
        "lastedit", DateTime(timezone=True), nullable=True
    )
    author_id: Mapped[int | None] = mapped_column("authorid", Integer, ForeignKey("users.id"))
    thread_id: Mapped[int | None] = mapped_column("threadid", Integer, ForeignKey("threads.id"))

"""initial schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 10:12:41.503118

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the forum tables."""
    op.create_table(
        "meta",
        sa.Column("schemaversion", sa.Integer(), nullable=False),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("passwordhash", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "threads",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("publishtime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("topicid", sa.Integer(), nullable=True),
        sa.Column("authorid", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["authorid"], ["users.id"]),
        sa.ForeignKeyConstraint(["topicid"], ["topics.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("publishtime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lastedit", sa.DateTime(timezone=True), nullable=True),
        sa.Column("authorid", sa.Integer(), nullable=True),
        sa.Column("threadid", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["authorid"], ["users.id"]),
        sa.ForeignKeyConstraint(["threadid"], ["threads.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("userid", sa.Integer(), nullable=True),
        sa.Column("host", sa.Text(), nullable=True),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("time", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["userid"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "moderation_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("actingid", sa.Integer(), nullable=False),
        sa.Column("recipientid", sa.Integer(), nullable=True),
        sa.Column("action", sa.Integer(), nullable=False),
        sa.Column("time", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["actingid"], ["users.id"]),
        sa.ForeignKeyConstraint(["recipientid"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "moderation_proposals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("proposerid", sa.Integer(), nullable=False),
        sa.Column("recipientid", sa.Integer(), nullable=False),
        sa.Column("action", sa.Integer(), nullable=False),
        sa.Column("time", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["proposerid"], ["users.id"]),
        sa.ForeignKeyConstraint(["recipientid"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "quorum_decisions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("userid", sa.Integer(), nullable=False),
        sa.Column("decision", sa.Boolean(), nullable=False),
        sa.Column("modlogid", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["modlogid"], ["moderation_log.id"]),
        sa.ForeignKeyConstraint(["userid"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )


def downgrade() -> None:
    """Drop the forum tables."""
    for table in (
        "quorum_decisions",
        "moderation_proposals",
        "moderation_log",
        "registrations",
        "posts",
        "threads",
        "topics",
        "admins",
        "users",
        "meta",
    ):
        op.drop_table(table)

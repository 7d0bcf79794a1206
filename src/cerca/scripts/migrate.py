"""Bring the configured database up to date.

Applies the Alembic schema migrations, makes sure the reserved deleted user
exists, and optionally runs the one-shot password hash migration.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

from alembic import command
from alembic.config import Config

from cerca.core.errors import CercaError
from cerca.core.settings import settings
from cerca.db.session import create_store
from cerca.services.migrations import migrate_pwhash
from cerca.services.users import UserRegistry

MIGRATIONS_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "migrations")
)

logger = logging.getLogger(__name__)


def run_upgrade_head(url: str | None = None) -> None:
    """Apply every Alembic revision up to head."""
    cfg = Config(os.path.join(MIGRATIONS_DIR, "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    command.upgrade(cfg, "head")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Migrate the configured forum database")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--pwhash",
        action="store_true",
        help="Also rewrite legacy Argon2id password hashes to the PHC format.",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")

    url = args.url or settings.database_url_sync
    try:
        run_upgrade_head(url)
        store = create_store(url)
        UserRegistry(store).ensure_deleted_user()
        if args.pwhash:
            report = migrate_pwhash(store)
            logger.info("migrated %d hashes, skipped %d", report.migrated, report.skipped)
    except CercaError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

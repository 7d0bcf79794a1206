"""Data migrations over existing forum databases.

``migrate_pwhash`` moves every stored password hash from the legacy Argon2id
serialization to the standard PHC string format::

    legacy: $argon2id19$<t>,65536,4$<salt>$<hash>
    modern: $argon2id$v=19$m=65536,t=<t>,p=4$<salt>$<hash>

Legacy salts and hashes use a custom base64 alphabet without padding; PHC
strings use the standard alphabet, also unpadded. The time cost of each row
is preserved, since the stored hash was computed with it.

The migration runs in a single transaction and is all-or-nothing: a row that
matches neither format aborts it, and an already-recorded schema version
refuses to run it again.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass

from sqlalchemy import insert, select, update

from cerca.core.errors import (
    InvariantViolationError,
    MalformedRecordError,
    MigrationAlreadyAppliedError,
    describe,
)
from cerca.db.session import Store
from cerca.models import User, meta_table

logger = logging.getLogger(__name__)

__all__ = [
    "LEGACY_PATTERN",
    "MODERN_PATTERN",
    "MigrationReport",
    "PWHASH_SCHEMA_VERSION",
    "convert_legacy_hash",
    "migrate_pwhash",
]

PWHASH_SCHEMA_VERSION = 1

# Capture groups: time cost, salt, hash.
LEGACY_PATTERN = re.compile(r"^\$argon2id19\$(\d),65536,4\$(\S+)\$(\S+)$")
MODERN_PATTERN = re.compile(r"^\$argon2id\$v=19\$m=65536,t=(\d),p=4\$(\S+)\$(\S+)$")

LEGACY_ALPHABET = "./ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
STANDARD_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_FROM_LEGACY = str.maketrans(LEGACY_ALPHABET, STANDARD_ALPHABET)
_LEGACY_CHARS = frozenset(LEGACY_ALPHABET)


@dataclass(frozen=True)
class MigrationReport:
    """Counts of rewritten and already-modern rows."""

    migrated: int
    skipped: int


def _decode_legacy(value: str) -> bytes:
    if not _LEGACY_CHARS.issuperset(value):
        raise ValueError("character outside the legacy alphabet")
    translated = value.translate(_FROM_LEGACY)
    padding = "=" * (-len(translated) % 4)
    return base64.b64decode(translated + padding, validate=True)


def _encode_phc(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").rstrip("=")


def convert_legacy_hash(encoded: str) -> str | None:
    """Return the PHC form of a legacy hash, or None if it is not legacy.

    Raises:
        MalformedRecordError: If the salt or hash cannot be decoded.
    """
    match = LEGACY_PATTERN.match(encoded)
    if match is None:
        return None
    time_cost, salt, digest = match.groups()
    try:
        salt_bytes = _decode_legacy(salt)
        hash_bytes = _decode_legacy(digest)
    except (binascii.Error, ValueError) as exc:
        raise MalformedRecordError(
            "decode salt and hash using the legacy encoding", environ="pwhash migration"
        ) from exc
    return (
        f"$argon2id$v=19$m=65536,t={int(time_cost)},p=4"
        f"${_encode_phc(salt_bytes)}${_encode_phc(hash_bytes)}"
    )


def migrate_pwhash(store: Store) -> MigrationReport:
    """Rewrite legacy password hashes and record schema version 1.

    Raises:
        MigrationAlreadyAppliedError: If ``meta`` already holds a schema version.
        MalformedRecordError: If any row matches neither hash format.
        StorageError: If the database fails; nothing is changed.
    """
    ed = describe("pwhash migration")
    with store.transaction(ed.environ) as db:
        with ed.step("read schema version"):
            version = db.scalar(select(meta_table.c.schemaversion))
        if version is not None and version > 0:
            raise MigrationAlreadyAppliedError(
                "schemaversion existed; this migration has likely been performed already",
                environ=ed.environ,
            )

        with ed.step("select password hashes"):
            records = db.execute(select(User.id, User.password_hash)).all()

        rewritten: list[tuple[int, str]] = []
        skipped = 0
        for record in records:
            new_format = convert_legacy_hash(record.password_hash)
            if new_format is not None:
                if not MODERN_PATTERN.match(new_format):
                    raise ed.error(
                        InvariantViolationError,
                        "newly formed format doesn't match the pattern for the new format",
                    )
                rewritten.append((record.id, new_format))
            elif MODERN_PATTERN.match(record.password_hash):
                skipped += 1
            else:
                raise ed.error(MalformedRecordError, f"unknown record format for userid {record.id}")

        logger.info(
            "re-encoded %d legacy records (%d already migrated); updating rows",
            len(rewritten),
            skipped,
        )
        for user_id, new_format in rewritten:
            with ed.step(f"update password hash for userid {user_id}"):
                db.execute(
                    update(User).where(User.id == user_id).values(password_hash=new_format)
                )
        with ed.step("insert schema version"):
            db.execute(insert(meta_table).values(schemaversion=PWHASH_SCHEMA_VERSION))

    logger.info("pwhash migration complete; schemaversion is now %d", PWHASH_SCHEMA_VERSION)
    return MigrationReport(migrated=len(rewritten), skipped=skipped)

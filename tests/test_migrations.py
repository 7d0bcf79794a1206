# tests/test_migrations.py
"""Tests for the legacy password hash migration."""

import base64

import pytest
from argon2 import PasswordHasher, Type
from sqlalchemy import select

from cerca.core import security
from cerca.core.errors import MalformedRecordError, MigrationAlreadyAppliedError
from cerca.models import User, meta_table
from cerca.services.migrations import (
    LEGACY_ALPHABET,
    MODERN_PATTERN,
    STANDARD_ALPHABET,
    convert_legacy_hash,
    migrate_pwhash,
)
from tests.conftest import FAKE_HASH

_TO_LEGACY = str.maketrans(STANDARD_ALPHABET, LEGACY_ALPHABET)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").rstrip("=")


def _unb64(text: str) -> bytes:
    return base64.b64decode(text + "=" * (-len(text) % 4))


def to_legacy(phc: str) -> str:
    """Re-serialize a PHC string the way the old password library stored it."""
    time_cost, salt, digest = MODERN_PATTERN.match(phc).groups()
    return f"$argon2id19${time_cost},65536,4${salt.translate(_TO_LEGACY)}${digest.translate(_TO_LEGACY)}"


def _hashes(store):
    with store.transaction("test read hashes") as db:
        return dict(db.execute(select(User.name, User.password_hash)).all())


def _schema_versions(store):
    with store.transaction("test read meta") as db:
        return db.scalars(select(meta_table.c.schemaversion)).all()


def test_convert_known_vector() -> None:
    salt = bytes(3)
    digest = b"\xff\xff\xff"
    legacy = "$argon2id19$2,65536,4$....$9999"

    converted = convert_legacy_hash(legacy)

    assert converted == f"$argon2id$v=19$m=65536,t=2,p=4${_b64(salt)}${_b64(digest)}"
    assert converted == "$argon2id$v=19$m=65536,t=2,p=4$AAAA$////"


def test_convert_returns_none_for_modern_and_unknown() -> None:
    assert convert_legacy_hash(FAKE_HASH) is None
    assert convert_legacy_hash("hunter2") is None


@pytest.mark.parametrize("legacy", [
    "$argon2id19$1,65536,4$ab+c$abcd",  # '+' is not in the legacy alphabet
    "$argon2id19$1,65536,4$abcde$abcd",  # impossible base64 length
])
def test_convert_rejects_undecodable_payload(legacy) -> None:
    with pytest.raises(MalformedRecordError):
        convert_legacy_hash(legacy)


def test_migrate_round_trip_preserves_time_cost_and_bytes(registry, store) -> None:
    salt = bytes(range(16))
    digest = bytes(range(100, 132))
    legacy_salt = _b64(salt).translate(_TO_LEGACY)
    legacy_digest = _b64(digest).translate(_TO_LEGACY)
    for t in (1, 2, 3):
        registry.create_user(f"user{t}", f"$argon2id19${t},65536,4${legacy_salt}${legacy_digest}")

    report = migrate_pwhash(store)

    assert report.migrated == 3
    assert report.skipped == 0
    for t in (1, 2, 3):
        match = MODERN_PATTERN.match(_hashes(store)[f"user{t}"])
        assert match is not None
        time_cost, new_salt, new_digest = match.groups()
        assert int(time_cost) == t
        assert _unb64(new_salt) == salt
        assert _unb64(new_digest) == digest
    assert _schema_versions(store) == [1]


def test_migrated_hashes_still_verify(registry, store) -> None:
    for t in (1, 2, 3):
        hasher = PasswordHasher(time_cost=t, memory_cost=65536, parallelism=4, type=Type.ID)
        registry.create_user(f"user{t}", to_legacy(hasher.hash(f"secret-{t}")))

    migrate_pwhash(store)

    for t in (1, 2, 3):
        assert registry.authenticate(f"user{t}", f"secret-{t}") is not None
        assert registry.authenticate(f"user{t}", "wrong") is None


def test_migrate_skips_modern_rows(registry, store) -> None:
    registry.create_user("modern", FAKE_HASH)
    registry.create_user("legacy", "$argon2id19$3,65536,4$....$9999")

    report = migrate_pwhash(store)

    assert (report.migrated, report.skipped) == (1, 1)
    hashes = _hashes(store)
    assert hashes["modern"] == FAKE_HASH
    assert hashes["legacy"] == "$argon2id$v=19$m=65536,t=3,p=4$AAAA$////"


def test_migrate_twice_is_refused_without_changes(registry, store) -> None:
    registry.create_user("legacy", "$argon2id19$1,65536,4$....$9999")
    migrate_pwhash(store)
    before = _hashes(store)

    with pytest.raises(MigrationAlreadyAppliedError) as excinfo:
        migrate_pwhash(store)

    assert excinfo.value.environ == "pwhash migration"
    assert _hashes(store) == before
    assert _schema_versions(store) == [1]


def test_malformed_row_aborts_whole_migration(registry, store) -> None:
    registry.create_user("legacy", "$argon2id19$1,65536,4$....$9999")
    registry.create_user("broken", "plaintext-password")
    before = _hashes(store)

    with pytest.raises(MalformedRecordError):
        migrate_pwhash(store)

    assert _hashes(store) == before
    assert _schema_versions(store) == []


def test_migrate_empty_database_records_version(store) -> None:
    report = migrate_pwhash(store)

    assert (report.migrated, report.skipped) == (0, 0)
    assert _schema_versions(store) == [1]


def test_application_hashes_are_modern() -> None:
    assert MODERN_PATTERN.match(security.get_password_hash("pw")) is not None

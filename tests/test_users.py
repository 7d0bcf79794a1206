# tests/test_users.py
"""Tests for the account registry."""

import pytest
from sqlalchemy import select

from cerca.core import security
from cerca.core.errors import NotFoundError, PreconditionFailedError
from cerca.models import Registration
from cerca.services.users import UserRegistry
from tests.conftest import FAKE_HASH, T0


def test_create_and_lookup_user(registry) -> None:
    user_id = registry.create_user("bob", FAKE_HASH)

    assert registry.check_user_exists(user_id)
    assert registry.check_username_exists("bob")
    assert registry.get_user_id("bob") == user_id
    assert registry.get_username(user_id) == "bob"
    assert registry.get_password_hash("bob") == (FAKE_HASH, user_id)


def test_user_ids_are_not_reused(registry, removal, make_user) -> None:
    first = make_user("first")
    removal.remove_user(first)

    second = make_user("second")

    assert second > first


def test_lookup_missing_user(registry) -> None:
    assert not registry.check_user_exists(99)
    assert not registry.check_username_exists("nobody")
    with pytest.raises(NotFoundError):
        registry.get_user_id("nobody")
    with pytest.raises(NotFoundError):
        registry.get_username(99)
    with pytest.raises(NotFoundError):
        registry.get_password_hash("nobody")


def test_create_user_rejects_duplicates_and_reserved_name(registry, test_settings) -> None:
    registry.create_user("bob", FAKE_HASH)
    with pytest.raises(PreconditionFailedError):
        registry.create_user("bob", FAKE_HASH)
    with pytest.raises(PreconditionFailedError):
        registry.create_user(test_settings.deleted_user_name, FAKE_HASH)


def test_ensure_deleted_user_is_idempotent(registry, store, test_settings) -> None:
    first = registry.ensure_deleted_user()

    assert registry.ensure_deleted_user() == first
    assert UserRegistry(store, settings=test_settings).ensure_deleted_user() == first
    assert registry.get_username(first) == test_settings.deleted_user_name


def test_deleted_user_id_requires_startup(store, test_settings) -> None:
    fresh = UserRegistry(store, settings=test_settings)
    with store.transaction("test") as db, pytest.raises(NotFoundError):
        fresh.deleted_user_id(db)


def test_admin_membership(registry, make_user) -> None:
    bob = make_user("bob")
    zed = make_user("zed", admin=True)
    assert not registry.is_admin(bob)

    registry.add_admin(bob)

    assert registry.is_admin(bob)
    assert [a.name for a in registry.admins()] == ["bob", "zed"]

    registry.demote_admin(zed)
    assert [a.id for a in registry.admins()] == [bob]


def test_add_admin_preconditions(registry, make_user) -> None:
    bob = make_user("bob", admin=True)

    with pytest.raises(PreconditionFailedError, match="already an admin"):
        registry.add_admin(bob)
    with pytest.raises(PreconditionFailedError, match="did not exist") as excinfo:
        registry.add_admin(404)
    assert excinfo.value.environ == "add admin"


def test_demote_admin_preconditions(registry, make_user) -> None:
    bob = make_user("bob")

    with pytest.raises(PreconditionFailedError, match="was not an admin"):
        registry.demote_admin(bob)
    with pytest.raises(PreconditionFailedError, match="did not exist"):
        registry.demote_admin(404)


def test_quorum_activates_at_quorum_size(registry, make_user) -> None:
    make_user("alice", admin=True)
    assert not registry.quorum_active()

    make_user("carol", admin=True)
    assert registry.quorum_active()


def test_users_listing_can_exclude_admins(registry, make_user) -> None:
    make_user("carol", admin=True)
    make_user("bob")
    make_user("alice")

    assert [u.name for u in registry.users()] == ["alice", "bob", "carol"]
    assert [u.name for u in registry.users(include_admins=False)] == ["alice", "bob"]


def test_update_username(registry, test_settings, make_user) -> None:
    bob = make_user("bob")

    registry.update_username(bob, "robert")

    assert registry.get_username(bob) == "robert"
    with pytest.raises(PreconditionFailedError):
        registry.update_username(bob, test_settings.deleted_user_name)
    with pytest.raises(NotFoundError):
        registry.update_username(404, "ghost")


def test_reset_password_and_authenticate(registry) -> None:
    bob = registry.create_user("bob", security.get_password_hash("old password"))
    assert registry.authenticate("bob", "old password") == bob

    new_password = registry.reset_password(bob)

    assert registry.authenticate("bob", new_password) == bob
    assert registry.authenticate("bob", "old password") is None
    assert registry.authenticate("nobody", new_password) is None


def test_reset_password_for_missing_user(registry) -> None:
    with pytest.raises(PreconditionFailedError):
        registry.reset_password(404)
    with pytest.raises(NotFoundError):
        registry.update_password_hash(404, FAKE_HASH)


def test_add_registration_records_host(registry, store, make_user) -> None:
    bob = make_user("bob")

    registry.add_registration(bob, "https://forum.example.org/verify?code=abc")

    with store.transaction("test read registrations") as db:
        [row] = db.scalars(select(Registration)).all()
    assert row.user_id == bob
    assert row.host == "forum.example.org"
    assert row.link == "https://forum.example.org/verify?code=abc"
    assert row.time.replace(tzinfo=None) == T0.replace(tzinfo=None)


def test_deleted_user_cannot_be_renamed(registry, store, test_settings, deleted_id) -> None:
    with pytest.raises(PreconditionFailedError, match="deleted user cannot be modified"):
        registry.update_username(deleted_id, "mallory")

    assert registry.get_username(deleted_id) == test_settings.deleted_user_name
    assert UserRegistry(store, settings=test_settings).ensure_deleted_user() == deleted_id


def test_deleted_user_credentials_are_fixed(registry, test_settings, deleted_id) -> None:
    before, _ = registry.get_password_hash(test_settings.deleted_user_name)

    with pytest.raises(PreconditionFailedError):
        registry.update_password_hash(deleted_id, FAKE_HASH)
    with pytest.raises(PreconditionFailedError):
        registry.reset_password(deleted_id)

    assert registry.get_password_hash(test_settings.deleted_user_name) == (before, deleted_id)


def test_deleted_user_cannot_become_admin(registry, deleted_id) -> None:
    with pytest.raises(PreconditionFailedError) as excinfo:
        registry.add_admin(deleted_id)

    assert excinfo.value.environ == "add admin"
    assert not registry.is_admin(deleted_id)

# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from cerca.core.settings import Settings
from cerca.db.session import Store, build_engine
from cerca.models import Post, Thread, Topic
from cerca.services.audit import ModerationLog
from cerca.services.moderation import ModerationService
from cerca.services.removal import RemovalService
from cerca.services.users import UserRegistry

TEST_DB_URL = "sqlite://"
T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

# Shaped like a stored Argon2id PHC string; never verified in tests.
FAKE_HASH = "$argon2id$v=19$m=65536,t=3,p=4$c29tZXNhbHRzb21lc2FsdA$c29tZWhhc2hzb21laGFzaHNvbWVoYXNoc29tZWhhcw"


class FakeClock:
    """Controllable wall clock handed to services instead of utcnow."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set(self, when: datetime) -> None:
        self.now = when

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def store() -> Iterator[Store]:
    engine = build_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = Store(engine)
    store.create_tables()
    try:
        yield store
    finally:
        store.drop_tables()
        engine.dispose()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with the defaults the forum ships with."""
    return Settings(
        deleted_user_name="deleted user",
        quorum_size=2,
        proposal_self_confirmation_wait_seconds=7 * 24 * 60 * 60,
        proposal_unique_per_recipient=False,
    )


@pytest.fixture()
def registry(store: Store, test_settings: Settings, clock: FakeClock) -> UserRegistry:
    return UserRegistry(store, settings=test_settings, clock=clock)


@pytest.fixture()
def deleted_id(registry: UserRegistry) -> int:
    """Create the reserved deleted user, as startup does."""
    return registry.ensure_deleted_user()


@pytest.fixture()
def modlog(store: Store, clock: FakeClock) -> ModerationLog:
    return ModerationLog(store, clock=clock)


@pytest.fixture()
def removal(store: Store, registry: UserRegistry, clock: FakeClock, deleted_id: int) -> RemovalService:
    return RemovalService(store, registry, clock=clock)


@pytest.fixture()
def moderation(
    store: Store,
    registry: UserRegistry,
    removal: RemovalService,
    test_settings: Settings,
    clock: FakeClock,
) -> ModerationService:
    return ModerationService(
        store,
        registry=registry,
        removal=removal,
        settings=test_settings,
        clock=clock,
    )


@pytest.fixture()
def make_user(registry: UserRegistry) -> Callable[..., int]:
    """Return a factory creating users with a placeholder password hash."""

    def _make_user(name: str, *, admin: bool = False) -> int:
        user_id = registry.create_user(name, FAKE_HASH)
        if admin:
            registry.add_admin(user_id)
        return user_id

    return _make_user


@pytest.fixture()
def make_thread(store: Store, clock: FakeClock) -> Callable[..., tuple[int, list[int]]]:
    """Return a factory creating a thread and its replies, returning their ids."""

    def _make_thread(author_id: int, title: str, replies: list[tuple[int, str]]) -> tuple[int, list[int]]:
        with store.transaction("seed thread") as db:
            topic = db.scalar(select(Topic).where(Topic.name == "general"))
            if topic is None:
                topic = Topic(name="general", description="General discussion")
                db.add(topic)
                db.flush()
            thread = Thread(title=title, publish_time=clock(), topic_id=topic.id, author_id=author_id)
            db.add(thread)
            db.flush()
            post_ids = []
            for reply_author, content in replies:
                post = Post(
                    content=content,
                    publish_time=clock(),
                    author_id=reply_author,
                    thread_id=thread.id,
                )
                db.add(post)
                db.flush()
                post_ids.append(post.id)
            return thread.id, post_ids

    return _make_thread

"""Account registry: existence checks, admin membership, and the deleted user."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from cerca.core import security
from cerca.core.errors import NotFoundError, PreconditionFailedError, describe
from cerca.core.settings import Settings
from cerca.core.settings import settings as default_settings
from cerca.db.session import Store
from cerca.db.time import Clock, as_utc, utcnow
from cerca.models import Admin, Registration, User
from cerca.schemas.user import UserSummary

logger = logging.getLogger(__name__)

__all__ = [
    "UserRegistry",
    "add_admin_in",
    "demote_admin_in",
    "is_admin_in",
    "user_exists_in",
]


def user_exists_in(db: Session, user_id: int) -> bool:
    """Return True when a user row with ``user_id`` exists."""
    return Store.exists(db, select(User.id).where(User.id == user_id))


def is_admin_in(db: Session, user_id: int) -> bool:
    """Return True when ``user_id`` is in the admin set."""
    return Store.exists(db, select(Admin.id).where(Admin.id == user_id))


def add_admin_in(db: Session, user_id: int) -> None:
    """Insert ``user_id`` into the admin set within an open transaction."""
    ed = describe("add admin")
    if not user_exists_in(db, user_id):
        raise ed.error(PreconditionFailedError, f"userid {user_id} did not exist")
    if is_admin_in(db, user_id):
        raise ed.error(PreconditionFailedError, f"userid {user_id} was already an admin")
    with ed.step("inserting new admin"):
        db.add(Admin(id=user_id))
        db.flush()


def demote_admin_in(db: Session, user_id: int) -> None:
    """Remove ``user_id`` from the admin set within an open transaction."""
    ed = describe("demote admin")
    if not user_exists_in(db, user_id):
        raise ed.error(PreconditionFailedError, f"userid {user_id} did not exist")
    if not is_admin_in(db, user_id):
        raise ed.error(PreconditionFailedError, f"userid {user_id} was not an admin")
    with ed.step("removing admin"):
        db.execute(delete(Admin).where(Admin.id == user_id))


class UserRegistry:
    """Typed operations over users and the admin set.

    The admin set is read from the database on every call; only the id of
    the deleted user is cached, since it never changes once created.
    """

    def __init__(
        self,
        store: Store,
        *,
        settings: Settings | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.settings = settings or default_settings
        self.clock = clock
        self._deleted_user_id: int | None = None

    # -- existence -----------------------------------------------------------

    def check_user_exists(self, user_id: int) -> bool:
        with self.store.transaction("check user exists") as db:
            return user_exists_in(db, user_id)

    def check_username_exists(self, name: str) -> bool:
        with self.store.transaction("check username exists") as db:
            return Store.exists(db, select(User.id).where(User.name == name))

    def get_user_id(self, name: str) -> int:
        """Return the id for ``name`` or raise ``NotFoundError``."""
        with self.store.transaction("get user id") as db:
            user_id = db.scalar(select(User.id).where(User.name == name))
        if user_id is None:
            raise NotFoundError("no user with that name", environ="get user id")
        return user_id

    def get_username(self, user_id: int) -> str:
        with self.store.transaction("get username") as db:
            name = db.scalar(select(User.name).where(User.id == user_id))
        if name is None:
            raise NotFoundError(f"userid {user_id} did not exist", environ="get username")
        return name

    def get_password_hash(self, name: str) -> tuple[str, int]:
        """Return ``(password_hash, user_id)`` for ``name``."""
        with self.store.transaction("get password hash") as db:
            row = db.execute(
                select(User.password_hash, User.id).where(User.name == name)
            ).first()
        if row is None:
            raise NotFoundError("no user with that name", environ="get password hash")
        return row.password_hash, row.id

    def users(self, include_admins: bool = True) -> list[UserSummary]:
        """Return all users ordered by name, optionally excluding admins."""
        stmt = select(User.id, User.name).order_by(User.name)
        if not include_admins:
            stmt = stmt.where(User.id.not_in(select(Admin.id)))
        with self.store.transaction("get users") as db:
            rows = db.execute(stmt).all()
        return [UserSummary(id=row.id, name=row.name) for row in rows]

    # -- admin membership ----------------------------------------------------

    def is_admin(self, user_id: int) -> bool:
        with self.store.transaction("is user admin") as db:
            return is_admin_in(db, user_id)

    def admins(self) -> list[UserSummary]:
        """Return the admin set ordered by name."""
        stmt = (
            select(User.id, User.name)
            .join(Admin, Admin.id == User.id)
            .order_by(User.name)
        )
        with self.store.transaction("get admins") as db:
            rows = db.execute(stmt).all()
        return [UserSummary(id=row.id, name=row.name) for row in rows]

    def add_admin(self, user_id: int) -> None:
        with self.store.transaction("add admin") as db:
            self.protect_deleted_user_in(db, user_id, "add admin")
            add_admin_in(db, user_id)
        logger.info("userid %d added to admins", user_id)

    def demote_admin(self, user_id: int) -> None:
        with self.store.transaction("demote admin") as db:
            demote_admin_in(db, user_id)
        logger.info("userid %d demoted from admins", user_id)

    def quorum_active(self) -> bool:
        """Return True once enough admins exist to require proposals."""
        with self.store.transaction("quorum activated") as db:
            return self.quorum_active_in(db)

    def quorum_active_in(self, db: Session) -> bool:
        count = db.scalar(select(func.count()).select_from(Admin)) or 0
        return count >= self.settings.quorum_size

    # -- account lifecycle ---------------------------------------------------

    def create_user(self, name: str, password_hash: str) -> int:
        """Insert a new user and return its id.

        The deleted user's name is reserved and cannot be registered.
        """
        ed = describe("create user")
        if name == self.settings.deleted_user_name:
            raise ed.error(PreconditionFailedError, "username is reserved")
        with self.store.transaction(ed.environ) as db:
            return self._create_user_in(db, name, password_hash)

    def _create_user_in(self, db: Session, name: str, password_hash: str) -> int:
        ed = describe("create user")
        if Store.exists(db, select(User.id).where(User.name == name)):
            raise ed.error(PreconditionFailedError, "username is already registered")
        user = User(name=name, password_hash=password_hash)
        with ed.step("insert user"):
            db.add(user)
            db.flush()
        return user.id

    def ensure_deleted_user(self) -> int:
        """Create the deleted user if missing and return (and cache) its id."""
        name = self.settings.deleted_user_name
        with self.store.transaction("create default users") as db:
            user_id = db.scalar(select(User.id).where(User.name == name))
            if user_id is None:
                # Unusable credentials: nobody ever learns this password.
                password_hash = security.get_password_hash(security.generate_password())
                user_id = self._create_user_in(db, name, password_hash)
                logger.info("created reserved user %r with id %d", name, user_id)
        self._deleted_user_id = user_id
        return user_id

    def deleted_user_id(self, db: Session) -> int:
        """Resolve the deleted user's id inside ``db``, caching it once found."""
        if self._deleted_user_id is None:
            user_id = db.scalar(select(User.id).where(User.name == self.settings.deleted_user_name))
            if user_id is None:
                raise NotFoundError("deleted user is missing", environ="get deleted user id")
            self._deleted_user_id = user_id
        return self._deleted_user_id

    def protect_deleted_user_in(self, db: Session, user_id: int, environ: str) -> None:
        """Refuse to modify the deleted user; its row must stay as created."""
        try:
            deleted_id = self.deleted_user_id(db)
        except NotFoundError:
            return
        if user_id == deleted_id:
            raise PreconditionFailedError("the deleted user cannot be modified", environ=environ)

    def update_username(self, user_id: int, new_name: str) -> None:
        ed = describe("update username")
        if new_name == self.settings.deleted_user_name:
            raise ed.error(PreconditionFailedError, "username is reserved")
        with self.store.transaction(ed.environ) as db:
            self.protect_deleted_user_in(db, user_id, ed.environ)
            with ed.step(f"changing user {user_id}'s name"):
                result = db.execute(update(User).where(User.id == user_id).values(name=new_name))
            if result.rowcount == 0:
                raise ed.error(NotFoundError, f"userid {user_id} did not exist")

    def update_password_hash(self, user_id: int, new_hash: str) -> None:
        with self.store.transaction("update password hash") as db:
            self.update_password_hash_in(db, user_id, new_hash)

    def update_password_hash_in(self, db: Session, user_id: int, new_hash: str) -> None:
        """Replace ``user_id``'s password hash within an open transaction."""
        ed = describe("update password hash")
        self.protect_deleted_user_in(db, user_id, ed.environ)
        with ed.step(f"changing user {user_id}'s password hash"):
            result = db.execute(
                update(User).where(User.id == user_id).values(password_hash=new_hash)
            )
        if result.rowcount == 0:
            raise ed.error(NotFoundError, f"userid {user_id} did not exist")

    def reset_password(self, user_id: int) -> str:
        """Give ``user_id`` a freshly generated password and return it."""
        ed = describe("reset password")
        with self.store.transaction(ed.environ) as db:
            return self.reset_password_in(db, user_id)

    def reset_password_in(self, db: Session, user_id: int) -> str:
        ed = describe("reset password")
        if not user_exists_in(db, user_id):
            raise ed.error(PreconditionFailedError, f"userid {user_id} did not exist")
        new_password = security.generate_password()
        self.update_password_hash_in(db, user_id, security.get_password_hash(new_password))
        return new_password

    def authenticate(self, name: str, password: str) -> int | None:
        """Return the user's id when ``password`` matches, else None."""
        try:
            password_hash, user_id = self.get_password_hash(name)
        except NotFoundError:
            return None
        if not security.verify_password(password, password_hash):
            return None
        return user_id

    def add_registration(self, user_id: int, verification_link: str) -> None:
        """Record the host and link a user registered from."""
        ed = describe("add registration")
        try:
            host = urlsplit(verification_link).netloc
        except ValueError as exc:
            raise ed.error(PreconditionFailedError, "parse url") from exc
        with self.store.transaction(ed.environ) as db:
            with ed.step("add registration"):
                db.add(
                    Registration(
                        user_id=user_id,
                        host=host,
                        link=verification_link,
                        time=as_utc(self.clock()),
                    )
                )
                db.flush()

"""Password hashing built on Argon2id."""

from __future__ import annotations

import secrets

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

# Parameters mirror the PHC strings stored in users.passwordhash:
# $argon2id$v=19$m=65536,t=3,p=4$<salt>$<hash>
password_hasher = PasswordHasher(
    time_cost=3,
    memory_cost=64 * 1024,
    parallelism=4,
    hash_len=32,
    salt_len=16,
    type=Type.ID,
)

GENERATED_PASSWORD_BYTES = 18


def get_password_hash(password: str) -> str:
    """Return the Argon2id PHC string for ``password``."""
    return password_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True when ``plain_password`` matches ``hashed_password``."""
    try:
        return password_hasher.verify(hashed_password, plain_password)
    except (VerificationError, InvalidHashError):
        return False


def generate_password() -> str:
    """Return a random URL-safe password suitable for handing to a user."""
    return secrets.token_urlsafe(GENERATED_PASSWORD_BYTES)

"""User-related Pydantic schemas."""

from pydantic import BaseModel


class UserSummary(BaseModel):
    """Name and id of an account, as listed in the admin view."""

    id: int
    name: str

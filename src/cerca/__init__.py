"""Moderation and account-lifecycle core for the Cerca forum."""

__version__ = "0.1.0"

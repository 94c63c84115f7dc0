"""User management module."""

from voicescribe.core.users.models import User

__all__ = ["User"]

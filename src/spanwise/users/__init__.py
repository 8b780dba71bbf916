"""User lookup: model, repository and observed service."""

from spanwise.users.models import User
from spanwise.users.repository import InMemoryUserRepository, UserRepository
from spanwise.users.service import UserService

__all__ = ["InMemoryUserRepository", "User", "UserRepository", "UserService"]

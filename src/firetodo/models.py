from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict

# Collection names in the document store
USERS = "users"
ACCOUNTS = "accounts"
TODOS = "todos"


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A Todo document as stored in the `todos` collection.

    Fields:
    - id: Store-assigned document id
    - name: Short text of the todo
    - completed: Boolean completion flag
    - createAt: Creation timestamp; lists are ordered by it, newest first
    - uid: Id of the owning user; every query is scoped by it
    """

    id: str
    name: str
    completed: bool
    createAt: datetime
    uid: str


class _UserRequired(TypedDict):
    id: str
    name: str
    email: str


# PUBLIC_INTERFACE
class UserEntity(_UserRequired, total=False):
    """A user document in the `users` collection."""

    image: Optional[str]
    emailVerified: Optional[str]
    role: Optional[str]
    accessToken: Optional[str]
    refreshToken: Optional[str]


class _AccountRequired(TypedDict):
    id: str
    provider: str
    providerAccountId: str
    userId: str


# PUBLIC_INTERFACE
class AccountEntity(_AccountRequired, total=False):
    """
    An external identity linked to a user, in the `accounts` collection.

    Unique by (provider, providerAccountId); token fields are whatever the
    OAuth provider returned.
    """

    type: str
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[int]
    token_type: Optional[str]
    scope: Optional[str]
    id_token: Optional[str]

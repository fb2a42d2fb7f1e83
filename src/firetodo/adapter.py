from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import AccountEntity, UserEntity
from .repositories import AccountRepository, UserRepository
from .store import DocumentStore

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class Adapter(ABC):
    """
    Persistence capabilities the session layer needs for users and linked
    accounts.

    Sessions are stateless signed tokens, so the session and
    verification-token operations are no-ops that always report "not found".
    """

    @abstractmethod
    def create_user(self, user: Dict[str, Any]) -> UserEntity:
        """Persist a new user and return it with its id."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserEntity]:
        """Return a user by id, or None."""

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        """Return the user with this email, or None."""

    @abstractmethod
    def get_user_by_account(self, provider: str, provider_account_id: str) -> Optional[UserEntity]:
        """Return the user owning the linked account, or None."""

    @abstractmethod
    def update_user(self, user: Dict[str, Any]) -> Optional[UserEntity]:
        """Merge a partial user (must carry `id`) and return the result."""

    @abstractmethod
    def delete_user(self, user_id: str) -> None:
        """Delete a user and every account linked to it."""

    @abstractmethod
    def link_account(self, account: Dict[str, Any]) -> AccountEntity:
        """Persist a linked account."""

    @abstractmethod
    def unlink_account(self, provider: str, provider_account_id: str) -> None:
        """Remove a linked account if present."""

    def create_session(self, session: Dict[str, Any]) -> Dict[str, Any]:
        return {"id": "1", **session}

    def get_session_and_user(self, session_token: str) -> None:
        return None

    def update_session(self, session: Dict[str, Any]) -> None:
        return None

    def delete_session(self, session_token: str) -> None:
        return None

    def create_verification_token(self, verification_token: Dict[str, Any]) -> None:
        return None

    def use_verification_token(self, identifier: str, token: str) -> None:
        return None


class FirestoreAdapter(Adapter):
    """Adapter over the document store's `users` and `accounts` collections."""

    def __init__(self, store: DocumentStore) -> None:
        self.users = UserRepository(store)
        self.accounts = AccountRepository(store)

    def create_user(self, user: Dict[str, Any]) -> UserEntity:
        created = self.users.add(user)
        logger.info("Created user %s", created["id"])
        return created

    def get_user(self, user_id: str) -> Optional[UserEntity]:
        if not user_id:
            return None
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        if not email:
            return None
        return self.users.get_by_email(email)

    def get_user_by_account(self, provider: str, provider_account_id: str) -> Optional[UserEntity]:
        account = self.accounts.get(provider, provider_account_id)
        if account is None:
            return None
        return self.users.get(account["userId"])

    def update_user(self, user: Dict[str, Any]) -> Optional[UserEntity]:
        return self.users.update(user)

    def delete_user(self, user_id: str) -> None:
        self.users.delete(user_id)
        removed = self.accounts.delete_by_user_id(user_id)
        logger.info("Deleted user %s and %d linked account(s)", user_id, removed)

    def link_account(self, account: Dict[str, Any]) -> AccountEntity:
        return self.accounts.add(account)

    def unlink_account(self, provider: str, provider_account_id: str) -> None:
        self.accounts.delete(provider, provider_account_id)

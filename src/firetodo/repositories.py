from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import InvalidDocumentId
from .models import ACCOUNTS, TODOS, USERS, AccountEntity, TodoEntity, UserEntity
from .schemas import TodoCreate, TodoUpdate
from .store import DocumentStore, SnapshotCallback, Subscription

logger = logging.getLogger(__name__)

# Newest first, always
TODO_ORDER = ("createAt", True)


# PUBLIC_INTERFACE
def validate_document_id(doc_id: Optional[str]) -> str:
    """
    Return doc_id if it is a usable document id, else raise InvalidDocumentId.

    Rejects missing/empty ids, ids containing '/', '.' and '..', reserved
    '__name__' style ids and ids over 1500 bytes.
    """
    if not isinstance(doc_id, str) or doc_id.strip() == "":
        raise InvalidDocumentId("document id is required")
    if "/" in doc_id or doc_id in {".", ".."}:
        raise InvalidDocumentId("document id is malformed")
    if len(doc_id) > 4 and doc_id.startswith("__") and doc_id.endswith("__"):
        raise InvalidDocumentId("document id is reserved")
    if len(doc_id.encode("utf-8")) > 1500:
        raise InvalidDocumentId("document id is too long")
    return doc_id


class UserRepository:
    """Users collection access."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def add(self, user: Dict[str, Any]) -> UserEntity:
        data = {k: v for k, v in user.items() if k != "id"}
        user_id = self._store.add(USERS, data)
        return {**data, "id": user_id}  # type: ignore[return-value]

    def get(self, user_id: str) -> Optional[UserEntity]:
        return self._store.get(USERS, user_id)  # type: ignore[return-value]

    def get_by_email(self, email: str) -> Optional[UserEntity]:
        found = self._store.query(USERS, [("email", email)], limit=1)
        return found[0] if found else None  # type: ignore[return-value]

    def update(self, user: Dict[str, Any]) -> Optional[UserEntity]:
        user_id = user.get("id")
        if not user_id:
            raise InvalidDocumentId("user id is required")
        data = {k: v for k, v in user.items() if k != "id"}
        return self._store.update(USERS, user_id, data)  # type: ignore[return-value]

    def delete(self, user_id: str) -> bool:
        return self._store.delete(USERS, user_id)


class AccountRepository:
    """Linked external accounts collection access."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def add(self, account: Dict[str, Any]) -> AccountEntity:
        data = {k: v for k, v in account.items() if k != "id"}
        account_id = self._store.add(ACCOUNTS, data)
        return {**data, "id": account_id}  # type: ignore[return-value]

    def get(self, provider: str, provider_account_id: str) -> Optional[AccountEntity]:
        found = self._store.query(
            ACCOUNTS,
            [("provider", provider), ("providerAccountId", provider_account_id)],
            limit=1,
        )
        return found[0] if found else None  # type: ignore[return-value]

    def list_by_user_id(self, user_id: str) -> List[AccountEntity]:
        return self._store.query(ACCOUNTS, [("userId", user_id)])  # type: ignore[return-value]

    def delete(self, provider: str, provider_account_id: str) -> bool:
        account = self.get(provider, provider_account_id)
        if account is None:
            return False
        return self._store.delete(ACCOUNTS, account["id"])

    def delete_by_user_id(self, user_id: str) -> int:
        return self._store.delete_where(ACCOUNTS, [("userId", user_id)])


class TodoRepository:
    """
    Todos collection access, always scoped to one owner.

    Every read filters on `uid`; documents owned by someone else behave as
    if they did not exist.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def list(self, uid: str) -> List[TodoEntity]:
        return self._store.query(TODOS, [("uid", uid)], order_by=TODO_ORDER)  # type: ignore[return-value]

    def create(self, uid: str, data: TodoCreate) -> TodoEntity:
        doc = {
            "name": data.name,
            "completed": data.completed,
            "createAt": self._now(),
            "uid": uid,
        }
        todo_id = self._store.add(TODOS, doc)
        logger.debug("Created todo %s for user %s", todo_id, uid)
        return {**doc, "id": todo_id}  # type: ignore[return-value]

    def get(self, uid: str, todo_id: str) -> Optional[TodoEntity]:
        doc = self._store.get(TODOS, validate_document_id(todo_id))
        if doc is None or doc.get("uid") != uid:
            return None
        return doc  # type: ignore[return-value]

    def update(self, uid: str, todo_id: str, data: TodoUpdate) -> Optional[TodoEntity]:
        if self.get(uid, todo_id) is None:
            return None
        changes: Dict[str, Any] = {}
        if data.name is not None:
            changes["name"] = data.name
        if data.completed is not None:
            changes["completed"] = data.completed
        return self._store.update(TODOS, todo_id, changes)  # type: ignore[return-value]

    def delete(self, uid: str, todo_id: str) -> bool:
        if self.get(uid, todo_id) is None:
            return False
        return self._store.delete(TODOS, todo_id)

    def subscribe(self, uid: str, callback: SnapshotCallback) -> Subscription:
        return self._store.subscribe(TODOS, [("uid", uid)], TODO_ORDER, callback)

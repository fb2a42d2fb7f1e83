from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from ..models import TodoEntity
from ..repositories import TodoRepository
from ..schemas import TodoCreate, TodoUpdate
from ..store import DocumentStore, Snapshot, Subscription
from .registry import ListenerRegistry

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[List[TodoEntity]], None]


# PUBLIC_INTERFACE
class TodoSync:
    """
    Live mirror of one user's todo list.

    `activate()` subscribes to the user's todos, newest first. Each delivery
    replaces `todos` wholesale. Mutations write straight to the store and
    leave local state alone; the change comes back through the
    subscription.
    """

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        registry: ListenerRegistry,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self._repo = TodoRepository(store)
        self.uid = uid
        self._registry = registry
        self._on_change = on_change
        self._subscription: Optional[Subscription] = None
        self.todos: List[TodoEntity] = []
        self.loading = False

    @property
    def active(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def _apply(self, snapshot: Snapshot) -> None:
        self.todos = list(snapshot)  # type: ignore[arg-type]
        self.loading = False
        if self._on_change is not None:
            self._on_change(self.todos)

    def activate(self) -> Subscription:
        """Open the subscription (once) and register it for sign-out teardown."""
        if self._subscription is not None and not self._subscription.closed:
            return self._subscription
        self.loading = True
        self._subscription = self._repo.subscribe(self.uid, self._apply)
        self._registry.register(self._subscription)
        logger.debug("Subscribed to todos of user %s", self.uid)
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._registry.discard(self._subscription)

    def add(self, name: str, completed: bool = False) -> str:
        return self._repo.create(self.uid, TodoCreate(name=name, completed=completed))["id"]

    def update(self, todo_id: str, changes: Dict[str, Any]) -> bool:
        return self._repo.update(self.uid, todo_id, TodoUpdate(**changes)) is not None

    def delete(self, todo_id: str) -> bool:
        return self._repo.delete(self.uid, todo_id)

"""
Client-side realtime sync: a live todo mirror plus the session controller
that owns its subscriptions.
"""

from .controller import CustomTokenExchange, SessionController, StoreSession, SyncState  # noqa: F401
from .registry import ListenerRegistry  # noqa: F401
from .sync import TodoSync  # noqa: F401

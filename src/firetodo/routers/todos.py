from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, WebSocket, status

from ..auth import read_session_token, require_session, session_user_id
from ..client.registry import ListenerRegistry
from ..client.sync import TodoSync
from ..errors import INVALID_REQUEST_ERROR, NOT_FOUND_ERROR, ApiError, InvalidDocumentId
from ..models import TodoEntity
from ..repositories import TodoRepository, validate_document_id
from ..schemas import DeletedOut, ErrorOut, TodoCreateRequest, TodoOut, TodoUpdateRequest
from ..sessions import decode_session_token
from ..settings import Settings, get_settings
from ..store import DocumentStore, get_document_store

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/query/todo",
    tags=["todos"],
)

# Close code sent to websocket clients without a valid session
WS_FORBIDDEN = 4403

_ERROR_RESPONSES = {
    400: {"model": ErrorOut, "description": "Malformed id or body"},
    403: {"model": ErrorOut, "description": "Missing or invalid session"},
}


def _get_repo(store: DocumentStore = Depends(get_document_store)) -> TodoRepository:
    """
    Dependency wrapper for the todo repository to keep signatures clean.
    """
    return TodoRepository(store)


def _out(todo: TodoEntity) -> TodoOut:
    return TodoOut(**todo)  # type: ignore[arg-type]


def _checked_id(todo_id: str) -> str:
    # Id routes use the `path` converter so slash-containing ids land here
    try:
        return validate_document_id(todo_id)
    except InvalidDocumentId:
        raise ApiError(status.HTTP_400_BAD_REQUEST, INVALID_REQUEST_ERROR)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    summary="List Todos",
    description="List the signed-in user's todos, newest first.",
    responses=_ERROR_RESPONSES,
)
def list_todos(
    session: Dict[str, Any] = Depends(require_session),
    repo: TodoRepository = Depends(_get_repo),
) -> List[TodoOut]:
    return [_out(t) for t in repo.list(session_user_id(session))]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    summary="Create Todo",
    description="Create a todo for the signed-in user. Id, owner and creation time are assigned by the server.",
    responses=_ERROR_RESPONSES,
)
def create_todo(
    payload: TodoCreateRequest,
    session: Dict[str, Any] = Depends(require_session),
    repo: TodoRepository = Depends(_get_repo),
) -> TodoOut:
    created = repo.create(session_user_id(session), payload.data)
    return _out(created)


# PUBLIC_INTERFACE
@router.api_route(
    "",
    methods=["PATCH", "DELETE", "PUT"],
    include_in_schema=False,
)
def missing_todo_id(session: Dict[str, Any] = Depends(require_session)) -> None:
    """
    Updates and deletes need an id in the path.
    """
    raise ApiError(status.HTTP_400_BAD_REQUEST, INVALID_REQUEST_ERROR)


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id:path}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get one of the signed-in user's todos by id.",
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorOut, "description": "Todo not found"}},
)
def get_todo(
    todo_id: str,
    session: Dict[str, Any] = Depends(require_session),
    repo: TodoRepository = Depends(_get_repo),
) -> TodoOut:
    item = repo.get(session_user_id(session), _checked_id(todo_id))
    if item is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, NOT_FOUND_ERROR)
    return _out(item)


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id:path}",
    response_model=TodoOut,
    summary="Update Todo",
    description="Rename and/or toggle one of the signed-in user's todos.",
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorOut, "description": "Todo not found"}},
)
def update_todo(
    todo_id: str,
    payload: TodoUpdateRequest,
    session: Dict[str, Any] = Depends(require_session),
    repo: TodoRepository = Depends(_get_repo),
) -> TodoOut:
    updated = repo.update(session_user_id(session), _checked_id(todo_id), payload.data)
    if updated is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, NOT_FOUND_ERROR)
    return _out(updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id:path}",
    response_model=DeletedOut,
    summary="Delete Todo",
    description="Delete one of the signed-in user's todos.",
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorOut, "description": "Todo not found"}},
)
def delete_todo(
    todo_id: str,
    session: Dict[str, Any] = Depends(require_session),
    repo: TodoRepository = Depends(_get_repo),
) -> DeletedOut:
    if not repo.delete(session_user_id(session), _checked_id(todo_id)):
        raise ApiError(status.HTTP_404_NOT_FOUND, NOT_FOUND_ERROR)
    return DeletedOut(deleted=True)


# PUBLIC_INTERFACE
@router.api_route(
    "/{todo_id:path}",
    methods=["POST", "PUT"],
    include_in_schema=False,
)
def unsupported_todo_method(todo_id: str, session: Dict[str, Any] = Depends(require_session)) -> None:
    raise ApiError(status.HTTP_400_BAD_REQUEST, INVALID_REQUEST_ERROR)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


# PUBLIC_INTERFACE
@router.websocket("/live")
async def live_todos(
    websocket: WebSocket,
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Stream the signed-in user's todo list.

    Sends the full list (newest first) on connect and again after every
    change. The subscription is closed when the client disconnects.
    """
    session = decode_session_token(read_session_token(websocket, settings), settings)
    if session is None:
        await websocket.close(code=WS_FORBIDDEN)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[List[TodoEntity]]" = asyncio.Queue()
    registry = ListenerRegistry()
    sync = TodoSync(
        store,
        session_user_id(session),
        registry,
        on_change=lambda todos: loop.call_soon_threadsafe(queue.put_nowait, todos),
    )
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        sync.activate()
        while True:
            next_snapshot = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({next_snapshot, disconnected}, return_when=asyncio.FIRST_COMPLETED)
            if disconnected in done:
                next_snapshot.cancel()
                break
            todos = next_snapshot.result()
            await websocket.send_json([_out(t).model_dump(mode="json") for t in todos])
    finally:
        registry.close_all()
        disconnected.cancel()
        logger.debug("Live todo stream closed for user %s", sync.uid)

# src/todo_ui_bff/todo_routes.py

import logging
import typing

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .auth_utils import get_authenticated_user
from .errors import TodoNotFound
from .todo_store import TodoPatch, TodoRepository, get_todo_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/todos", tags=["todos"])


class TodoCreateRequest(BaseModel):
    title: typing.Optional[str] = None
    description: typing.Optional[str] = None


def _parse_todo_id(raw_id: str) -> int:
    # Non-numeric ids cannot match any record
    try:
        return int(raw_id)
    except ValueError:
        raise TodoNotFound(raw_id)


@router.get("")
async def list_todos(
        user: dict = Depends(get_authenticated_user),
        store: TodoRepository = Depends(get_todo_store),
):
    return {"todos": [todo.to_json() for todo in store.list(user["id"])]}


@router.post("")
async def create_todo(
        body: TodoCreateRequest,
        user: dict = Depends(get_authenticated_user),
        store: TodoRepository = Depends(get_todo_store),
):
    todo = store.create(user["id"], body.title, body.description)
    logger.info("TODOS: Created todo %s for user %s.", todo.id, user["id"])
    return {"success": True, "todo": todo.to_json()}


@router.put("/{todo_id}")
async def update_todo(
        todo_id: str,
        patch: TodoPatch,
        user: dict = Depends(get_authenticated_user),
        store: TodoRepository = Depends(get_todo_store),
):
    todo = store.update(user["id"], _parse_todo_id(todo_id), patch)
    return {"success": True, "todo": todo.to_json()}


@router.delete("/{todo_id}")
async def delete_todo(
        todo_id: str,
        user: dict = Depends(get_authenticated_user),
        store: TodoRepository = Depends(get_todo_store),
):
    store.delete(user["id"], _parse_todo_id(todo_id))
    logger.info("TODOS: Deleted todo %s for user %s.", todo_id, user["id"])
    return {"success": True, "message": "Todo deleted successfully"}

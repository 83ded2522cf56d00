# src/todo_ui_bff/todo_store.py

import threading
import typing
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from .errors import TodoNotFound, TodoValidationError

UserId = typing.Union[int, str]


def utc_now() -> datetime:
    # Millisecond precision, matching the serialized form
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_iso8601(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class Todo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    title: str
    description: str = ""
    completed: bool = False
    user_id: UserId
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: datetime) -> str:
        return to_iso8601(value)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class TodoPatch(BaseModel):
    """Partial update. Fields left as None are not touched."""
    title: typing.Optional[str] = None
    description: typing.Optional[str] = None
    completed: typing.Optional[bool] = None


class TodoRepository(typing.Protocol):
    def list(self, user_id: UserId) -> typing.List[Todo]:  # pragma: no cover - Protocol
        ...

    def create(self, user_id: UserId, title: typing.Optional[str],
               description: typing.Optional[str] = None) -> Todo:  # pragma: no cover - Protocol
        ...

    def update(self, user_id: UserId, todo_id: int, patch: TodoPatch) -> Todo:  # pragma: no cover - Protocol
        ...

    def delete(self, user_id: UserId, todo_id: int) -> None:  # pragma: no cover - Protocol
        ...


class TodoStore:
    """
    In-memory, insertion-ordered to-do records shared by all users.
    Every operation is scoped to the caller's user id; a record owned by
    someone else is indistinguishable from a missing one.
    """

    def __init__(self, clock: typing.Callable[[], datetime] = utc_now):
        self._clock = clock
        self._todos: typing.List[Todo] = []
        self._next_id = 1
        self._lock = threading.Lock()

    def list(self, user_id: UserId) -> typing.List[Todo]:
        with self._lock:
            return [todo for todo in self._todos if _same_user(todo.user_id, user_id)]

    def create(self, user_id: UserId, title: typing.Optional[str],
               description: typing.Optional[str] = None) -> Todo:
        if not title or not title.strip():
            raise TodoValidationError("Title is required")
        now = self._clock()
        with self._lock:
            todo = Todo(
                id=self._next_id,
                title=title.strip(),
                description=description.strip() if description else "",
                completed=False,
                user_id=user_id,
                created_at=now,
                updated_at=now,
            )
            self._next_id += 1
            self._todos.append(todo)
        return todo

    def update(self, user_id: UserId, todo_id: int, patch: TodoPatch) -> Todo:
        with self._lock:
            todo = self._find_owned(user_id, todo_id)
            if patch.title is not None:
                # Only creation validates the title
                todo.title = patch.title.strip()
            if patch.description is not None:
                todo.description = patch.description.strip()
            if patch.completed is not None:
                todo.completed = patch.completed
            todo.updated_at = max(self._clock(), todo.updated_at)
            return todo

    def delete(self, user_id: UserId, todo_id: int) -> None:
        with self._lock:
            todo = self._find_owned(user_id, todo_id)
            self._todos.remove(todo)

    def clear(self) -> None:
        with self._lock:
            self._todos.clear()
            self._next_id = 1

    def _find_owned(self, user_id: UserId, todo_id: int) -> Todo:
        for todo in self._todos:
            if todo.id == todo_id and _same_user(todo.user_id, user_id):
                return todo
        raise TodoNotFound(todo_id)


def _same_user(owner: UserId, user_id: UserId) -> bool:
    # Session users carry numeric ids, introspection `sub` carries the same id as a string
    return str(owner) == str(user_id)


todo_store = TodoStore()


def get_todo_store() -> TodoRepository:
    return todo_store

"""Task-to-session bookkeeping on top of the agent runtime's session API."""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ikanban.errors import InvalidInputError
from ikanban.models.common import (
    normalize_directory,
    normalize_id,
    normalize_timestamp,
    now_ms,
)
from ikanban.models.conversation import (
    ConversationMessage,
    ConversationMessageMeta,
    ConversationSessionMeta,
    MessagePart,
    ModelRef,
    PromptSubmission,
    to_message_meta,
    touch_session,
)
from ikanban.orchestrator.services.worktree_manager import ClientProvider
from ikanban.runtime_client.responses import (
    read_data_or_throw,
    read_mapping_or_throw,
    unwrap_response_data_or_throw,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], None]


@dataclass
class ConversationEventSubscription:
    directory: str
    unsubscribe: Callable[[], Awaitable[None]]


class ConversationManager:
    """Tracks task -> session -> directory mappings.

    Old sessions are never forgotten: a new session for the same task only
    replaces the task's current session id.
    """

    def __init__(
        self,
        runtime: ClientProvider,
        *,
        clock: Callable[[], int] = now_ms,
    ):
        self._runtime = runtime
        self._clock = clock
        self._task_to_session: dict[str, str] = {}
        self._session_to_directory: dict[str, str] = {}
        self._sessions: dict[str, ConversationSessionMeta] = {}

    async def create_task_session(
        self,
        project_id: str,
        task_id: str,
        project_directory: str,
        worktree_directory: str,
        *,
        title: str | None = None,
        timestamp: float | None = None,
    ) -> ConversationSessionMeta:
        project_id = normalize_id(project_id, "Project id")
        task_id = normalize_id(task_id, "Task id")
        normalize_directory(project_directory, "Project directory")
        worktree_directory = normalize_directory(worktree_directory, "Worktree directory")
        title = (title or "").strip() or None
        fallback = normalize_timestamp(
            self._clock() if timestamp is None else timestamp,
        )

        client = await self._runtime.get_client(worktree_directory)
        payload = read_mapping_or_throw(
            await client.session.create(directory=worktree_directory, title=title),
            "Failed to create conversation session",
        )

        session_id = _normalize_session_id(
            payload.get("sessionID") or payload.get("session_id") or payload.get("id"),
        )
        created_at = _optional_timestamp(
            payload.get("createdAt", payload.get("created_at")), fallback,
        )
        updated_at = _optional_timestamp(
            payload.get("updatedAt", payload.get("updated_at")), created_at,
        )

        session = ConversationSessionMeta(
            session_id=session_id,
            project_id=project_id,
            task_id=task_id,
            directory=worktree_directory,
            title=payload.get("title") or title,
            created_at=created_at,
            updated_at=updated_at,
        )

        self._task_to_session[task_id] = session_id
        self._session_to_directory[session_id] = worktree_directory
        self._sessions[session_id] = session
        logger.info(
            "Created session %s for task %s in %s",
            session_id, task_id, worktree_directory,
        )
        return session

    async def send_initial_prompt(
        self,
        session_id: str,
        prompt: str,
        *,
        worktree_directory: str | None = None,
        model: ModelRef | None = None,
    ) -> PromptSubmission:
        return await self._send_prompt(
            session_id, prompt, worktree_directory, model,
            "Failed to send initial prompt",
        )

    async def send_follow_up_prompt(
        self,
        session_id: str,
        prompt: str,
        *,
        worktree_directory: str | None = None,
        model: ModelRef | None = None,
    ) -> PromptSubmission:
        return await self._send_prompt(
            session_id, prompt, worktree_directory, model,
            "Failed to send follow-up prompt",
        )

    async def list_conversation_messages(
        self,
        session_id: str,
        *,
        worktree_directory: str | None = None,
    ) -> list[ConversationMessageMeta]:
        session_id = _normalize_session_id(session_id)
        directory = self._resolve_directory(session_id, worktree_directory)
        client = await self._runtime.get_client(directory)
        raw_messages = read_data_or_throw(
            await client.session.messages(session_id=session_id),
            "Failed to list conversation messages",
        )
        fallback = self._clock()
        return [
            to_message_meta(_normalize_message(raw, session_id, index, fallback))
            for index, raw in enumerate(raw_messages)
        ]

    async def subscribe_to_events(
        self,
        *,
        session_id: str | None = None,
        worktree_directory: str | None = None,
        on_event: EventCallback | None = None,
    ) -> ConversationEventSubscription:
        if session_id:
            directory = self._resolve_directory(
                _normalize_session_id(session_id), worktree_directory,
            )
        else:
            directory = normalize_directory(worktree_directory, "Worktree directory")

        client = await self._runtime.get_client(directory)
        handle = unwrap_response_data_or_throw(
            await client.event.subscribe(directory=directory),
            "Failed to subscribe to conversation events",
        )
        return ConversationEventSubscription(
            directory=directory,
            unsubscribe=_to_async_unsubscribe(handle, on_event),
        )

    def get_task_session_id(self, task_id: str) -> str | None:
        return self._task_to_session.get(normalize_id(task_id, "Task id"))

    def get_session_directory(self, session_id: str) -> str | None:
        return self._session_to_directory.get(_normalize_session_id(session_id))

    def get_session(self, session_id: str) -> ConversationSessionMeta | None:
        return self._sessions.get(_normalize_session_id(session_id))

    async def _send_prompt(
        self,
        session_id: str,
        prompt: str,
        worktree_directory: str | None,
        model: ModelRef | None,
        failure_message: str,
    ) -> PromptSubmission:
        session_id = _normalize_session_id(session_id)
        prompt = (prompt or "").strip()
        if not prompt:
            raise InvalidInputError("Prompt is required.")
        directory = self._resolve_directory(session_id, worktree_directory)

        client = await self._runtime.get_client(directory)
        read_data_or_throw(
            await client.session.prompt(
                session_id=session_id,
                parts=[{"type": "text", "text": prompt}],
                model=model.model_dump() if model else None,
            ),
            failure_message,
        )

        submitted_at = self._clock()
        existing = self._sessions.get(session_id)
        if existing is not None:
            self._sessions[session_id] = touch_session(existing, submitted_at)

        return PromptSubmission(
            session_id=session_id, prompt=prompt, submitted_at=submitted_at,
        )

    def _resolve_directory(
        self, session_id: str, explicit_directory: str | None,
    ) -> str:
        if explicit_directory:
            directory = normalize_directory(explicit_directory, "Worktree directory")
            self._session_to_directory[session_id] = directory
            return directory

        mapped = self._session_to_directory.get(session_id)
        if mapped:
            return mapped

        raise InvalidInputError(
            f"Worktree directory is required for session {session_id}."
        )


def _normalize_session_id(session_id: str | None) -> str:
    if not session_id or not isinstance(session_id, str):
        raise InvalidInputError("Session id is required.")
    return normalize_id(session_id, "Session id")


def _optional_timestamp(value: Any, fallback: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return fallback
    return normalize_timestamp(value)


def _normalize_message(
    raw: Any, session_id: str, index: int, fallback_time: int,
) -> ConversationMessage:
    message = raw if isinstance(raw, Mapping) else {}

    raw_id = message.get("id")
    message_id = raw_id if isinstance(raw_id, str) and raw_id.strip() else f"{session_id}:{index}"
    role = message.get("role")

    return ConversationMessage(
        id=message_id,
        session_id=session_id,
        role=role if isinstance(role, str) else "assistant",
        created_at=_optional_timestamp(
            message.get("createdAt", message.get("created_at")), fallback_time,
        ),
        parts=_normalize_parts(message.get("parts")),
        error=message.get("error"),
    )


def _normalize_parts(value: Any) -> list[MessagePart]:
    if not isinstance(value, list):
        return []

    parts: list[MessagePart] = []
    for part in value:
        if isinstance(part, str):
            parts.append(MessagePart(text=part))
        elif isinstance(part, Mapping) and isinstance(part.get("text"), str):
            parts.append(MessagePart(text=part["text"]))
        elif isinstance(part, Mapping) and isinstance(part.get("content"), str):
            parts.append(MessagePart(text=part["content"]))
        else:
            parts.append(MessagePart())
    return parts


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


def _to_async_unsubscribe(
    handle: Any, on_event: EventCallback | None,
) -> Callable[[], Awaitable[None]]:
    """Collapse the runtime's subscription handle shapes into one contract.

    Supported handles: a bare callable, an object with ``unsubscribe()``,
    or an async iterator of events (pumped into ``on_event``).
    """
    if callable(handle) and not hasattr(handle, "__aiter__"):
        async def _call_handle() -> None:
            await _maybe_await(handle())
        return _call_handle

    unsubscribe = getattr(handle, "unsubscribe", None)
    if callable(unsubscribe):
        async def _call_unsubscribe() -> None:
            await _maybe_await(unsubscribe())
        return _call_unsubscribe

    if not hasattr(handle, "__aiter__") and callable(getattr(handle, "aclose", None)):
        async def _call_aclose() -> None:
            await handle.aclose()
        return _call_aclose

    if hasattr(handle, "__aiter__"):
        iterator = handle.__aiter__()
        pump: asyncio.Task | None = None

        if on_event is not None:
            async def _pump() -> None:
                async for event in iterator:
                    on_event(event)

            pump = asyncio.create_task(_pump())

        closed = False

        async def _close() -> None:
            nonlocal closed
            if closed:
                return
            closed = True
            if pump is not None and not pump.done():
                pump.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pump
            elif pump is not None and not pump.cancelled():
                await pump
            aclose = getattr(iterator, "aclose", None)
            if callable(aclose):
                await aclose()

        return _close

    async def _noop() -> None:
        return None

    return _noop

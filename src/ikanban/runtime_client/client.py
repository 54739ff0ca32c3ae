import json
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ikanban.runtime_client.responses import ApiResponse

logger = logging.getLogger(__name__)


class _ApiGroup:
    def __init__(self, http: httpx.AsyncClient, directory: str):
        self._http = http
        self._directory = directory

    async def _call(
        self,
        method: str,
        path: str,
        *,
        directory: str | None = None,
        json_body: Any = None,
    ) -> ApiResponse:
        params = {"directory": directory or self._directory}
        try:
            resp = await self._http.request(
                method, path, params=params, json=json_body,
            )
        except httpx.HTTPError as e:
            return ApiResponse(error=e)

        if resp.is_error:
            return ApiResponse(error=_error_detail(resp))
        if not resp.content:
            return ApiResponse()
        return ApiResponse(data=resp.json())


class WorktreeApi(_ApiGroup):
    async def create(
        self,
        *,
        directory: str | None = None,
        name: str,
        start_command: str | None = None,
    ) -> ApiResponse:
        body: dict[str, Any] = {"name": name}
        if start_command:
            body["startCommand"] = start_command
        return await self._call(
            "POST", "/experimental/worktree",
            directory=directory, json_body=body,
        )

    async def list(self, *, directory: str | None = None) -> ApiResponse:
        return await self._call(
            "GET", "/experimental/worktree", directory=directory,
        )

    async def reset(
        self, *, directory: str | None = None, worktree_directory: str,
    ) -> ApiResponse:
        return await self._call(
            "POST", "/experimental/worktree/reset",
            directory=directory,
            json_body={"directory": worktree_directory},
        )

    async def remove(
        self, *, directory: str | None = None, worktree_directory: str,
    ) -> ApiResponse:
        return await self._call(
            "DELETE", "/experimental/worktree",
            directory=directory,
            json_body={"directory": worktree_directory},
        )


class SessionApi(_ApiGroup):
    async def create(
        self, *, directory: str | None = None, title: str | None = None,
    ) -> ApiResponse:
        body = {"title": title} if title else {}
        return await self._call(
            "POST", "/session", directory=directory, json_body=body,
        )

    async def prompt(
        self,
        *,
        session_id: str,
        parts: list[dict[str, Any]],
        model: dict[str, str] | None = None,
    ) -> ApiResponse:
        body: dict[str, Any] = {"parts": parts}
        if model:
            body["model"] = {
                "providerID": model["provider_id"],
                "modelID": model["model_id"],
            }
        return await self._call(
            "POST", f"/session/{session_id}/message", json_body=body,
        )

    async def messages(self, *, session_id: str) -> ApiResponse:
        response = await self._call("GET", f"/session/{session_id}/message")
        if isinstance(response.data, list):
            response.data = [_flatten_message(m) for m in response.data]
        return response


class EventApi(_ApiGroup):
    async def subscribe(self, *, directory: str | None = None) -> ApiResponse:
        return ApiResponse(
            data=EventStream(self._http, directory or self._directory),
        )


class EventStream:
    """Server-sent event stream from the runtime's ``/event`` endpoint.

    Iterating opens the HTTP stream; cancelling the consuming task closes it.
    """

    def __init__(self, http: httpx.AsyncClient, directory: str):
        self._http = http
        self._directory = directory

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        async with self._http.stream(
            "GET", "/event",
            params={"directory": self._directory},
            timeout=None,
        ) as response:
            response.raise_for_status()
            data_lines: list[str] = []
            async for line in response.aiter_lines():
                if line.startswith("data:"):
                    data_lines.append(line[5:].lstrip())
                elif not line and data_lines:
                    yield _decode_event("\n".join(data_lines))
                    data_lines = []
            if data_lines:
                yield _decode_event("\n".join(data_lines))


class RuntimeClient:
    """Agent runtime API scoped to a single working directory."""

    def __init__(self, http: httpx.AsyncClient, directory: str):
        self.directory = directory
        self.worktree = WorktreeApi(http, directory)
        self.session = SessionApi(http, directory)
        self.event = EventApi(http, directory)


class RuntimeClientProvider:
    """Hands out directory-scoped clients sharing one HTTP connection pool."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:4096",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._clients: dict[str, RuntimeClient] = {}

    async def connect(self) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )

    async def disconnect(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None
        self._clients.clear()

    @property
    def is_connected(self) -> bool:
        return self._http is not None

    async def get_client(self, directory: str) -> RuntimeClient:
        normalized = (directory or "").strip()
        if not normalized:
            raise ValueError(
                "Directory is required to create a scoped runtime client."
            )
        normalized = os.path.abspath(normalized)

        cached = self._clients.get(normalized)
        if cached is not None:
            return cached

        await self.connect()
        client = RuntimeClient(self._http, normalized)
        self._clients[normalized] = client
        logger.debug("Created runtime client for %s", normalized)
        return client


def _error_detail(resp: httpx.Response) -> Any:
    try:
        body = resp.json()
    except ValueError:
        body = resp.text
    if body:
        return body
    return f"HTTP {resp.status_code}"


def _flatten_message(raw: Any) -> Any:
    """Lift ``info`` fields of a runtime message to the top level."""
    if not isinstance(raw, dict) or not isinstance(raw.get("info"), dict):
        return raw
    info = raw["info"]
    flattened = {**info, "parts": raw.get("parts", [])}
    created = (info.get("time") or {}).get("created")
    if created is not None and "createdAt" not in flattened:
        flattened["createdAt"] = created
    return flattened


def _decode_event(data: str) -> Any:
    try:
        return json.loads(data)
    except ValueError:
        return data

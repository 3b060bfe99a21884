"""Client side of the backend query interface.

The backend owns the on-disk logs: it parses them, paginates messages and
ranks search results. This module only speaks to it. Tool-specific records
(projects, sessions, search hits, stats) come back as plain JSON for the
adapters to decode; message pages are decoded here because their shape is
the same for every tool.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from .config import DEFAULT_PAGE_SIZE, DEFAULT_SEARCH_LIMIT
from .core import PaginatedResult, ResumeRequest, decode_page
from .errors import BackendError, DecodeError

logger = logging.getLogger(__name__)


class Backend(ABC):
    """The query operations the core consumes."""

    @abstractmethod
    async def list_projects(self, tool: str) -> list[dict]:
        ...

    @abstractmethod
    async def list_sessions(self, tool: str, project_key: str, grouped: bool = False) -> list[dict]:
        """Return flat session records, or root/subagent groups when `grouped`."""
        ...

    @abstractmethod
    async def get_messages(
        self,
        tool: str,
        session_key: str,
        project_key: Optional[str],
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> PaginatedResult:
        ...

    @abstractmethod
    async def search(self, tool: str, query: str, max_results: int = DEFAULT_SEARCH_LIMIT) -> list[dict]:
        ...

    @abstractmethod
    async def get_stats(self, tool: str) -> Any:
        ...

    @abstractmethod
    async def get_token_summary(self, tool: str) -> Any:
        ...

    @abstractmethod
    async def resume_session(self, request: ResumeRequest) -> None:
        """Ask the backend to reopen the session in a terminal. Side-effecting."""
        ...


class HttpBackend(Backend):
    """Backend reached over HTTP/JSON."""

    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "HttpBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_projects(self, tool: str) -> list[dict]:
        return _expect_list(await self._get(f"/api/{tool}/projects", "list projects"), "list projects")

    async def list_sessions(self, tool: str, project_key: str, grouped: bool = False) -> list[dict]:
        params = {"project": project_key}
        if grouped:
            params["grouped"] = "true"
        data = await self._get(f"/api/{tool}/sessions", "list sessions", params=params)
        return _expect_list(data, "list sessions")

    async def get_messages(
        self,
        tool: str,
        session_key: str,
        project_key: Optional[str],
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> PaginatedResult:
        params = {"session": session_key, "page": page, "page_size": page_size}
        if project_key is not None:
            params["project"] = project_key
        data = await self._get(f"/api/{tool}/messages", "get messages", params=params)
        return decode_page(data)

    async def search(self, tool: str, query: str, max_results: int = DEFAULT_SEARCH_LIMIT) -> list[dict]:
        params = {"q": query, "max_results": max_results}
        return _expect_list(await self._get(f"/api/{tool}/search", "search", params=params), "search")

    async def get_stats(self, tool: str) -> Any:
        return await self._get(f"/api/{tool}/stats", "get stats")

    async def get_token_summary(self, tool: str) -> Any:
        return await self._get(f"/api/{tool}/token-summary", "get token summary")

    async def resume_session(self, request: ResumeRequest) -> None:
        payload = {"sessionId": request.session_id, "workDir": request.work_dir}
        if request.file_path:
            payload["filePath"] = request.file_path
        await self._send("POST", f"/api/{request.tool}/resume", "resume session", json=payload)

    # ── Private helpers ──────────────────────────────────────────

    async def _get(self, path: str, operation: str, params: dict | None = None) -> Any:
        response = await self._send("GET", path, operation, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"{operation}: response is not JSON: {e}") from e

    async def _send(self, method: str, path: str, operation: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(operation, str(e) or type(e).__name__) from e

        if response.is_error:
            raise BackendError(operation, _error_detail(response), status_code=response.status_code)
        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response


def _expect_list(data: Any, operation: str) -> list:
    if not isinstance(data, list):
        raise DecodeError(f"{operation}: expected a list, got {type(data).__name__}")
    return data


def _error_detail(response: httpx.Response) -> str:
    """Pull FastAPI-style {"detail": ...} out of an error body when present."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text

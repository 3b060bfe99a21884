"""Process-wide view state and the intents that change it.

AppStore composes the tool adapter, the session tree builder and the
pagination controller behind one surface. Its state is an immutable
ViewState that is replaced, never mutated, and handed to subscribers after
every change. Each intent runs on its own channel token; switching tool or
re-issuing an intent bumps the token so that answers to superseded requests
are dropped instead of applied.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Optional

from .adapters import get_adapter
from .backend import Backend
from .config import get_default_tool, get_page_size, get_search_limit
from .core import PaginatedResult, Project, SearchHit
from .errors import DecodeError, ViewerError
from .navigation import PROJECT, PROJECTS, SESSION, STATS, Route
from .pagination import LoadStatus, PageState, PaginationController
from .provider import ToolAdapter
from .tree import SessionTree, build_session_tree

logger = logging.getLogger(__name__)

Listener = Callable[["ViewState"], None]

_CHANNELS = ("projects", "sessions", "search", "stats")


@dataclass(frozen=True)
class Notice:
    """A transient message for the user (toast/pill), not part of the data."""

    level: str  # "info" | "error"
    text: str


@dataclass(frozen=True)
class ViewState:
    """Everything the display layer renders from."""

    active_tool: str
    projects: tuple[Project, ...] = ()
    projects_loading: bool = False
    projects_error: Optional[str] = None
    selected_project: Optional[str] = None
    sessions: SessionTree = field(default_factory=SessionTree)
    sessions_loading: bool = False
    sessions_error: Optional[str] = None
    selected_session: Optional[str] = None
    pages: PageState = field(default_factory=PageState)
    search_query: str = ""
    search_results: tuple[SearchHit, ...] = ()
    search_loading: bool = False
    search_error: Optional[str] = None
    stats: Any = None
    token_summary: Any = None
    stats_loading: bool = False
    stats_error: Optional[str] = None
    notice: Optional[Notice] = None

    @property
    def messages(self):
        return self.pages.messages

    @property
    def messages_loading(self) -> bool:
        return self.pages.loading

    @property
    def has_more(self) -> bool:
        return self.pages.has_more


class AppStore:
    """State holder for one viewer process."""

    def __init__(
        self,
        backend: Backend,
        tool: str | None = None,
        page_size: int | None = None,
        search_limit: int | None = None,
    ):
        self._backend = backend
        self._adapter = get_adapter(tool or get_default_tool())
        self._search_limit = search_limit or get_search_limit()
        self._listeners: list[Listener] = []
        self._token_source = itertools.count(1)
        self._tokens = {channel: 0 for channel in _CHANNELS}
        self._pager = PaginationController(
            self._fetch_page,
            page_size=page_size or get_page_size(),
            on_change=self._on_pages,
        )
        self._state = ViewState(active_tool=self._adapter.name, pages=self._pager.state)

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def adapter(self) -> ToolAdapter:
        return self._adapter

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for state changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Intents ──────────────────────────────────────────────────

    def set_active_tool(self, tool: str) -> None:
        """Switch tool and discard every piece of tool-scoped state at once.

        Raises ResolutionError for an unknown tool, leaving state untouched.
        """
        adapter = get_adapter(tool)
        self._adapter = adapter
        for channel in _CHANNELS:
            self._begin(channel)
        # the pager reset publishes, so the cleared snapshot goes out in one piece
        self._state = ViewState(active_tool=adapter.name, pages=self._state.pages)
        self._pager.reset()
        logger.info("Active tool is now %s", adapter.name)

    async def load_projects(self) -> None:
        token = self._begin("projects")
        adapter = self._adapter
        self._replace(projects_loading=True, projects_error=None)
        try:
            records = await self._backend.list_projects(adapter.name)
            projects = tuple(_decode_each(records, adapter.decode_project, "project"))
        except ViewerError as e:
            if self._current("projects", token):
                logger.error("Failed to load projects: %s", e)
                self._replace(projects_loading=False, projects_error=str(e))
            return

        if self._current("projects", token):
            self._replace(projects=projects, projects_loading=False)

    async def select_project(self, project_key: str) -> None:
        """Show a project's sessions; drops any selected session."""
        token = self._begin("sessions")
        adapter = self._adapter
        self._replace(
            selected_project=project_key,
            selected_session=None,
            sessions=SessionTree(grouped=adapter.groups_sessions),
            sessions_loading=True,
            sessions_error=None,
        )
        self._pager.reset()
        try:
            records = await self._backend.list_sessions(
                adapter.name, adapter.backend_project_key(project_key), grouped=adapter.groups_sessions,
            )
            tree = build_session_tree(records, adapter)
        except ViewerError as e:
            if self._current("sessions", token):
                logger.error("Failed to load sessions for %s: %s", project_key, e)
                self._replace(sessions_loading=False, sessions_error=str(e))
            return

        if self._current("sessions", token):
            self._replace(sessions=tree, sessions_loading=False)

    async def select_session(self, session_key: str, project_key: str | None = None) -> None:
        """Start loading a session's messages from the first page."""
        changes = {"selected_session": session_key}
        if project_key is not None:
            changes["selected_project"] = project_key
        self._replace(**changes)
        await self._pager.select_session(session_key, project_key or self._state.selected_project)

    async def load_more(self) -> bool:
        return await self._pager.load_more()

    async def load_all(self) -> bool:
        return await self._pager.load_all()

    async def search(self, query: str) -> None:
        """Search the active tool. A blank query clears results without a backend call."""
        token = self._begin("search")
        adapter = self._adapter
        if not query.strip():
            self._replace(search_query=query, search_results=(), search_loading=False, search_error=None)
            return

        self._replace(search_query=query, search_loading=True, search_error=None)
        try:
            records = await self._backend.search(adapter.name, query, self._search_limit)
            hits = tuple(_decode_each(records, adapter.decode_search_hit, "search hit"))
        except ViewerError as e:
            if self._current("search", token):
                logger.error("Failed to search for %r: %s", query, e)
                self._replace(search_loading=False, search_error=str(e))
            return

        if self._current("search", token):
            self._replace(search_results=hits, search_loading=False)

    async def load_stats(self) -> None:
        """Fetch usage stats and the token summary together, publish once both settle."""
        token = self._begin("stats")
        tool = self._adapter.name
        self._replace(stats_loading=True, stats_error=None)
        outcomes = await asyncio.gather(
            self._backend.get_stats(tool),
            self._backend.get_token_summary(tool),
            return_exceptions=True,
        )
        if not self._current("stats", token):
            logger.debug("Dropping stats for superseded request")
            return

        changes: dict[str, Any] = {"stats_loading": False}
        errors = []
        unexpected = None
        for name, outcome in zip(("stats", "token_summary"), outcomes):
            if isinstance(outcome, ViewerError):
                logger.error("Failed to load %s: %s", name, outcome)
                errors.append(f"{name}: {outcome}")
            elif isinstance(outcome, BaseException):
                logger.error("Unexpected failure loading %s: %r", name, outcome)
                errors.append(f"{name}: {type(outcome).__name__}: {outcome}")
                unexpected = unexpected or outcome
            else:
                changes[name] = outcome
        changes["stats_error"] = "; ".join(errors) or None
        self._replace(**changes)
        if unexpected is not None:
            raise unexpected

    def clear_selection(self) -> None:
        self._begin("sessions")
        self._replace(selected_project=None, selected_session=None, sessions=SessionTree(), sessions_error=None)
        self._pager.reset()

    async def resume_session(self, session_key: str) -> Notice:
        """Ask the backend to reopen a session in a terminal.

        Never raises; the outcome is reported as a notice and nothing else in
        the state changes.
        """
        adapter = self._adapter
        state = self._state
        session = adapter.resolve_session(session_key, state.sessions.sessions())
        if session is None:
            notice = Notice("error", f"Session not found: {session_key}")
        else:
            project = None
            if state.selected_project:
                project = adapter.resolve_project(state.selected_project, state.projects)
            request = adapter.resume_request(session, project)
            try:
                await self._backend.resume_session(request)
            except ViewerError as e:
                logger.error("Failed to resume session %s: %s", session.session_id, e)
                notice = Notice("error", f"Failed to resume session: {e}")
            else:
                notice = Notice("info", f"Resumed {session.display_title} in {request.work_dir or 'a new terminal'}")
        self._replace(notice=notice)
        return notice

    def dismiss_notice(self) -> None:
        if self._state.notice is not None:
            self._replace(notice=None)

    async def open_route(self, route: Route) -> Route:
        """Bring the store to the view a route names.

        Returns the route actually shown: when a key does not resolve, the
        nearest ancestor that does.
        """
        if route.tool != self._adapter.name:
            self.set_active_tool(route.tool)

        if route.view == STATS:
            await self.load_stats()
            return route
        if route.view not in (PROJECT, SESSION):
            if route.view == PROJECTS and not self._state.projects:
                await self.load_projects()
            return route

        if not self._state.projects:
            await self.load_projects()
        adapter = self._adapter
        if adapter.resolve_project(route.project_key, self._state.projects) is None:
            logger.warning("Project %s not found for %s, showing project list", route.project_key, adapter.name)
            return Route(route.tool, PROJECTS)

        if self._state.selected_project != route.project_key or self._state.sessions_error:
            await self.select_project(route.project_key)
        if route.view == PROJECT:
            return route

        if adapter.resolve_session(route.session_key, self._state.sessions.sessions()) is None:
            logger.warning("Session %s not found in %s, showing project", route.session_key, route.project_key)
            return route.parent()

        pages = self._state.pages
        if pages.session_key != route.session_key or pages.status in (LoadStatus.IDLE, LoadStatus.ERROR):
            await self.select_session(route.session_key, route.project_key)
        return route

    # ── Private helpers ──────────────────────────────────────────

    async def _fetch_page(
        self, session_key: str, project_key: Optional[str], page: int, page_size: int,
    ) -> PaginatedResult:
        query = self._adapter.message_query(session_key, project_key)
        return await self._backend.get_messages(query.tool, query.session_key, query.project_key, page, page_size)

    def _on_pages(self, pages: PageState) -> None:
        self._replace(pages=pages)

    def _begin(self, channel: str) -> int:
        token = next(self._token_source)
        self._tokens[channel] = token
        return token

    def _current(self, channel: str, token: int) -> bool:
        return self._tokens[channel] == token

    def _replace(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)


def _decode_each(records: Iterable[dict], decode: Callable[[dict], Any], what: str) -> list:
    """Decode records one by one; a malformed record is skipped and logged."""
    decoded = []
    for record in records:
        try:
            decoded.append(decode(record))
        except DecodeError as e:
            logger.warning("Skipping %s record: %s", what, e)
    return decoded

"""Incremental message loading for the selected session.

The state lives in an immutable PageState snapshot. Module-level transition
functions take a snapshot and return the next one; they never await, so each
can be tested on its own. PaginationController is the async driver that
issues the backend requests and feeds their outcomes through the transitions.

States::

    idle ──select──> loading-first ──ok──> ready ──load_more──> loading-more ──ok──> ready
                          │                  └──load_all──> loading-all (loops until has_more is False)
                          └──────────── any failure ──> error ──select──> loading-first

Every selection gets a fresh token. A response is applied only if its token
is still the current one; anything else is a stale answer for a session the
user has already left and is dropped.
"""

import itertools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Optional

from .config import DEFAULT_PAGE_SIZE
from .core import DisplayMessage, PaginatedResult
from .errors import ViewerError

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str, Optional[str], int, int], Awaitable[PaginatedResult]]


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING_FIRST = "loading-first"
    READY = "ready"
    LOADING_MORE = "loading-more"
    LOADING_ALL = "loading-all"
    ERROR = "error"


@dataclass(frozen=True)
class PageState:
    """Snapshot of one session's pagination lifecycle."""

    status: LoadStatus = LoadStatus.IDLE
    session_key: Optional[str] = None
    project_key: Optional[str] = None
    messages: tuple[DisplayMessage, ...] = ()
    total: int = 0
    page: int = 0  # index of the last page applied
    page_size: int = DEFAULT_PAGE_SIZE
    has_more: bool = False
    requested_page: Optional[int] = None  # page currently in flight
    token: int = 0
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.requested_page is not None

    @property
    def loaded_count(self) -> int:
        return len(self.messages)


# ── Transitions ──────────────────────────────────────────────────


def select(state: PageState, session_key: str, project_key: Optional[str], token: int) -> PageState:
    """Start a new lifecycle: drop everything accumulated and request page 0."""
    return PageState(
        status=LoadStatus.LOADING_FIRST,
        session_key=session_key,
        project_key=project_key,
        page_size=state.page_size,
        requested_page=0,
        token=token,
    )


def begin_more(state: PageState) -> PageState | None:
    """Request the next page, or None when a request is not allowed now."""
    if state.status is not LoadStatus.READY or not state.has_more:
        return None
    return replace(state, status=LoadStatus.LOADING_MORE, requested_page=state.page + 1)


def begin_all(state: PageState) -> PageState | None:
    """Enter eager mode, or None when there is nothing to load or a request is in flight."""
    if state.status is not LoadStatus.READY or not state.has_more:
        return None
    return replace(state, status=LoadStatus.LOADING_ALL, requested_page=state.page + 1)


def apply_page(state: PageState, result: PaginatedResult, token: int) -> PageState:
    """Append a page's messages to the accumulated sequence.

    Returns the state unchanged when the token is stale or nothing is in
    flight. Once has_more has been False it stays False.
    """
    if not is_current(state, token) or state.requested_page is None:
        return state

    if result.page != state.requested_page:
        logger.warning("Backend answered page %d for a request of page %d", result.page, state.requested_page)

    messages = state.messages + tuple(result.messages)
    if state.status is LoadStatus.LOADING_FIRST:
        has_more = result.has_more
    else:
        has_more = state.has_more and result.has_more

    total = result.total
    if total < len(messages):
        logger.warning(
            "Backend total %d is below the %d messages received for %s; using the received count",
            total, len(messages), state.session_key,
        )
        total = len(messages)

    page = state.requested_page
    if state.status is LoadStatus.LOADING_ALL and has_more:
        return replace(
            state, messages=messages, total=total, page=page, has_more=True, requested_page=page + 1,
        )
    return replace(
        state,
        status=LoadStatus.READY,
        messages=messages,
        total=total,
        page=page,
        has_more=has_more,
        requested_page=None,
        error=None,
    )


def fail(state: PageState, token: int, error: str) -> PageState:
    """Record a failed request. Accumulated messages stay as they are."""
    if not is_current(state, token):
        return state
    return replace(state, status=LoadStatus.ERROR, requested_page=None, error=error)


def reset(state: PageState, token: int) -> PageState:
    """Back to idle, invalidating whatever is in flight."""
    return PageState(page_size=state.page_size, token=token)


def is_current(state: PageState, token: int) -> bool:
    return state.token == token


# ── Driver ───────────────────────────────────────────────────────


class PaginationController:
    """Runs the transitions against a backend page fetcher.

    Only one page request is outstanding per session. `load_more` and
    `load_all` called while one is in flight are rejected, not queued.
    """

    def __init__(
        self,
        fetch: PageFetcher,
        page_size: int = DEFAULT_PAGE_SIZE,
        on_change: Callable[[PageState], None] | None = None,
    ):
        self._fetch = fetch
        self._tokens = itertools.count(1)
        self._on_change = on_change
        self.state = PageState(page_size=page_size)

    async def select_session(self, session_key: str, project_key: Optional[str] = None) -> PageState:
        """Reset and load the first page of a session."""
        token = next(self._tokens)
        self._set(select(self.state, session_key, project_key, token))
        await self._request(token)
        return self.state

    async def load_more(self) -> bool:
        """Load the next page. Returns False when the call was a no-op."""
        pending = begin_more(self.state)
        if pending is None:
            logger.debug("load_more ignored in state %s (has_more=%s)", self.state.status.value, self.state.has_more)
            return False
        self._set(pending)
        await self._request(pending.token)
        return True

    async def load_all(self) -> bool:
        """Load every remaining page, one after another.

        Stops at the first page reporting has_more=False or at the first
        failure; what was accumulated until then is kept either way.
        """
        pending = begin_all(self.state)
        if pending is None:
            logger.debug("load_all ignored in state %s (has_more=%s)", self.state.status.value, self.state.has_more)
            return False
        self._set(pending)
        token = pending.token
        while is_current(self.state, token) and self.state.status is LoadStatus.LOADING_ALL:
            await self._request(token)
        return True

    def reset(self) -> PageState:
        self._set(reset(self.state, next(self._tokens)))
        return self.state

    async def _request(self, token: int) -> None:
        state = self.state
        try:
            result = await self._fetch(state.session_key, state.project_key, state.requested_page, state.page_size)
        except ViewerError as e:
            if not is_current(self.state, token):
                logger.debug("Ignoring failure of superseded request for %s: %s", state.session_key, e)
                return
            logger.error("Failed to load page %s of %s: %s", state.requested_page, state.session_key, e)
            self._set(fail(self.state, token, str(e)))
            return
        except Exception as e:
            # record it so the lifecycle never stays in a loading state
            logger.exception("Unexpected failure loading page %s of %s", state.requested_page, state.session_key)
            self._set(fail(self.state, token, f"{type(e).__name__}: {e}"))
            raise

        if not is_current(self.state, token):
            logger.debug("Dropping stale page %s for %s", state.requested_page, state.session_key)
            return
        self._set(apply_page(self.state, result, token))

    def _set(self, state: PageState) -> None:
        self.state = state
        if self._on_change is not None:
            self._on_change(state)

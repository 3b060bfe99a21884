"""Bookmarkable addresses for the views the store can show.

    /{tool}/projects
    /{tool}/projects/{projectKey}
    /{tool}/projects/{projectKey}/session/{sessionKey}
    /{tool}/search
    /{tool}/stats

Keys are navigation keys as produced by the tool's adapter. When placed in
a path they are percent-quoted once more, so a Codex key (itself a
percent-encoded filesystem path) still occupies exactly one segment.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote

from .core import SearchHit
from .provider import ToolAdapter

PROJECTS = "projects"
PROJECT = "project"
SESSION = "session"
SEARCH = "search"
STATS = "stats"


@dataclass(frozen=True)
class Route:
    tool: str
    view: str = PROJECTS
    project_key: Optional[str] = None
    session_key: Optional[str] = None

    def parent(self) -> "Route":
        """The nearest ancestor view, used when this one cannot be shown."""
        if self.view == SESSION:
            return Route(self.tool, PROJECT, self.project_key)
        return Route(self.tool, PROJECTS)

    @property
    def path(self) -> str:
        return build_path(self)


def build_path(route: Route) -> str:
    """Render a route as an address."""
    base = f"/{quote(route.tool, safe='')}"
    if route.view == SEARCH:
        return f"{base}/search"
    if route.view == STATS:
        return f"{base}/stats"
    if route.view == PROJECTS or route.project_key is None:
        return f"{base}/projects"
    path = f"{base}/projects/{_segment(route.project_key)}"
    if route.view == SESSION and route.session_key is not None:
        path += f"/session/{_segment(route.session_key)}"
    return path


def parse_path(path: str) -> Route | None:
    """Parse an address back into a Route; None for anything unrecognized."""
    parts = [unquote(p) for p in path.strip("/").split("/")] if path.strip("/") else []
    if not parts or not parts[0]:
        return None

    tool, rest = parts[0], parts[1:]
    if rest == [SEARCH]:
        return Route(tool, SEARCH)
    if rest == [STATS]:
        return Route(tool, STATS)
    if not rest or rest[0] != "projects":
        return None
    if len(rest) == 1:
        return Route(tool, PROJECTS)
    if len(rest) == 2 and rest[1]:
        return Route(tool, PROJECT, rest[1])
    if len(rest) == 4 and rest[1] and rest[2] == "session" and rest[3]:
        return Route(tool, SESSION, rest[1], rest[3])
    return None


def route_for_hit(adapter: ToolAdapter, hit: SearchHit) -> Route:
    """Where a search hit leads: the session view inside its project."""
    session_key = hit.session_key or adapter.encode_key(hit.session_id)
    return Route(adapter.name, SESSION, adapter.encode_key(hit.project_key), session_key)


def _segment(key: str) -> str:
    return quote(key, safe="")

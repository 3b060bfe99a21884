"""FastAPI app exposing the navigation surface over the store."""

import dataclasses
import logging
from typing import Callable

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import RedirectResponse

from .adapters import available_tools
from .backend import HttpBackend
from .config import get_backend_url, get_request_timeout
from .core import DisplayMessage, Project, SearchHit, Session
from .navigation import PROJECT, PROJECTS, SEARCH, SESSION, STATS, Route, route_for_hit
from .provider import ToolAdapter
from .store import AppStore, ViewState

logger = logging.getLogger(__name__)

# Store cache (populated on first request)
_store: AppStore | None = None


def _default_store() -> AppStore:
    """Lazily build and cache a store talking to the configured backend."""
    global _store
    if _store is None:
        url = get_backend_url()
        _store = AppStore(HttpBackend(url, timeout=get_request_timeout()))
        logger.info("Using backend at %s", url)
    return _store


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _project_to_dict(adapter: ToolAdapter, project: Project) -> dict:
    key = adapter.project_key(project)
    return {
        "key": key,
        "name": project.name,
        "short_name": project.short_name,
        "session_count": project.session_count,
        "last_modified": _iso(project.last_modified),
        "model_provider": project.model_provider,
        "path": Route(adapter.name, PROJECT, key).path,
    }


def _session_to_dict(adapter: ToolAdapter, session: Session, project_key: str | None) -> dict:
    key = adapter.session_key(session)
    return {
        "key": key,
        "session_id": session.session_id,
        "title": session.display_title,
        "message_count": session.message_count,
        "created": _iso(session.created),
        "modified": _iso(session.modified),
        "git_branch": session.git_branch,
        "model": session.model,
        "model_provider": session.model_provider,
        "path": Route(adapter.name, SESSION, project_key, key).path if project_key else None,
    }


def _message_to_dict(msg: DisplayMessage) -> dict:
    """Convert a DisplayMessage to a JSON-serializable dict."""
    return {
        "uuid": msg.uuid,
        "role": msg.role,
        "timestamp": _iso(msg.timestamp),
        "content": [_block_to_dict(block) for block in msg.content],
    }


def _block_to_dict(block) -> dict:
    """Serialize a block with the camelCase keys decode_block reads back."""
    data = {"type": block.type}
    for name, value in dataclasses.asdict(block).items():
        head, *rest = name.split("_")
        data[head + "".join(part.capitalize() for part in rest)] = value
    return data


def _hit_to_dict(adapter: ToolAdapter, hit: SearchHit) -> dict:
    return {
        "project_name": hit.project_name,
        "session_id": hit.session_id,
        "first_prompt": hit.first_prompt,
        "matched_text": hit.matched_text,
        "role": hit.role,
        "timestamp": _iso(hit.timestamp),
        "path": route_for_hit(adapter, hit).path,
    }


def _pages_to_dict(state: ViewState) -> dict:
    pages = state.pages
    return {
        "status": pages.status.value,
        "total": pages.total,
        "loaded": pages.loaded_count,
        "page": pages.page,
        "page_size": pages.page_size,
        "has_more": pages.has_more,
        "error": pages.error,
    }


def create_app(get_store: Callable[[], AppStore] = _default_store) -> FastAPI:
    """Build the app around a store provider."""
    app = FastAPI(title="aichat-viewer", version="0.1.0")

    async def _show(route: Route) -> tuple[AppStore, Route]:
        if route.tool not in available_tools():
            raise HTTPException(status_code=404, detail=f"Unknown tool: {route.tool}")
        store = get_store()
        shown = await store.open_route(route)
        return store, shown

    def _redirect(shown: Route) -> RedirectResponse:
        return RedirectResponse(url=shown.path, status_code=307)

    # ── Routes ───────────────────────────────────────────────────

    @app.get("/")
    async def index():
        """Return supported tools and the active one."""
        return {"tools": available_tools(), "active_tool": get_store().state.active_tool}

    @app.get("/{tool}/projects")
    async def projects(tool: str):
        store, _ = await _show(Route(tool, PROJECTS))
        state = store.state
        return {
            "tool": tool,
            "loading": state.projects_loading,
            "error": state.projects_error,
            "projects": [_project_to_dict(store.adapter, p) for p in state.projects],
        }

    @app.get("/{tool}/projects/{project_key}")
    async def project_sessions(tool: str, project_key: str):
        route = Route(tool, PROJECT, project_key)
        store, shown = await _show(route)
        if shown != route:
            return _redirect(shown)

        state = store.state
        adapter = store.adapter
        return {
            "tool": tool,
            "project_key": project_key,
            "grouped": state.sessions.grouped,
            "error": state.sessions_error,
            "groups": [
                {
                    "root": _session_to_dict(adapter, group.root, project_key),
                    "subagent_count": group.subagent_count,
                    "subagents": [_session_to_dict(adapter, s, project_key) for s in group.subagents],
                }
                for group in state.sessions
            ],
        }

    @app.get("/{tool}/projects/{project_key}/session/{session_key}")
    async def session_messages(
        tool: str,
        project_key: str,
        session_key: str,
        load_all: bool = Query(False, alias="all", description="Load every remaining page before answering"),
    ):
        route = Route(tool, SESSION, project_key, session_key)
        store, shown = await _show(route)
        if shown != route:
            return _redirect(shown)

        if load_all:
            await store.load_all()
        state = store.state
        return {
            "tool": tool,
            "session_key": session_key,
            "pagination": _pages_to_dict(state),
            "messages": [_message_to_dict(m) for m in state.messages],
        }

    @app.post("/{tool}/projects/{project_key}/session/{session_key}/more")
    async def session_more(tool: str, project_key: str, session_key: str):
        route = Route(tool, SESSION, project_key, session_key)
        store, shown = await _show(route)
        if shown != route:
            return _redirect(shown)

        before = store.state.pages.loaded_count
        accepted = await store.load_more()
        state = store.state
        return {
            "accepted": accepted,
            "pagination": _pages_to_dict(state),
            "messages": [_message_to_dict(m) for m in state.messages[before:]],
        }

    @app.post("/{tool}/projects/{project_key}/session/{session_key}/resume")
    async def session_resume(tool: str, project_key: str, session_key: str):
        route = Route(tool, SESSION, project_key, session_key)
        store, shown = await _show(route)
        if shown != route:
            return _redirect(shown)

        notice = await store.resume_session(session_key)
        return {
            "level": notice.level,
            "text": notice.text,
            "command": _resume_command(store, session_key),
        }

    @app.get("/{tool}/search")
    async def search(tool: str, q: str = Query("", description="Search query")):
        store, _ = await _show(Route(tool, SEARCH))
        await store.search(q)
        state = store.state
        return {
            "tool": tool,
            "query": state.search_query,
            "error": state.search_error,
            "results": [_hit_to_dict(store.adapter, h) for h in state.search_results],
        }

    @app.get("/{tool}/stats")
    async def stats(tool: str):
        store, _ = await _show(Route(tool, STATS))
        state = store.state
        return {
            "tool": tool,
            "stats": state.stats,
            "token_summary": state.token_summary,
            "error": state.stats_error,
        }

    return app


def _resume_command(store: AppStore, session_key: str) -> str | None:
    state = store.state
    adapter = store.adapter
    session = adapter.resolve_session(session_key, state.sessions.sessions())
    if session is None:
        return None
    project = adapter.resolve_project(state.selected_project or "", state.projects)
    return adapter.resume_command(session, project)


app = create_app()

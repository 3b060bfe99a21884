"""CLI entry point for aichat-viewer."""

import asyncio
import json
import logging
import os
from functools import wraps

import click
import uvicorn

from .adapters import available_tools
from .backend import HttpBackend
from .config import get_backend_url, get_request_timeout
from .core import (
    DisplayMessage,
    FunctionCallBlock,
    FunctionCallOutputBlock,
    ReasoningBlock,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    preview,
)
from .navigation import PROJECT, SESSION, Route, route_for_hit
from .store import AppStore

TOOL = click.argument("tool", type=click.Choice(available_tools()))


def _with_store(func):
    """Run an async command body against a store for the configured backend."""

    @wraps(func)
    def wrapper(ctx: click.Context, tool: str, *args, **kwargs):
        async def run():
            async with HttpBackend(ctx.obj["backend"], timeout=get_request_timeout()) as backend:
                store = AppStore(backend, tool=tool)
                await func(store, *args, **kwargs)

        asyncio.run(run())

    return click.pass_context(wrapper)


@click.group()
@click.option("--backend", default=None, help="Backend base URL (default: $AICHAT_VIEWER_BACKEND_URL).")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, backend: str | None, verbose: bool):
    """Browse Claude Code, Codex and OpenCode conversation logs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["backend"] = backend or get_backend_url()


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.pass_context
def serve(ctx: click.Context, port: int, host: str):
    """Serve the navigation surface over HTTP."""
    os.environ["AICHAT_VIEWER_BACKEND_URL"] = ctx.obj["backend"]
    click.echo(f"Starting aichat-viewer on http://{host}:{port}")
    uvicorn.run("aichat_viewer.server:app", host=host, port=port, reload=False)


@main.command()
@TOOL
@_with_store
async def projects(store: AppStore):
    """List projects recorded by TOOL."""
    await store.load_projects()
    state = store.state
    if state.projects_error:
        raise click.ClickException(state.projects_error)
    for project in state.projects:
        key = store.adapter.project_key(project)
        click.echo(f"{key}\t{project.session_count:>4} sessions\t{project.name}")


@main.command()
@TOOL
@click.argument("project_key")
@_with_store
async def sessions(store: AppStore, project_key: str):
    """List the sessions of a project, subagents indented under their root."""
    shown = await store.open_route(Route(store.adapter.name, PROJECT, project_key))
    if shown.view != PROJECT:
        raise click.ClickException(f"Project not found: {project_key}")
    state = store.state
    if state.sessions_error:
        raise click.ClickException(state.sessions_error)

    adapter = store.adapter
    for group in state.sessions:
        root = group.root
        suffix = f"  [+{group.subagent_count} subagents]" if group.subagent_count else ""
        click.echo(f"{adapter.session_key(root)}\t{root.message_count:>4} msgs\t{preview(root.display_title, 80)}{suffix}")
        for sub in group.subagents:
            click.echo(f"  └ {adapter.session_key(sub)}\t{sub.message_count:>4} msgs\t{preview(sub.display_title, 76)}")


@main.command()
@TOOL
@click.argument("project_key")
@click.argument("session_key")
@click.option("--all", "load_all", is_flag=True, help="Load every page instead of only the first.")
@click.option("--width", default=500, help="Truncate block contents to this many characters (0 = never).")
@_with_store
async def show(store: AppStore, project_key: str, session_key: str, load_all: bool, width: int):
    """Print a session's messages."""
    route = Route(store.adapter.name, SESSION, project_key, session_key)
    shown = await store.open_route(route)
    if shown != route:
        raise click.ClickException(f"Not found, nearest view is {shown.path}")
    if load_all:
        await store.load_all()

    pages = store.state.pages
    for message in pages.messages:
        _echo_message(message, width)
    if pages.error:
        click.secho(f"error: {pages.error}", fg="red", err=True)
    more = " (more available, use --all)" if pages.has_more else ""
    click.echo(f"-- {pages.loaded_count} of {pages.total} messages{more}")


@main.command()
@TOOL
@click.argument("query")
@_with_store
async def search(store: AppStore, query: str):
    """Search TOOL's conversations."""
    await store.search(query)
    state = store.state
    if state.search_error:
        raise click.ClickException(state.search_error)
    for hit in state.search_results:
        click.echo(f"{route_for_hit(store.adapter, hit).path}\n  [{hit.role}] {preview(hit.matched_text, 200)}")


@main.command()
@TOOL
@_with_store
async def stats(store: AppStore):
    """Print usage stats and the token summary as JSON."""
    await store.load_stats()
    state = store.state
    if state.stats_error:
        click.secho(f"error: {state.stats_error}", fg="red", err=True)
    click.echo(json.dumps({"stats": state.stats, "token_summary": state.token_summary}, indent=2))


@main.command()
@TOOL
@click.argument("project_key")
@click.argument("session_key")
@_with_store
async def resume(store: AppStore, project_key: str, session_key: str):
    """Reopen a session in a terminal."""
    shown = await store.open_route(Route(store.adapter.name, PROJECT, project_key))
    if shown.view != PROJECT:
        raise click.ClickException(f"Project not found: {project_key}")
    notice = await store.resume_session(session_key)
    if notice.level == "error":
        raise click.ClickException(notice.text)
    click.echo(notice.text)


# ── Private helpers ──────────────────────────────────────────────


def _echo_message(message: DisplayMessage, width: int) -> None:
    stamp = f" ({message.timestamp.strftime('%Y-%m-%d %H:%M')})" if message.timestamp else ""
    click.secho(f"## {message.role.capitalize()}{stamp}", bold=True)
    for block in message.content:
        click.echo(_block_text(block, width))
    click.echo("")


def _block_text(block, width: int) -> str:
    if isinstance(block, TextBlock):
        return preview(block.text, width)
    if isinstance(block, (ThinkingBlock, ReasoningBlock)):
        text = block.thinking if isinstance(block, ThinkingBlock) else block.text
        return f"[{block.type}] {preview(text, width)}"
    if isinstance(block, ToolUseBlock):
        return f"[Tool: {block.name}] {preview(block.input, width)}"
    if isinstance(block, ToolResultBlock):
        label = "Tool error" if block.is_error else "Tool result"
        return f"[{label}]\n{preview(block.content, width)}"
    if isinstance(block, FunctionCallBlock):
        return f"[Call: {block.name}] {preview(block.arguments, width)}"
    if isinstance(block, FunctionCallOutputBlock):
        return f"[Output]\n{preview(block.output, width)}"
    return f"[{block.type}]"

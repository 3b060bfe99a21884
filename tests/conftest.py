"""Shared test fixtures for aichat-viewer."""

import asyncio
import copy
from datetime import datetime, timedelta, timezone

import pytest

from aichat_viewer.backend import Backend
from aichat_viewer.core import decode_page
from aichat_viewer.errors import BackendError

CLAUDE_PROJECT_KEY = "-Users-testuser-dev-myapp"
CODEX_CWD = "/Users/test user/dev/100% café"
CODEX_FILE = "/Users/test user/.codex/sessions/2025/01/22/rollout-2025-01-22T08-00-00-0199-abc.jsonl"

CLAUDE_PROJECTS = [
    {
        "encodedName": CLAUDE_PROJECT_KEY,
        "displayPath": "/Users/testuser/dev/myapp",
        "shortName": "myapp",
        "sessionCount": 2,
        "lastModified": "2025-01-21T09:45:00Z",
    },
]

CLAUDE_SESSIONS = [
    {
        "sessionId": "session-001",
        "fullPath": f"/Users/testuser/.claude/projects/{CLAUDE_PROJECT_KEY}/session-001.jsonl",
        "fileMtime": 1737369000000,
        "firstPrompt": "Help me refactor the auth module",
        "messageCount": 120,
        "created": "2025-01-20T10:00:00Z",
        "modified": "2025-01-20T11:30:00Z",
        "gitBranch": "main",
        "projectPath": "/Users/testuser/dev/myapp",
        "isSidechain": False,
    },
    {
        "sessionId": "session-002",
        "fullPath": f"/Users/testuser/.claude/projects/{CLAUDE_PROJECT_KEY}/session-002.jsonl",
        "fileMtime": None,
        "firstPrompt": "Write tests for the API",
        "messageCount": 3,
        "created": "2025-01-21T09:00:00Z",
        "modified": "2025-01-21T09:45:00Z",
        "gitBranch": None,
        "projectPath": "/Users/testuser/dev/myapp",
        "isSidechain": True,
    },
]

CODEX_PROJECTS = [
    {
        "cwd": CODEX_CWD,
        "shortName": "100% café",
        "sessionCount": 1,
        "lastModified": "2025-01-22T08:30:00Z",
        "modelProvider": "openai",
    },
]

CODEX_SESSIONS = [
    {
        "sessionId": "0199-abc",
        "cwd": CODEX_CWD,
        "shortName": "100% café",
        "model": "gpt-5-codex",
        "modelProvider": "openai",
        "cliVersion": "0.46.0",
        "firstPrompt": "Why is the build failing?",
        "messageCount": 5,
        "created": "2025-01-22T08:00:00Z",
        "modified": "2025-01-22T08:30:00Z",
        "gitBranch": "fix/build",
        "filePath": CODEX_FILE,
    },
]

OPENCODE_PROJECTS = [
    {
        "id": "prj_api",
        "worktree": "/Users/testuser/dev/api-server",
        "shortName": "api-server",
        "sessionCount": 4,
        "lastModified": "2025-01-22T08:30:00+00:00",
    },
]


def _opencode_session(session_id: str, title: str, parent_id=None, count=4) -> dict:
    return {
        "sessionId": session_id,
        "projectId": "prj_api",
        "directory": "/Users/testuser/dev/api-server",
        "shortName": "api-server",
        "title": title,
        "slug": None,
        "firstPrompt": f"{title} please",
        "messageCount": count,
        "created": "2025-01-22T08:00:00+00:00",
        "modified": "2025-01-22T08:30:00+00:00",
        "gitBranch": None,
        "parentId": parent_id,
    }


OPENCODE_GROUPS = [
    {
        "rootSession": _opencode_session("ses_root", "Debug API endpoint"),
        "subSessions": [
            _opencode_session("ses_sub_b", "Search the codebase", parent_id="ses_root", count=2),
            _opencode_session("ses_sub_a", "Run the test suite", parent_id="ses_root", count=1),
        ],
    },
    {
        "rootSession": _opencode_session("ses_lonely", "Write a changelog"),
        "subSessions": [],
    },
]


def make_messages(count: int, label: str) -> list[dict]:
    """Build `count` canonical message records labelled for order checks."""
    start = datetime(2025, 1, 20, 10, 0, 0, tzinfo=timezone.utc)
    return [
        {
            "uuid": f"{label}-{i}",
            "role": "user" if i % 2 == 0 else "assistant",
            "timestamp": (start + timedelta(seconds=i)).isoformat(),
            "content": [{"type": "text", "text": f"{label} message {i}"}],
        }
        for i in range(count)
    ]


class FakeBackend(Backend):
    """In-memory backend that paginates canned records and records every call.

    `hold(...)` returns an event that keeps the matching call pending until
    it is set, which lets tests control the order responses arrive in.
    """

    def __init__(self):
        self.projects: dict[str, list] = {
            "claude": copy.deepcopy(CLAUDE_PROJECTS),
            "codex": copy.deepcopy(CODEX_PROJECTS),
            "opencode": copy.deepcopy(OPENCODE_PROJECTS),
        }
        self.sessions: dict[tuple, list] = {
            ("claude", CLAUDE_PROJECT_KEY): copy.deepcopy(CLAUDE_SESSIONS),
            ("codex", CODEX_CWD): copy.deepcopy(CODEX_SESSIONS),
            ("opencode", "prj_api"): copy.deepcopy(OPENCODE_GROUPS),
        }
        self.messages: dict[tuple, list] = {
            ("claude", "session-001"): make_messages(120, "s1"),
            ("claude", "session-002"): make_messages(3, "s2"),
            ("codex", CODEX_FILE): make_messages(5, "cx"),
            ("opencode", "ses_root"): make_messages(4, "root"),
            ("opencode", "ses_sub_a"): make_messages(1, "sub-a"),
        }
        self.search_results: dict[str, list] = {}
        self.stats: dict[str, object] = {}
        self.token_summaries: dict[str, object] = {}
        self.failures: dict[tuple, Exception] = {}
        self.calls: list[tuple] = []
        self._gates: dict[tuple, asyncio.Event] = {}

    async def __aenter__(self) -> "FakeBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        pass

    def hold(self, *key) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[key] = gate
        return gate

    def fail(self, *key, error: Exception | None = None) -> None:
        self.failures[key] = error or BackendError(key[0], "backend unavailable")

    def calls_to(self, operation: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == operation]

    async def _enter(self, key: tuple) -> None:
        self.calls.append(key)
        gate = self._gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.failures:
            raise self.failures[key]

    async def list_projects(self, tool):
        await self._enter(("projects", tool))
        return copy.deepcopy(self.projects.get(tool, []))

    async def list_sessions(self, tool, project_key, grouped=False):
        await self._enter(("sessions", tool, project_key, grouped))
        return copy.deepcopy(self.sessions.get((tool, project_key), []))

    async def get_messages(self, tool, session_key, project_key, page=0, page_size=50):
        await self._enter(("messages", tool, session_key, project_key, page))
        records = self.messages.get((tool, session_key), [])
        start = page * page_size
        end = min(start + page_size, len(records))
        return decode_page({
            "messages": records[start:end],
            "total": len(records),
            "page": page,
            "pageSize": page_size,
            "hasMore": end < len(records),
        })

    async def search(self, tool, query, max_results=50):
        await self._enter(("search", tool, query))
        return copy.deepcopy(self.search_results.get(tool, []))[:max_results]

    async def get_stats(self, tool):
        await self._enter(("stats", tool))
        return self.stats.get(tool)

    async def get_token_summary(self, tool):
        await self._enter(("token_summary", tool))
        return self.token_summaries.get(tool)

    async def resume_session(self, request):
        await self._enter(("resume", request.tool, request.session_id))


async def wait_for_call(backend: FakeBackend, key: tuple) -> None:
    """Yield to the loop until a call with `key` has reached the backend."""
    for _ in range(100):
        if key in backend.calls:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"backend never saw {key}")


@pytest.fixture
def backend():
    return FakeBackend()

"""Tests for the per-tool adapters and the adapter registry."""

import pytest

from aichat_viewer.adapters import available_tools, get_adapter
from aichat_viewer.adapters.claude_code import ClaudeCodeAdapter
from aichat_viewer.adapters.codex import CodexAdapter
from aichat_viewer.adapters.opencode import OpenCodeAdapter
from aichat_viewer.core import MessageQuery
from aichat_viewer.errors import DecodeError, ResolutionError

from conftest import (
    CLAUDE_PROJECT_KEY,
    CLAUDE_PROJECTS,
    CLAUDE_SESSIONS,
    CODEX_CWD,
    CODEX_FILE,
    CODEX_PROJECTS,
    CODEX_SESSIONS,
    OPENCODE_GROUPS,
    OPENCODE_PROJECTS,
)


class TestRegistry:
    def test_available_tools(self):
        assert available_tools() == ["claude", "codex", "opencode"]

    def test_get_adapter(self):
        assert isinstance(get_adapter("codex"), CodexAdapter)
        assert get_adapter("opencode").groups_sessions is True

    def test_unknown_tool(self):
        with pytest.raises(ResolutionError, match="cursor"):
            get_adapter("cursor")


class TestClaudeCodeAdapter:
    adapter = ClaudeCodeAdapter()

    def test_decode_project(self):
        project = self.adapter.decode_project(CLAUDE_PROJECTS[0])
        assert project.key == CLAUDE_PROJECT_KEY
        assert project.name == "/Users/testuser/dev/myapp"
        assert project.short_name == "myapp"
        assert project.session_count == 2
        assert project.tool == "claude"

    def test_decode_session(self):
        session = self.adapter.decode_session(CLAUDE_SESSIONS[0])
        assert session.session_id == "session-001"
        assert session.first_prompt == "Help me refactor the auth module"
        assert session.message_count == 120
        assert session.git_branch == "main"
        assert session.work_dir == "/Users/testuser/dev/myapp"
        assert session.file_path.endswith("session-001.jsonl")
        assert session.is_sidechain is False
        assert self.adapter.decode_session(CLAUDE_SESSIONS[1]).is_sidechain is True

    def test_decode_session_requires_id(self):
        with pytest.raises(DecodeError):
            self.adapter.decode_session({"firstPrompt": "orphan"})

    def test_keys_are_ids_verbatim(self):
        project = self.adapter.decode_project(CLAUDE_PROJECTS[0])
        session = self.adapter.decode_session(CLAUDE_SESSIONS[0])
        assert self.adapter.project_key(project) == CLAUDE_PROJECT_KEY
        assert self.adapter.session_key(session) == "session-001"

    def test_message_query_needs_project(self):
        query = self.adapter.message_query("session-001", CLAUDE_PROJECT_KEY)
        assert query == MessageQuery("claude", "session-001", CLAUDE_PROJECT_KEY)
        with pytest.raises(ResolutionError):
            self.adapter.message_query("session-001")

    def test_resume(self):
        session = self.adapter.decode_session(CLAUDE_SESSIONS[0])
        request = self.adapter.resume_request(session)
        assert request.work_dir == "/Users/testuser/dev/myapp"
        assert request.file_path == session.file_path
        assert self.adapter.resume_command(session) == "cd /Users/testuser/dev/myapp && claude --resume session-001"


class TestCodexAdapter:
    adapter = CodexAdapter()

    @pytest.mark.parametrize("raw", [
        "/Users/test user/dev/app",
        "/tmp/100% done",
        "/home/ünïcödé/プロジェクト",
        "C:\\Users\\dev\\app?x=1#frag&y=2+3",
        "/already/%2Fencoded",
    ])
    def test_key_round_trip(self, raw):
        key = self.adapter.encode_key(raw)
        assert "/" not in key
        assert " " not in key
        assert self.adapter.decode_key(key) == raw

    def test_decode_project_keeps_raw_cwd(self):
        project = self.adapter.decode_project(CODEX_PROJECTS[0])
        assert project.key == CODEX_CWD
        assert project.name == CODEX_CWD
        assert project.model_provider == "openai"
        assert self.adapter.project_key(project) == "%2FUsers%2Ftest%20user%2Fdev%2F100%25%20caf%C3%A9"

    def test_decode_session(self):
        session = self.adapter.decode_session(CODEX_SESSIONS[0])
        assert session.session_id == "0199-abc"
        assert session.file_path == CODEX_FILE
        assert session.work_dir == CODEX_CWD
        assert session.model == "gpt-5-codex"
        assert session.cli_version == "0.46.0"

    def test_decode_session_requires_file_path(self):
        record = dict(CODEX_SESSIONS[0])
        del record["filePath"]
        with pytest.raises(DecodeError):
            self.adapter.decode_session(record)

    def test_session_key_is_encoded_file_path(self):
        session = self.adapter.decode_session(CODEX_SESSIONS[0])
        key = self.adapter.session_key(session)
        assert self.adapter.decode_key(key) == CODEX_FILE
        assert self.adapter.resolve_session(key, [session]) is session

    def test_resolve_accepts_other_valid_escapings(self):
        project = self.adapter.decode_project({"cwd": "/home/u/proj (copy)!"})
        session = self.adapter.decode_session(CODEX_SESSIONS[0])
        # encodeURIComponent leaves ( ) ! bare; hex digits may be lowercase
        assert self.adapter.resolve_project("%2Fhome%2Fu%2Fproj%20(copy)!", [project]) is project
        assert self.adapter.resolve_project("%2fhome%2fu%2fproj%20%28copy%29%21", [project]) is project
        lowercase = self.adapter.session_key(session).replace("%2F", "%2f")
        assert self.adapter.resolve_session(lowercase, [session]) is session
        assert self.adapter.resolve_project("%2Fhome%2Fu%2Fother", [project]) is None

    def test_message_query_uses_file_path_only(self):
        session = self.adapter.decode_session(CODEX_SESSIONS[0])
        project = self.adapter.decode_project(CODEX_PROJECTS[0])
        query = self.adapter.message_query(self.adapter.session_key(session), self.adapter.project_key(project))
        assert query == MessageQuery("codex", CODEX_FILE, None)

    def test_search_hit_carries_session_key(self):
        hit = self.adapter.decode_search_hit({
            "cwd": CODEX_CWD,
            "shortName": "100% café",
            "sessionId": "0199-abc",
            "filePath": CODEX_FILE,
            "matchedText": "build failing",
            "role": "user",
        })
        assert hit.project_key == CODEX_CWD
        assert self.adapter.decode_key(hit.session_key) == CODEX_FILE

    def test_resume_command_quotes_work_dir(self):
        session = self.adapter.decode_session(CODEX_SESSIONS[0])
        assert self.adapter.resume_command(session) == f"cd '{CODEX_CWD}' && codex resume 0199-abc"


class TestOpenCodeAdapter:
    adapter = OpenCodeAdapter()

    def test_decode_project(self):
        project = self.adapter.decode_project(OPENCODE_PROJECTS[0])
        assert project.key == "prj_api"
        assert project.name == "/Users/testuser/dev/api-server"
        assert self.adapter.project_key(project) == "prj_api"

    def test_decode_session(self):
        sub = self.adapter.decode_session(OPENCODE_GROUPS[0]["subSessions"][0])
        assert sub.session_id == "ses_sub_b"
        assert sub.parent_id == "ses_root"
        assert sub.title == "Search the codebase"
        assert sub.display_title == "Search the codebase"
        assert sub.work_dir == "/Users/testuser/dev/api-server"

    def test_opaque_ids_not_reencoded(self):
        assert self.adapter.encode_key("ses_%41") == "ses_%41"
        assert self.adapter.decode_key("ses_%41") == "ses_%41"

    def test_resolve_unknown_returns_none(self):
        projects = [self.adapter.decode_project(OPENCODE_PROJECTS[0])]
        assert self.adapter.resolve_project("prj_missing", projects) is None
        assert self.adapter.resolve_session("ses_missing", []) is None

    def test_message_query(self):
        assert self.adapter.message_query("ses_root", "prj_api") == MessageQuery("opencode", "ses_root", "prj_api")

    def test_resume_falls_back_to_project_worktree(self):
        session = self.adapter.decode_session({"sessionId": "ses_x"})
        project = self.adapter.decode_project(OPENCODE_PROJECTS[0])
        assert self.adapter.resume_request(session, project).work_dir == "/Users/testuser/dev/api-server"
        assert self.adapter.resume_command(session, project).endswith("opencode --session ses_x")

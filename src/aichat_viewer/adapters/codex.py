"""Codex adapter.

Codex has no backend-issued ids for addressing: a project is its absolute
working directory and a session is the absolute path of its rollout file.
Both are percent-encoded to become navigation keys and decoded again before
they go back to the backend. Message pages need only the session file path.
"""

import shlex
from typing import Optional

from ..core import MessageQuery, Project, SearchHit, Session, parse_timestamp
from ..provider import ToolAdapter, optional_int, optional_str, require_str


class CodexAdapter(ToolAdapter):
    """Adapter for Codex CLI session logs."""

    name = "codex"
    percent_encodes_keys = True

    def decode_project(self, record: dict) -> Project:
        cwd = require_str(record, "cwd", "Codex project")
        return Project(
            key=cwd,
            name=cwd,
            short_name=optional_str(record, "shortName") or cwd.rstrip("/\\").rsplit("/", 1)[-1],
            session_count=optional_int(record, "sessionCount"),
            last_modified=parse_timestamp(record.get("lastModified")),
            model_provider=optional_str(record, "modelProvider"),
            tool=self.name,
        )

    def decode_session(self, record: dict) -> Session:
        session_id = require_str(record, "sessionId", "Codex session")
        cwd = optional_str(record, "cwd")
        return Session(
            session_id=session_id,
            project_key=cwd or "",
            first_prompt=optional_str(record, "firstPrompt"),
            message_count=optional_int(record, "messageCount"),
            created=parse_timestamp(record.get("created")),
            modified=parse_timestamp(record.get("modified")),
            git_branch=optional_str(record, "gitBranch"),
            model=optional_str(record, "model"),
            model_provider=optional_str(record, "modelProvider"),
            cli_version=optional_str(record, "cliVersion"),
            file_path=require_str(record, "filePath", "Codex session"),
            work_dir=cwd,
            tool=self.name,
        )

    def decode_search_hit(self, record: dict) -> SearchHit:
        file_path = require_str(record, "filePath", "Codex search")
        return SearchHit(
            project_key=require_str(record, "cwd", "Codex search"),
            project_name=optional_str(record, "shortName") or "",
            session_id=require_str(record, "sessionId", "Codex search"),
            session_key=self.encode_key(file_path),
            first_prompt=optional_str(record, "firstPrompt"),
            matched_text=record.get("matchedText") or "",
            role=record.get("role") or "",
            timestamp=parse_timestamp(record.get("timestamp")),
        )

    def session_identity(self, session: Session) -> str:
        return session.file_path or session.session_id

    def message_query(self, session_key: str, project_key: Optional[str] = None) -> MessageQuery:
        # the rollout file path alone identifies a Codex session
        return MessageQuery(tool=self.name, session_key=self.decode_key(session_key))

    def resume_command(self, session: Session, project: Optional[Project] = None) -> str:
        work_dir = self.resume_request(session, project).work_dir
        return f"cd {shlex.quote(work_dir)} && codex resume {session.session_id}"

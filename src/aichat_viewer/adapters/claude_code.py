"""Claude Code adapter.

The backend names Claude projects by their encoded directory name
(e.g. "-Users-farhaj-dev-foo") and sessions by their UUID. Both are
already address-safe, so navigation keys are the backend ids verbatim.
Message pages are addressed by session id *and* project, because the
session file lives inside the project directory.
"""

import shlex
from typing import Optional

from ..core import MessageQuery, Project, ResumeRequest, SearchHit, Session, parse_timestamp
from ..errors import ResolutionError
from ..provider import ToolAdapter, optional_int, optional_str, require_str


class ClaudeCodeAdapter(ToolAdapter):
    """Adapter for Claude Code session logs."""

    name = "claude"
    requires_project_for_messages = True

    def decode_project(self, record: dict) -> Project:
        encoded_name = require_str(record, "encodedName", "Claude project")
        display_path = optional_str(record, "displayPath") or encoded_name
        return Project(
            key=encoded_name,
            name=display_path,
            short_name=optional_str(record, "shortName") or display_path.rstrip("/").rsplit("/", 1)[-1],
            session_count=optional_int(record, "sessionCount"),
            last_modified=parse_timestamp(record.get("lastModified")),
            tool=self.name,
        )

    def decode_session(self, record: dict) -> Session:
        return Session(
            session_id=require_str(record, "sessionId", "Claude session"),
            first_prompt=optional_str(record, "firstPrompt"),
            message_count=optional_int(record, "messageCount"),
            created=parse_timestamp(record.get("created")),
            modified=parse_timestamp(record.get("modified") or record.get("fileMtime")),
            git_branch=optional_str(record, "gitBranch"),
            file_path=optional_str(record, "fullPath"),
            work_dir=optional_str(record, "projectPath"),
            is_sidechain=bool(record.get("isSidechain")),
            tool=self.name,
        )

    def decode_search_hit(self, record: dict) -> SearchHit:
        return SearchHit(
            project_key=require_str(record, "encodedName", "Claude search"),
            project_name=optional_str(record, "projectName") or "",
            session_id=require_str(record, "sessionId", "Claude search"),
            first_prompt=optional_str(record, "firstPrompt"),
            matched_text=record.get("matchedText") or "",
            role=record.get("role") or "",
            timestamp=parse_timestamp(record.get("timestamp")),
        )

    def message_query(self, session_key: str, project_key: Optional[str] = None) -> MessageQuery:
        if not project_key:
            raise ResolutionError("Claude message pages need the project's encoded name")
        return super().message_query(session_key, project_key)

    def resume_request(self, session: Session, project: Optional[Project] = None) -> ResumeRequest:
        request = super().resume_request(session, project)
        return ResumeRequest(
            tool=request.tool,
            session_id=request.session_id,
            work_dir=request.work_dir,
            file_path=session.file_path,
        )

    def resume_command(self, session: Session, project: Optional[Project] = None) -> str:
        work_dir = self.resume_request(session, project).work_dir
        return f"cd {shlex.quote(work_dir)} && claude --resume {session.session_id}"

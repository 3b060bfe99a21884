"""OpenCode adapter.

OpenCode projects and sessions carry backend-issued ids (`prj_...`,
`ses_...`) that are already address-safe. Sessions can spawn subagent
sessions; the backend answers session queries for this tool with
pre-grouped records (`rootSession` + `subSessions`), which the tree builder
takes as they are.
"""

import shlex
from typing import Optional

from ..core import Project, SearchHit, Session, parse_timestamp
from ..provider import ToolAdapter, optional_int, optional_str, require_str


class OpenCodeAdapter(ToolAdapter):
    """Adapter for OpenCode session storage."""

    name = "opencode"
    groups_sessions = True

    def decode_project(self, record: dict) -> Project:
        project_id = require_str(record, "id", "OpenCode project")
        worktree = optional_str(record, "worktree") or project_id
        return Project(
            key=project_id,
            name=worktree,
            short_name=optional_str(record, "shortName") or worktree.rstrip("/").rsplit("/", 1)[-1],
            session_count=optional_int(record, "sessionCount"),
            last_modified=parse_timestamp(record.get("lastModified")),
            tool=self.name,
        )

    def decode_session(self, record: dict) -> Session:
        return Session(
            session_id=require_str(record, "sessionId", "OpenCode session"),
            project_key=optional_str(record, "projectId") or "",
            first_prompt=optional_str(record, "firstPrompt"),
            title=optional_str(record, "title"),
            message_count=optional_int(record, "messageCount"),
            created=parse_timestamp(record.get("created")),
            modified=parse_timestamp(record.get("modified")),
            git_branch=optional_str(record, "gitBranch"),
            work_dir=optional_str(record, "directory"),
            parent_id=optional_str(record, "parentId"),
            tool=self.name,
        )

    def decode_search_hit(self, record: dict) -> SearchHit:
        return SearchHit(
            project_key=require_str(record, "projectId", "OpenCode search"),
            session_id=require_str(record, "sessionId", "OpenCode search"),
            first_prompt=optional_str(record, "firstPrompt"),
            matched_text=record.get("matchedText") or "",
            role=record.get("role") or "",
            timestamp=parse_timestamp(record.get("timestamp")),
        )

    def resume_command(self, session: Session, project: Optional[Project] = None) -> str:
        work_dir = self.resume_request(session, project).work_dir
        return f"cd {shlex.quote(work_dir)} && opencode --session {session.session_id}"

"""Abstract base class for per-tool adapters."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional
from urllib.parse import quote, unquote

from .core import MessageQuery, Project, ResumeRequest, SearchHit, Session
from .errors import DecodeError


class ToolAdapter(ABC):
    """Base class for coding-assistant tool adapters.

    Each tool (Claude Code, Codex, OpenCode) implements this interface so the
    store, the tree builder and the navigation surface never branch on the
    tool name. An adapter knows three things about its tool: how its project
    and session records are shaped, how their identities become navigation
    keys, and how a message-page request has to be addressed.
    """

    name: str  # "claude", "codex", "opencode"
    groups_sessions: bool = False
    requires_project_for_messages: bool = False
    percent_encodes_keys: bool = False

    @abstractmethod
    def decode_project(self, record: dict) -> Project:
        """Map one backend project record onto a Project."""
        ...

    @abstractmethod
    def decode_session(self, record: dict) -> Session:
        """Map one backend session record onto a Session."""
        ...

    @abstractmethod
    def decode_search_hit(self, record: dict) -> SearchHit:
        """Map one backend search result onto a SearchHit."""
        ...

    @abstractmethod
    def resume_command(self, session: Session, project: Optional[Project] = None) -> str:
        """Return the shell line a user can paste to resume the session."""
        ...

    # ── Navigation keys ──────────────────────────────────────────

    def encode_key(self, raw: str) -> str:
        """Turn a backend identity into an address-safe navigation key."""
        if self.percent_encodes_keys:
            return quote(raw, safe="", encoding="utf-8")
        return raw

    def decode_key(self, key: str) -> str:
        """Inverse of encode_key."""
        if self.percent_encodes_keys:
            return unquote(key, encoding="utf-8")
        return key

    def session_identity(self, session: Session) -> str:
        """The backend value a session's navigation key encodes."""
        return session.session_id

    def project_key(self, project: Project) -> str:
        return self.encode_key(project.key)

    def session_key(self, session: Session) -> str:
        return self.encode_key(self.session_identity(session))

    def resolve_project(self, key: str, projects: Iterable[Project]) -> Project | None:
        """Find the project a navigation key points at, or None.

        Keys are compared after decoding, so any valid escaping of the
        identity resolves, not only the form encode_key produces.
        """
        raw = self.decode_key(key)
        for project in projects:
            if project.key == raw:
                return project
        return None

    def resolve_session(self, key: str, sessions: Iterable[Session]) -> Session | None:
        """Find the session a navigation key points at, or None."""
        raw = self.decode_key(key)
        for session in sessions:
            if self.session_identity(session) == raw:
                return session
        return None

    # ── Request shaping ──────────────────────────────────────────

    def backend_project_key(self, key: str) -> str:
        """The project identity the backend expects for a navigation key."""
        return self.decode_key(key)

    def message_query(self, session_key: str, project_key: Optional[str] = None) -> MessageQuery:
        """Shape a `get message page` request from navigation keys."""
        return MessageQuery(
            tool=self.name,
            session_key=self.decode_key(session_key),
            project_key=self.backend_project_key(project_key) if project_key else None,
        )

    def resume_request(self, session: Session, project: Optional[Project] = None) -> ResumeRequest:
        """Arguments for the backend resume call."""
        work_dir = session.work_dir or (project.name if project else "")
        return ResumeRequest(tool=self.name, session_id=session.session_id, work_dir=work_dir)


# ── Record helpers shared by adapters ────────────────────────────


def require_str(record: dict, name: str, what: str) -> str:
    """Read a mandatory non-empty string field or raise DecodeError."""
    value = record.get(name) if isinstance(record, dict) else None
    if not isinstance(value, str) or not value:
        raise DecodeError(f"{what} record has no {name!r}")
    return value


def optional_str(record: dict, name: str) -> str | None:
    value = record.get(name)
    if value is None or value == "":
        return None
    return str(value)


def optional_int(record: dict, name: str) -> int:
    value = record.get(name)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0
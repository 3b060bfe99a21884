"""Core data models for aichat-viewer.

Every tool's backend answers in its own dialect for projects and sessions,
but messages arrive in one canonical shape: a message is a list of typed
content blocks. The decoders here turn backend records into immutable
dataclasses and reject anything whose tag they do not know.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar, Optional, Union

from .errors import DecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Project:
    """A workspace the tool has recorded sessions for."""

    key: str  # backend identity: encodedName, cwd or project id depending on tool
    name: str  # e.g. "/Users/farhaj/dev/travel-agency"
    short_name: str
    session_count: int = 0
    last_modified: Optional[datetime] = None
    model_provider: Optional[str] = None
    tool: str = ""


@dataclass(frozen=True)
class Session:
    """A single recorded conversation."""

    session_id: str
    project_key: str = ""
    first_prompt: Optional[str] = None
    title: Optional[str] = None
    message_count: int = 0
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    git_branch: Optional[str] = None
    model: Optional[str] = None
    model_provider: Optional[str] = None
    cli_version: Optional[str] = None
    file_path: Optional[str] = None  # addressing identity for path-keyed tools
    work_dir: Optional[str] = None
    parent_id: Optional[str] = None
    is_sidechain: bool = False
    tool: str = ""

    @property
    def display_title(self) -> str:
        return self.title or self.first_prompt or self.session_id


@dataclass(frozen=True)
class SessionGroup:
    """A root session and the subagent sessions it spawned, in backend order."""

    root: Session
    subagents: tuple[Session, ...] = ()

    @property
    def subagent_count(self) -> int:
        return len(self.subagents)

    @property
    def session_ids(self) -> tuple[str, ...]:
        return (self.root.session_id,) + tuple(s.session_id for s in self.subagents)


# ── Content blocks ───────────────────────────────────────────────


@dataclass(frozen=True)
class TextBlock:
    type: ClassVar[str] = "text"
    text: str


@dataclass(frozen=True)
class ThinkingBlock:
    """Hidden chain-of-thought emitted by the model."""

    type: ClassVar[str] = "thinking"
    thinking: str


@dataclass(frozen=True)
class ReasoningBlock:
    """Reasoning-model counterpart of a thinking block."""

    type: ClassVar[str] = "reasoning"
    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    type: ClassVar[str] = "tool_use"
    name: str
    input: str  # serialized JSON arguments
    id: str = ""


@dataclass(frozen=True)
class ToolResultBlock:
    type: ClassVar[str] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class FunctionCallBlock:
    type: ClassVar[str] = "function_call"
    name: str
    arguments: str
    call_id: str


@dataclass(frozen=True)
class FunctionCallOutputBlock:
    type: ClassVar[str] = "function_call_output"
    call_id: str
    output: str


ContentBlock = Union[
    TextBlock,
    ThinkingBlock,
    ReasoningBlock,
    ToolUseBlock,
    ToolResultBlock,
    FunctionCallBlock,
    FunctionCallOutputBlock,
]


@dataclass(frozen=True)
class DisplayMessage:
    """One turn of a conversation."""

    role: str  # "user" | "assistant" | "tool"
    content: tuple[ContentBlock, ...] = ()
    uuid: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class PaginatedResult:
    """One page of a session's message history."""

    messages: tuple[DisplayMessage, ...]
    total: int
    page: int
    page_size: int
    has_more: bool


@dataclass(frozen=True)
class SearchHit:
    """A search match, pointing back at the project and session it came from."""

    project_key: str
    session_id: str
    matched_text: str
    role: str
    project_name: str = ""
    session_key: str = ""  # navigation key when it differs from session_id
    first_prompt: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ResumeRequest:
    """Arguments for the backend's side-effecting resume call."""

    tool: str
    session_id: str
    work_dir: str
    file_path: Optional[str] = None


@dataclass(frozen=True)
class MessageQuery:
    """A shaped `get message page` request, minus the page cursor."""

    tool: str
    session_key: str
    project_key: Optional[str] = None


# ── Decoders ─────────────────────────────────────────────────────


def decode_block(record: dict) -> ContentBlock:
    """Decode one backend content record into exactly one block variant.

    Raises DecodeError for unknown tags or missing required fields.
    """
    if not isinstance(record, dict):
        raise DecodeError(f"content block must be an object, got {type(record).__name__}")

    block_type = record.get("type")
    decoder = _BLOCK_DECODERS.get(block_type)
    if decoder is None:
        raise DecodeError(f"unrecognized content block type: {block_type!r}")
    return decoder(record)


def decode_message(record: dict) -> DisplayMessage:
    """Decode a message record.

    Blocks are decoded one by one; a block that fails is left out and
    logged, the rest keep their order.
    """
    if not isinstance(record, dict):
        raise DecodeError(f"message must be an object, got {type(record).__name__}")

    role = record.get("role")
    if not isinstance(role, str) or not role:
        raise DecodeError("message is missing a role")

    raw_content = record.get("content", [])
    if isinstance(raw_content, str):
        raw_content = [{"type": "text", "text": raw_content}]
    if not isinstance(raw_content, list):
        raise DecodeError("message content must be a list of blocks")

    blocks = []
    for index, raw_block in enumerate(raw_content):
        try:
            blocks.append(decode_block(raw_block))
        except DecodeError as e:
            logger.warning("Dropping content block %d of message %s: %s", index, record.get("uuid"), e)

    return DisplayMessage(
        role=role,
        content=tuple(blocks),
        uuid=_optional_str(record.get("uuid")),
        timestamp=parse_timestamp(record.get("timestamp")),
    )


def decode_page(record: dict) -> PaginatedResult:
    """Decode a paginated message response."""
    if not isinstance(record, dict):
        raise DecodeError("page response must be an object")

    raw_messages = record.get("messages")
    if not isinstance(raw_messages, list):
        raise DecodeError("page response is missing its messages list")

    total = _require_int(record, "total")
    page = _require_int(record, "page")
    page_size = _pick(record, "pageSize", "page_size")
    if not isinstance(page_size, int) or isinstance(page_size, bool):
        raise DecodeError("page response has no integer pageSize")
    has_more = _pick(record, "hasMore", "has_more")
    if not isinstance(has_more, bool):
        raise DecodeError("page response has no boolean hasMore")

    messages = []
    for raw in raw_messages:
        try:
            messages.append(decode_message(raw))
        except DecodeError as e:
            logger.warning("Dropping message on page %d: %s", page, e)

    return PaginatedResult(
        messages=tuple(messages),
        total=total,
        page=page,
        page_size=page_size,
        has_more=has_more,
    )


def preview(text: str, limit: int = 500) -> str:
    """Return text shortened for display; the stored value is never touched."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit].rstrip() + f"… ({len(text) - limit} more chars)"


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO 8601 string or a millisecond epoch into a datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _ms_to_datetime(value)
    if not isinstance(value, str):
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None


# ── Private helpers ──────────────────────────────────────────────


def _decode_text(record: dict) -> TextBlock:
    return TextBlock(text=_require_str(record, "text"))


def _decode_thinking(record: dict) -> ThinkingBlock:
    return ThinkingBlock(thinking=_require_str(record, "thinking"))


def _decode_reasoning(record: dict) -> ReasoningBlock:
    return ReasoningBlock(text=_require_str(record, "text"))


def _decode_tool_use(record: dict) -> ToolUseBlock:
    return ToolUseBlock(
        name=_require_str(record, "name"),
        input=_serialized(record.get("input", "")),
        id=_optional_str(record.get("id")) or "",
    )


def _decode_tool_result(record: dict) -> ToolResultBlock:
    tool_use_id = _pick(record, "toolUseId", "tool_use_id")
    if not isinstance(tool_use_id, str):
        raise DecodeError("tool_result block has no toolUseId")
    is_error = _pick(record, "isError", "is_error")
    return ToolResultBlock(
        tool_use_id=tool_use_id,
        content=_serialized(record.get("content", "")),
        is_error=bool(is_error),
    )


def _decode_function_call(record: dict) -> FunctionCallBlock:
    call_id = _pick(record, "callId", "call_id")
    if not isinstance(call_id, str):
        raise DecodeError("function_call block has no callId")
    return FunctionCallBlock(
        name=_require_str(record, "name"),
        arguments=_serialized(record.get("arguments", "")),
        call_id=call_id,
    )


def _decode_function_call_output(record: dict) -> FunctionCallOutputBlock:
    call_id = _pick(record, "callId", "call_id")
    if not isinstance(call_id, str):
        raise DecodeError("function_call_output block has no callId")
    return FunctionCallOutputBlock(call_id=call_id, output=_serialized(record.get("output", "")))


_BLOCK_DECODERS = {
    TextBlock.type: _decode_text,
    ThinkingBlock.type: _decode_thinking,
    ReasoningBlock.type: _decode_reasoning,
    ToolUseBlock.type: _decode_tool_use,
    ToolResultBlock.type: _decode_tool_result,
    FunctionCallBlock.type: _decode_function_call,
    FunctionCallOutputBlock.type: _decode_function_call_output,
}


def _pick(record: dict, *names: str):
    for name in names:
        if name in record:
            return record[name]
    return None


def _require_str(record: dict, name: str) -> str:
    value = record.get(name)
    if not isinstance(value, str):
        raise DecodeError(f"{record.get('type')} block requires a string {name!r}")
    return value


def _require_int(record: dict, name: str) -> int:
    value = record.get(name)
    if not isinstance(value, int) or isinstance(value, bool):
        raise DecodeError(f"page response has no integer {name!r}")
    return value


def _optional_str(value) -> str | None:
    if value is None:
        return None
    return str(value)


def _serialized(value) -> str:
    """Structured payloads are kept whole as JSON text."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False)


def _ms_to_datetime(ms: float) -> datetime | None:
    """Convert millisecond timestamp to datetime, or None."""
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (ValueError, OSError, OverflowError):
        return None

"""Uniform root/subagent view over a project's session listing.

Some tools answer a session query with flat sessions, others with groups
already split into a root and its subagents. The builder only detects which
shape came back; it never decides membership itself and never re-sorts.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from .core import Session, SessionGroup
from .errors import DecodeError
from .provider import ToolAdapter

logger = logging.getLogger(__name__)

GROUP_MARKER = "rootSession"


@dataclass(frozen=True)
class SessionTree:
    """Session groups of one project, in backend order."""

    groups: tuple[SessionGroup, ...] = ()
    grouped: bool = False  # True when the backend returned pre-grouped records

    def __iter__(self) -> Iterator[SessionGroup]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def sessions(self) -> list[Session]:
        """All sessions flattened: each root followed by its subagents."""
        flat = []
        for group in self.groups:
            flat.append(group.root)
            flat.extend(group.subagents)
        return flat

    def find(self, session_id: str) -> Session | None:
        for session in self.sessions():
            if session.session_id == session_id:
                return session
        return None

    def group_of(self, session_id: str) -> SessionGroup | None:
        """Return the group a session belongs to, as root or subagent."""
        for group in self.groups:
            if session_id in group.session_ids:
                return group
        return None


def is_grouped_record(record) -> bool:
    return isinstance(record, dict) and GROUP_MARKER in record


def build_session_tree(records: Iterable[dict], adapter: ToolAdapter) -> SessionTree:
    """Build a SessionTree from a backend session listing.

    Flat listings become one group per session with no subagents. Grouped
    listings are taken as authoritative. A record that does not decode is
    skipped and logged; a group whose root does not decode is skipped whole.
    Raises DecodeError when the shapes are mixed or a session id shows up in
    more than one place.
    """
    records = list(records)
    if not records:
        return SessionTree(groups=(), grouped=adapter.groups_sessions)

    markers = {is_grouped_record(r) for r in records}
    if len(markers) > 1:
        raise DecodeError("session listing mixes grouped and flat records")
    grouped = markers.pop()

    decode = _decode_group if grouped else _decode_flat
    groups = []
    for index, record in enumerate(records):
        try:
            groups.append(decode(record, adapter))
        except DecodeError as e:
            logger.warning("Skipping session record %d: %s", index, e)
    groups = tuple(groups)

    seen: set[str] = set()
    for group in groups:
        for session_id in group.session_ids:
            if session_id in seen:
                raise DecodeError(f"session {session_id} appears in more than one group")
            seen.add(session_id)

    logger.debug("Built session tree: %d roots, grouped=%s", len(groups), grouped)
    return SessionTree(groups=groups, grouped=grouped)


@dataclass(frozen=True)
class ExpandedGroups:
    """Which root sessions the user has expanded. Display state only."""

    root_ids: frozenset[str] = frozenset()

    def is_expanded(self, root_id: str) -> bool:
        return root_id in self.root_ids

    def toggle(self, root_id: str) -> "ExpandedGroups":
        if root_id in self.root_ids:
            return ExpandedGroups(self.root_ids - {root_id})
        return ExpandedGroups(self.root_ids | {root_id})


# ── Private helpers ──────────────────────────────────────────────


def _decode_flat(record: dict, adapter: ToolAdapter) -> SessionGroup:
    return SessionGroup(root=adapter.decode_session(record))


def _decode_group(record: dict, adapter: ToolAdapter) -> SessionGroup:
    root = adapter.decode_session(record[GROUP_MARKER])
    raw_subs = record.get("subSessions") or []
    if not isinstance(raw_subs, list):
        raise DecodeError(f"subSessions of {root.session_id} is not a list")

    subagents = []
    for index, raw in enumerate(raw_subs):
        try:
            subagents.append(adapter.decode_session(raw))
        except DecodeError as e:
            logger.warning("Skipping subagent %d of %s: %s", index, root.session_id, e)
    return SessionGroup(root=root, subagents=tuple(subagents))

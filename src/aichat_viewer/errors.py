"""Exception types for aichat-viewer.

Three failure families reach the core: the backend query interface failed,
a response did not match the canonical schema, or a navigation key could not
be resolved. Store intents catch all of them and turn them into state.
"""


class ViewerError(Exception):
    """Base class for all aichat-viewer errors."""


class BackendError(ViewerError):
    """A backend query failed (transport error or non-success response)."""

    def __init__(self, operation: str, detail: str, status_code: int | None = None):
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        prefix = f"{operation} failed"
        if status_code is not None:
            prefix += f" ({status_code})"
        super().__init__(f"{prefix}: {detail}")


class DecodeError(ViewerError):
    """A backend record does not match the expected canonical schema."""


class ResolutionError(ViewerError):
    """A tool name or navigation key does not resolve to anything known."""

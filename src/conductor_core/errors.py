"""Error kinds raised by the Conductor core.

Every failure that can reach a tool caller is a ConductorError carrying a
stable ``kind`` string:
- invalid-argument: missing/mistyped field, size limit exceeded, bad template name
- invalid-path: path rejected by the path validator
- rate-limited: a rate-limit bucket is empty
- io-error: path is valid but the file cannot be read
- timeout: a per-call deadline fired
- internal: embedded resource defect or invariant violation

The MCP dispatcher is the only place these are turned into tool results.
"""
from typing import Optional


class ConductorError(Exception):
    """Base class for all domain errors surfaced to tool callers."""

    kind = "internal"

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class InvalidArgumentError(ConductorError):
    """Raised when a tool argument is missing, mistyped or out of bounds."""

    kind = "invalid-argument"


class InvalidPathError(InvalidArgumentError):
    """Raised when a user-supplied path fails validation."""

    kind = "invalid-path"


class RateLimitedError(ConductorError):
    """Raised when a rate-limit bucket has no tokens left."""

    kind = "rate-limited"


class WorkflowIOError(ConductorError):
    """Raised when a validated path cannot be read."""

    kind = "io-error"


class DeadlineExceededError(ConductorError):
    """Raised when a per-call deadline fires inside a handler."""

    kind = "timeout"

    def __init__(self, seconds: float):
        super().__init__(f"deadline exceeded after {format_duration(seconds)}")
        self.seconds = seconds


class InternalError(ConductorError):
    """Raised for build defects and broken invariants."""

    kind = "internal"


class TemplateError(InvalidArgumentError):
    """Raised for unknown templates, rejected names and failed renders."""


class WorkflowParseError(Exception):
    """Raised by the workflow definition parser.

    Not a ConductorError: callers decide whether a parse failure is a
    diagnostic (validator) or a tool error (planner).
    """

    def __init__(self, message: str, field: Optional[str] = None, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.suggestion = suggestion


def format_duration(seconds: float) -> str:
    """Render a deadline as 30s / 5m / 30m style text."""
    seconds = int(seconds)
    if seconds >= 60 and seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"

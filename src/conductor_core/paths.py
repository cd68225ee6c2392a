"""Path validation for workflow files supplied by tool callers.

A path is accepted only if:
- it is non-empty
- it contains no '..' (checked on the raw string, before normalization)
- its resolved location lies in the current working directory or in one of
  the directories listed in CONDUCTOR_ALLOWED_PATHS

Symlinks are resolved before the containment check; resolution is skipped
only when the target does not exist yet.
"""
import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from .errors import InvalidPathError

logger = logging.getLogger("conductor.core.paths")

ALLOWED_PATHS_ENV = "CONDUCTOR_ALLOWED_PATHS"


def _resolve(path: str) -> str:
    absolute = os.path.abspath(path)
    try:
        return str(Path(absolute).resolve(strict=True))
    except FileNotFoundError:
        return absolute
    except (OSError, RuntimeError):
        # Symlink loops and similar cannot be placed reliably
        raise InvalidPathError("invalid path: path cannot be resolved") from None


def is_within(path: str, directory: str) -> bool:
    """True if ``path`` equals ``directory`` or lies beneath it.

    The separator is part of the prefix, so /foobar is not within /foo.
    """
    if path == directory:
        return True
    prefix = directory if directory.endswith(os.sep) else directory + os.sep
    return path.startswith(prefix)


def env_allowed_paths() -> list[str]:
    """Absolute directories from CONDUCTOR_ALLOWED_PATHS, in order."""
    raw = os.getenv(ALLOWED_PATHS_ENV, "")
    entries = []
    for entry in raw.split(os.pathsep):
        entry = entry.strip()
        if not entry:
            continue
        if not os.path.isabs(entry):
            logger.debug(f"Ignoring relative {ALLOWED_PATHS_ENV} entry")
            continue
        entries.append(entry)
    return entries


def allowed_directories(
    cwd: Optional[str] = None,
    allowed_paths: Optional[Iterable[str]] = None
) -> list[str]:
    """Resolved directories a workflow path may live in."""
    base = cwd if cwd is not None else os.getcwd()
    extra = list(allowed_paths) if allowed_paths is not None else env_allowed_paths()
    return [_resolve(base)] + [_resolve(entry) for entry in extra]


def validate_path(
    path: str,
    cwd: Optional[str] = None,
    allowed_paths: Optional[Iterable[str]] = None
) -> Path:
    """Validate a caller-supplied path and return its resolved location.

    Relative paths are interpreted against ``cwd`` (default: the process CWD).

    Raises:
        InvalidPathError: If any rule is violated
    """
    if not path:
        raise InvalidPathError("invalid path: path is required")

    if ".." in path:
        raise InvalidPathError("invalid path: path traversal ('..') is not allowed")

    base = cwd if cwd is not None else os.getcwd()
    candidate = path if os.path.isabs(path) else os.path.join(base, path)
    real = _resolve(candidate)

    for directory in allowed_directories(base, allowed_paths):
        if is_within(real, directory):
            return Path(real)

    raise InvalidPathError(
        "invalid path: path is outside the allowed directories "
        f"(current directory or {ALLOWED_PATHS_ENV})"
    )

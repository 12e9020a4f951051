"""
Per-session working directories and path resolution.

Each session (agent, or agent + conversation) has its own current
directory, defaulting to the process working directory. Relative paths
given to tools resolve against it.
"""

import difflib
import os
from pathlib import Path

from toolrun.errors import FileAccessError, PathNotFoundError


def normalize_raw_path(raw: str) -> str:
    """
    Undo the quoting and escaping models often add to paths.

    '"Application Support"' and 'Application\\ Support' both become
    'Application Support'; a leading ~ expands to the home directory.
    """
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        text = text[1:-1]

    if text == "~" or text.startswith("~/"):
        text = str(Path.home()) + text[1:]

    out = []
    chars = iter(text)
    for ch in chars:
        if ch == "\\":
            out.append(next(chars, ""))
        else:
            out.append(ch)
    return "".join(out)


class PathResolver:
    """
    Tracks the current directory of every session.

    Usage:
        paths = PathResolver()
        paths.set_cwd(ctx.session_key, "/tmp/project")
        target = paths.resolve_path(ctx.session_key, "src/main.py")
    """

    def __init__(self, default_cwd: str | Path | None = None) -> None:
        self._default_cwd = str(default_cwd) if default_cwd is not None else None
        self._cwd_by_key: dict[str, str] = {}

    def get_cwd(self, key: str) -> str:
        """Current directory of a session (process cwd if never set)."""
        return self._cwd_by_key.get(key) or self._default_cwd or os.getcwd()

    def set_cwd(self, key: str, path: str) -> str:
        """
        Change a session's current directory.

        Raises:
            PathNotFoundError: If the target does not exist
            FileAccessError: If the target is not a directory
        """
        target = self.resolve_path(key, path)
        if not os.path.isdir(target):
            raise FileAccessError(path=target, message=f"Not a directory: {target}")
        self._cwd_by_key[key] = target
        return target

    def resolve_path(self, key: str, raw: str, skip_existence_check: bool = False) -> str:
        """
        Resolve a raw path against the session's directory.

        Args:
            key: Session key
            raw: Path as given by the caller
            skip_existence_check: Return the path even if nothing is there

        Returns:
            Normalized absolute path

        Raises:
            PathNotFoundError: If the path does not exist and the check is on
        """
        base = self.get_cwd(key)
        normalized = normalize_raw_path(raw)
        resolved = os.path.normpath(os.path.join(base, normalized))

        if skip_existence_check or os.path.lexists(resolved):
            return resolved

        raise PathNotFoundError(path=resolved, suggestion=self._suggest(resolved))

    @staticmethod
    def _suggest(missing: str) -> str | None:
        parent, name = os.path.split(missing)
        try:
            siblings = os.listdir(parent)
        except OSError:
            return None
        close = difflib.get_close_matches(name, siblings, n=3, cutoff=0.6)
        if not close:
            return None
        return "Did you mean: " + ", ".join(os.path.join(parent, c) for c in close) + "?"

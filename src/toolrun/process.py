"""
External process execution for search backends.

Security Note:
    - Commands are passed as an argument list to create_subprocess_exec;
      no shell is involved, so arguments are never re-parsed
    - Children receive a sanitized environment without credentials
    - Every call has a timeout; on expiry the child is killed

The ToolAvailabilityCache remembers which binaries answered a
`--version` probe so that each one is probed at most once.
"""

import asyncio
import os
import re
from dataclasses import dataclass
from typing import Mapping

# Exit status reported when a process is killed for exceeding its timeout
TIMEOUT_EXIT_CODE = 124

# Exit status reported when a process could not be started at all
SPAWN_FAILURE_EXIT_CODE = 127

SENSITIVE_ENV_RE = re.compile(r"API|KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL|AUTH", re.IGNORECASE)


def create_sanitized_env(overrides: Mapping[str, str | None] | None = None) -> dict[str, str]:
    """
    Build the environment for a child process.

    Starts from a fixed baseline (PATH, HOME, locale, TERM, pager settings),
    applies overrides, then adds every other ambient variable except those
    whose names look like credentials or start with SSH_.
    """
    env = os.environ
    base: dict[str, str | None] = {
        "PATH": env.get("PATH", "/usr/local/bin:/usr/bin:/bin"),
        "HOME": env.get("HOME"),
        "USER": env.get("USER"),
        "LOGNAME": env.get("LOGNAME") or env.get("USER") or "toolrun",
        "SHELL": env.get("SHELL", "/bin/sh"),
        "LANG": env.get("LANG", "en_US.UTF-8"),
        "LC_ALL": env.get("LC_ALL", "C"),
        "LC_CTYPE": env.get("LC_CTYPE", "UTF-8"),
        "TERM": env.get("TERM", "xterm-256color"),
        "PWD": os.getcwd(),
        "TMPDIR": env.get("TMPDIR", "/tmp"),
        "XDG_RUNTIME_DIR": env.get("XDG_RUNTIME_DIR"),
        "GIT_PAGER": env.get("GIT_PAGER", "cat"),
        "GIT_TERMINAL_PROMPT": "0",
    }
    base.update(overrides or {})

    for key, value in env.items():
        if key in base or key.startswith("SSH_") or SENSITIVE_ENV_RE.search(key):
            continue
        base[key] = value

    return {key: value for key, value in base.items() if value is not None}


@dataclass(frozen=True)
class ProcessResult:
    """
    Collected output of a finished process.

    Attributes:
        stdout: Standard output, decoded and stripped
        stderr: Standard error, decoded and stripped
        exit_code: Exit status (124 on timeout, 127 if it never started)
        timed_out: Whether the process was killed for exceeding its timeout
    """

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """Exit 0 (matches) or 1 (no matches) for search tools."""
        return not self.timed_out and self.exit_code in (0, 1)


async def run_process(
    cmd: str,
    args: list[str],
    cwd: str | None = None,
    timeout: float = 30.0,
    env: Mapping[str, str] | None = None,
) -> ProcessResult:
    """
    Run a command and collect its output.

    Never raises for process-level failures: a missing binary or spawn
    error becomes exit code 127, a timeout becomes exit code 124.

    Args:
        cmd: Executable name or path
        args: Arguments, passed without shell interpretation
        cwd: Working directory
        timeout: Seconds before the process is killed
        env: Environment (defaults to create_sanitized_env())
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            cmd,
            *args,
            cwd=cwd,
            env=dict(env) if env is not None else create_sanitized_env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return ProcessResult(stdout="", stderr=str(e), exit_code=SPAWN_FAILURE_EXIT_CODE)

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return ProcessResult(
            stdout="",
            stderr=f"{cmd} timed out after {timeout}s",
            exit_code=TIMEOUT_EXIT_CODE,
            timed_out=True,
        )

    return ProcessResult(
        stdout=stdout.decode("utf-8", errors="replace").strip(),
        stderr=stderr.decode("utf-8", errors="replace").strip(),
        exit_code=proc.returncode if proc.returncode is not None else 1,
    )


class ToolAvailabilityCache:
    """
    Remembers whether external binaries can be run.

    A binary is probed with `<name> --version` the first time it is
    asked about; exit 0 means available. The answer, positive or
    negative, is kept for the life of the cache.
    """

    def __init__(self, probe_timeout: float = 5.0) -> None:
        self.probe_timeout = probe_timeout
        self._available: dict[str, bool] = {}

    async def is_available(self, name: str, version_flag: str = "--version") -> bool:
        cached = self._available.get(name)
        if cached is not None:
            return cached
        result = await run_process(name, [version_flag], timeout=self.probe_timeout)
        available = result.exit_code == 0 and not result.timed_out
        self._available.setdefault(name, available)
        return self._available[name]

    def set(self, name: str, available: bool) -> None:
        """Record an answer without probing."""
        self._available[name] = available

    def snapshot(self) -> dict[str, bool]:
        """Answers known so far."""
        return dict(self._available)

"""
Helpers for running native package-manager tools.

Every native invocation happens inside a fresh temporary directory holding a
copy of the dependency files, with an environment built from an allow-list
plus explicit credentials. Failures are translated into domain errors at
this boundary.
"""

import os
import re
import subprocess
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .dependency import DependencyFile
from .error_handling import log_credential_error, sanitize_message
from .errors import PrivateSourceNotReachable, ResolutionFailed, SourceUnreachable
from .structured_logging import get_resolver_logger

# Maximum size of captured stderr kept on an error
MAX_OUTPUT_BYTES = 102400

AMBIENT_ENV_ALLOWLIST = ("PATH", "LANG", "LC_ALL", "TMPDIR", "SYSTEMROOT")

AUTH_FAILURE_PATTERNS = [
    re.compile(r"terminal prompts disabled"),
    re.compile(r"\b401\b"),
    re.compile(r"\b403\b"),
    re.compile(r"Not authorized", re.IGNORECASE),
    re.compile(r"Authentication failed", re.IGNORECASE),
    re.compile(r"could not read Username"),
]
SOURCE_PATTERN = re.compile(r"(?:https?://)?(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,}(?:/[^\s'\":@]*)?")


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a successful command."""

    stdout: str
    stderr: str
    returncode: int


def truncate_output(output: str, max_bytes: int = MAX_OUTPUT_BYTES) -> str:
    """Truncate output to max bytes, preserving valid UTF-8."""
    encoded = output.encode("utf-8")
    if len(encoded) <= max_bytes:
        return output
    return encoded[:max_bytes].decode("utf-8", errors="ignore") + "\n... [output truncated]"


def build_environment(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Subprocess environment from the ambient allow-list plus ``extra``."""
    env = {key: os.environ[key] for key in AMBIENT_ENV_ALLOWLIST if key in os.environ}
    env.update(extra or {})
    return env


@contextmanager
def in_a_temporary_directory(files: Sequence[DependencyFile]) -> Iterator[Path]:
    """
    Write ``files`` into a fresh temporary directory and yield its path.

    The directory is removed on every exit path.

    Raises:
        ValueError: If a file path would escape the directory
    """
    with tempfile.TemporaryDirectory(prefix="dep-updater-") as tmp:
        root = Path(tmp).resolve()
        for dependency_file in files:
            target = (root / dependency_file.path.lstrip("/")).resolve()
            if root not in target.parents:
                raise ValueError(f"Refusing to write outside the working directory: {dependency_file.path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(dependency_file.content, encoding="utf-8")
        yield root


def run_subprocess(
    command: List[str],
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run a native tool with a bounded timeout.

    Args:
        command: Argument list (never passed through a shell)
        cwd: Working directory
        env: Complete environment for the process
        timeout: Seconds before the process is killed

    Returns:
        CommandResult: Output of a zero-exit run

    Raises:
        ResolutionFailed: On non-zero exit or a missing executable
        SourceUnreachable: On timeout
    """
    logger = get_resolver_logger()
    logger.debug("subprocess_started", command=command[0], arguments=len(command) - 1)

    try:
        process = subprocess.run(
            command,
            cwd=str(cwd),
            env=env if env is not None else build_environment(),
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise SourceUnreachable(command[0], f"timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise ResolutionFailed(f"Command not found: {command[0]}", command) from e

    stdout = process.stdout.decode("utf-8", errors="replace")
    stderr = process.stderr.decode("utf-8", errors="replace")
    if process.returncode != 0:
        logger.debug("subprocess_failed", command=command[0], returncode=process.returncode)
        message = sanitize_message(truncate_output(stderr.strip() or stdout.strip()))
        raise ResolutionFailed(message or f"{command[0]} exited with {process.returncode}", command)

    return CommandResult(stdout=stdout, stderr=stderr, returncode=process.returncode)


def is_auth_failure(message: str) -> bool:
    return any(pattern.search(message) for pattern in AUTH_FAILURE_PATTERNS)


def raise_for_private_source(error: ResolutionFailed) -> None:
    """
    Re-raise an authentication failure as ``PrivateSourceNotReachable``.

    Returns normally when the failure is not credential related.
    """
    message = str(error)
    if not is_auth_failure(message):
        return
    log_credential_error(
        "Private source rejected credentials", "native_helpers", "raise_for_private_source",
        credential_type="git_source", exception=error,
    )
    for line in message.splitlines():
        if is_auth_failure(line):
            match = SOURCE_PATTERN.search(line)
            if match:
                raise PrivateSourceNotReachable(match.group(0)) from error
    raise PrivateSourceNotReachable(None) from error

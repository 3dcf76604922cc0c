"""
Structured logging configuration for dep-updater.

Provides consistent, machine-readable events for each stage of an update run:
parsing, registry lookups, native resolution, update decisions and file edits.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


# Ecosystem and dependency of the update run executing in the current context
_run_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("dep_updater_run_context", default=None)


class UpdateLogger:
    """Structured logger for one component of the update pipeline."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"dep_updater.{name}")
        self._setup_logger()

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **(_run_context.get() or {}), **kwargs}
        getattr(self.logger, level)(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log("debug", event_type, **kwargs)


_parser_logger = UpdateLogger("parser")
_checker_logger = UpdateLogger("update_checker")
_registry_logger = UpdateLogger("registry")
_resolver_logger = UpdateLogger("resolver")
_file_updater_logger = UpdateLogger("file_updater")

_ALL_LOGGERS: List[UpdateLogger] = [
    _parser_logger,
    _checker_logger,
    _registry_logger,
    _resolver_logger,
    _file_updater_logger,
]


def get_parser_logger() -> UpdateLogger:
    return _parser_logger


def get_checker_logger() -> UpdateLogger:
    return _checker_logger


def get_resolver_logger() -> UpdateLogger:
    return _resolver_logger


def get_file_updater_logger() -> UpdateLogger:
    return _file_updater_logger


def log_dependencies_parsed(
    ecosystem: str, file_names: List[str], total_dependencies: int, top_level: int
) -> None:
    """Log the outcome of a file parse."""
    _parser_logger.info(
        "dependencies_parsed",
        ecosystem=ecosystem,
        files=file_names,
        total_dependencies=total_dependencies,
        top_level_dependencies=top_level,
    )


def log_registry_lookup(
    package_name: str,
    registry: str,
    versions_found: int,
    response_time_ms: Optional[float] = None,
    cached: bool = False,
) -> None:
    """Log a version listing from a registry."""
    log_data: Dict[str, Any] = {
        "package_name": package_name,
        "registry": registry,
        "versions_found": versions_found,
        "cached": cached,
    }
    if response_time_ms is not None:
        log_data["response_time_ms"] = response_time_ms

    if versions_found == 0:
        _registry_logger.warning("package_not_found_in_registry", **log_data)
    else:
        _registry_logger.debug("registry_lookup_completed", **log_data)


def log_resolution_attempt(
    dependency_name: str, candidate_version: str, succeeded: bool, unlock: bool = True
) -> None:
    """Log one native resolver attempt for a candidate version."""
    event = "resolution_succeeded" if succeeded else "resolution_failed"
    _resolver_logger.info(
        event,
        dependency=dependency_name,
        candidate_version=candidate_version,
        unlock_requirement=unlock,
    )


def log_update_check(
    dependency_name: str,
    status: str,
    current_version: Optional[str],
    latest_version: Optional[str] = None,
    resolvable_version: Optional[str] = None,
    **kwargs,
) -> None:
    """Log the decision made by an update checker."""
    _checker_logger.info(
        "update_checked",
        dependency=dependency_name,
        status=status,
        current_version=current_version,
        latest_version=latest_version,
        resolvable_version=resolvable_version,
        **kwargs,
    )


def log_files_updated(dependency_names: List[str], changed_files: List[str]) -> None:
    """Log which files a file updater rewrote."""
    _file_updater_logger.info(
        "files_updated",
        dependencies=dependency_names,
        changed_files=changed_files,
    )


def set_run_context(
    ecosystem: Optional[str] = None, dependency_name: Optional[str] = None
) -> Token:
    """
    Attach an ecosystem/dependency to every event logged in the current context.

    Threads and asyncio tasks each see their own context, so parallel runs
    never tag each other's events. Returns the token ``run_context`` uses to
    restore the previous value.
    """
    context: Dict[str, Any] = {}
    if ecosystem:
        context["ecosystem"] = ecosystem
    if dependency_name:
        context["dependency"] = dependency_name
    return _run_context.set(context)


def clear_run_context() -> None:
    _run_context.set(None)


@contextmanager
def run_context(
    ecosystem: Optional[str] = None, dependency_name: Optional[str] = None
) -> Iterator[None]:
    """Scope a run context to a block, restoring the enclosing one afterwards."""
    token = set_run_context(ecosystem, dependency_name)
    try:
        yield
    finally:
        _run_context.reset(token)


def configure_logging(log_level: str = "WARNING") -> None:
    """Apply a log level to every component logger."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)

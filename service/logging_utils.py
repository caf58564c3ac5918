# service/logging_utils.py
from __future__ import annotations

import contextlib
import datetime as _dt
import json
import os
import socket
from collections.abc import Iterable
from typing import Any

# ---- Configuration (env-driven, read per write so tests can redirect) -------
#   LOG_DIR                 base directory (default /app/local/logs)
#   ACTIVITY_LOG_PREFIX     file prefix for activity records (default "activity")
#   ERROR_LOG_PREFIX        file prefix for error records (default "error")
#   ACTIVITY_LOG_MAX_BYTES  size-based rotation threshold; <=0 disables
#   LOG_DISABLE             "1" turns every write into a no-op

_DEFAULT_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "cookie",
    "set-cookie",
}

_HOSTNAME = socket.gethostname()
_PID = os.getpid()


# ---- Public API --------------------------------------------------------------


def write_activity_log(record: dict[str, Any]) -> None:
    """
    Append one structured activity record as a JSON line.

    May raise on unrecoverable I/O/serialization errors.
    Never mutates the passed-in dict.
    """
    _write_jsonl(_log_path_for_today(_prefix("ACTIVITY_LOG_PREFIX", "activity")), record)


def write_error_log(record: dict[str, Any]) -> None:
    """Append one structured error record, parallel to the activity log."""
    _write_jsonl(_log_path_for_today(_prefix("ERROR_LOG_PREFIX", "error")), record)


def get_activity_log_path() -> str:
    """Return the current day's activity log path (<prefix>-YYYY-MM-DD.jsonl)."""
    return _log_path_for_today(_prefix("ACTIVITY_LOG_PREFIX", "activity"))


def redact(record: dict[str, Any], keys: set[str] | None = None) -> dict[str, Any]:
    """
    Redacted deep copy of `record`: values whose KEYS contain any of `keys`
    (case-insensitive substring) become "***REDACTED***".
    """
    return _redact_deep(record, keys or _DEFAULT_REDACT_KEYS)


# ---- Internal helpers --------------------------------------------------------


def _disabled() -> bool:
    return os.getenv("LOG_DISABLE", "").strip().lower() in {"1", "true", "yes", "on"}


def _prefix(env_name: str, default: str) -> str:
    return os.getenv(env_name) or default


def _log_path_for_today(prefix: str) -> str:
    today = _dt.date.today().isoformat()
    return os.path.join(os.getenv("LOG_DIR", "/app/local/logs"), f"{prefix}-{today}.jsonl")


def _max_bytes() -> int:
    try:
        return int(os.getenv("ACTIVITY_LOG_MAX_BYTES", "0"))
    except ValueError:
        return 0


def _rotate_file_if_needed(path: str) -> None:
    limit = _max_bytes()
    if limit <= 0:
        return
    try:
        if os.path.getsize(path) < limit:
            return
    except FileNotFoundError:
        return
    ts = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    with contextlib.suppress(FileNotFoundError):
        os.replace(path, f"{path}.{ts}")


def _key_matches(name: str, patterns: Iterable[str]) -> bool:
    n = name.lower()
    return any(pat in n for pat in patterns)


def _redact_deep(value: Any, patterns: Iterable[str]) -> Any:
    if isinstance(value, dict):
        return {
            k: "***REDACTED***" if isinstance(k, str) and _key_matches(k, patterns) else _redact_deep(v, patterns)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact_deep(v, patterns) for v in value]
    if isinstance(value, str) and value.lower().startswith("bearer "):
        return "Bearer ***REDACTED***"
    return value


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    """
    Redact, stamp with host/pid/ts, then append one line with O_APPEND.
    Retries once on OSError after re-creating the directory.
    """
    if _disabled():
        return

    payload = dict(_redact_deep(record, _DEFAULT_REDACT_KEYS))
    payload["_meta"] = {"host": _HOSTNAME, "pid": _PID, "ts": _dt.datetime.now(_dt.timezone.utc).isoformat()}
    # default=str keeps enums/paths serializable
    data = (json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str) + "\n").encode("utf-8")

    def _append_once() -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        _rotate_file_if_needed(path)
        fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o644)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)

    try:
        _append_once()
    except OSError:
        _append_once()

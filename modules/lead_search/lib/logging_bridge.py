from __future__ import annotations

import logging
from typing import Any

from service import logging_utils as _backend

# Top-level keys redacted before anything leaves this module
_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "auth",
    "bearer",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    redacted = dict(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret") or lk.endswith("_key"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record to the JSONL activity log.
    Falls back to stdlib logging if the file write fails.
    """
    payload = _redact_record(record)
    try:
        _backend.write_activity_log(payload)
        return
    except Exception:
        logging.getLogger("lead_search.activity").debug("activity log write failed", exc_info=True)
    logging.getLogger("lead_search.activity").info(payload)


def warning(record: dict[str, Any]) -> None:
    """Non-fatal problems (dropped postings, unsupported platforms): activity log + stdlib warning."""
    payload = {**_redact_record(record), "level": "warning"}
    try:
        _backend.write_activity_log(payload)
    except Exception:
        logging.getLogger("lead_search.activity").debug("activity log write failed", exc_info=True)
    logging.getLogger("lead_search.warning").warning(payload)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record to the JSONL error log.
    Falls back to stdlib logging if the file write fails.
    """
    payload = _redact_record(record)
    try:
        _backend.write_error_log(payload)
        return
    except Exception:
        logging.getLogger("lead_search.error").debug("error log write failed", exc_info=True)
    logging.getLogger("lead_search.error").error(payload)

from __future__ import annotations

import hashlib
import os
import re
from datetime import datetime, timezone
from typing import Any

_WS_RE = re.compile(r"\s+")


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def getenv_str(name: str | None, default: str | None = None) -> str | None:
    """
    Typed wrapper for environment access. Empty values count as unset.
    """
    if not name:
        return default
    val = os.getenv(name)
    return val if val not in (None, "") else default


def squash(s: Any) -> str:
    """Collapse runs of whitespace; None -> ''."""
    if s is None:
        return ""
    return _WS_RE.sub(" ", str(s)).strip()


def clip(s: str, limit: int) -> str:
    """Trim to `limit` chars, ending with an ellipsis when cut."""
    if limit <= 0 or len(s) <= limit:
        return s
    return s[: max(limit - 1, 0)].rstrip() + "…"


def short_hash(s: str, length: int = 16) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()[:length]

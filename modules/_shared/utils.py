# modules/_shared/utils.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

log = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


def _get_float_env(name: str | None, default: float) -> float:
    if not name:
        return default
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Invalid float in %s=%r; using default %s", name, raw, default)
        return default


@dataclass(frozen=True)
class ChatReply:
    text: str
    tokens_used: int


@dataclass
class OpenAIChat:
    """
    Thin facade over openai.chat.completions with:
      - model loaded from env via `model_env` (falls back to DEFAULT_MODEL)
      - temperature from `temp_env` (falls back to `temperature`)
      - API key from `api_key_env`; `configured` tells whether it is set
    """

    model_env: str
    temp_env: str
    api_key_env: str = "OPENAI_API_KEY"
    temperature: float = 0.3

    @property
    def configured(self) -> bool:
        return bool(os.getenv(self.api_key_env))

    def complete(self, system_msg: str, user_msg: str, *, max_tokens: int) -> ChatReply:
        from openai import OpenAI  # local import to keep tests light

        api_key = os.getenv(self.api_key_env)
        if not api_key:
            raise RuntimeError(f"{self.api_key_env} not set")
        model = os.getenv(self.model_env) or DEFAULT_MODEL
        temp = _get_float_env(self.temp_env, self.temperature)

        log.debug("OpenAIChat.complete(model=%r, temperature=%s, max_tokens=%d)", model, temp, max_tokens)
        client = OpenAI(api_key=api_key)
        resp = client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system_msg}, {"role": "user", "content": user_msg}],
            temperature=temp,
            max_tokens=max_tokens,
        )
        content = (resp.choices[0].message.content or "").strip()
        usage = getattr(resp, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0)
        log.debug("OpenAIChat.complete() received %d chars, %d tokens", len(content), tokens)
        return ChatReply(text=content, tokens_used=tokens)

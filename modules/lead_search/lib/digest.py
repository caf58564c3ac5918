from __future__ import annotations

from modules._shared.utils import OpenAIChat

from . import logging_bridge
from .config import Settings
from .models import AggregationResult, Digest
from .utils import clip

DIGEST_SNIPPET_CHARS = 240

_SYSTEM = (
    "You help job seekers scan local job leads gathered from social media. "
    "Write a short digest: the main kinds of roles on offer, notable employers or groups, "
    "and any application details that stand out. Mention which platform a lead came from "
    "when useful. Do not invent details that are not in the leads. Plain text, at most two "
    "short paragraphs or a few bullet points."
)


class SummarizationUnavailable(RuntimeError):
    """The digest stage cannot run (not configured, nothing to summarize, or upstream error)."""


class DigestGenerator:
    """
    Optional second stage: condense a ranked AggregationResult into a Digest.

    Only the top `digest_top_k` results are forwarded, as title/platform/snippet
    lines, and forwarding stops once `digest_max_source_chars` is reached.
    The completion is capped at `digest_max_tokens`.
    """

    def __init__(self, settings: Settings, chat: OpenAIChat | None = None) -> None:
        self.settings = settings
        self.chat = chat or OpenAIChat(
            model_env=settings.openai_model_env,
            temp_env=settings.openai_temp_env,
            api_key_env=settings.openai_api_key_env,
        )

    @property
    def available(self) -> bool:
        return self.settings.enable_digest and self.chat.configured

    def build_source_text(self, result: AggregationResult) -> str:
        budget = self.settings.digest_max_source_chars
        lines: list[str] = []
        used = 0
        for i, r in enumerate(result.results[: self.settings.digest_top_k], start=1):
            line = f"{i}. [{r.platform}] {r.title}"
            if r.snippet:
                line += f" | {clip(r.snippet, DIGEST_SNIPPET_CHARS)}"
            if lines and used + len(line) + 1 > budget:
                break
            line = clip(line, budget)
            lines.append(line)
            used += len(line) + 1
        return "\n".join(lines)

    def summarize(self, result: AggregationResult, *, query: str, location: str) -> Digest:
        if not self.settings.enable_digest:
            raise SummarizationUnavailable("digest disabled")
        if not self.chat.configured:
            raise SummarizationUnavailable(f"{self.settings.openai_api_key_env} not set")
        if not result.results:
            raise SummarizationUnavailable("no results to summarize")

        source = self.build_source_text(result)
        n_items = len(source.splitlines())
        user = (
            f"Search: {query!r} near {location!r}.\n"
            f"Top {n_items} leads, best match first:\n{source}"
        )
        try:
            reply = self.chat.complete(_SYSTEM, user, max_tokens=self.settings.digest_max_tokens)
        except Exception as e:
            logging_bridge.error({
                "component": "lead_search.digest",
                "op": "summarize",
                "error": repr(e),
            })
            raise SummarizationUnavailable(repr(e)) from e

        if not reply.text:
            raise SummarizationUnavailable("empty completion")

        logging_bridge.activity({
            "component": "lead_search.digest",
            "op": "summarized",
            "items": n_items,
            "source_chars": len(source),
            "usage": reply.tokens_used,
        })
        return Digest(text=reply.text, tokens_used=reply.tokens_used)

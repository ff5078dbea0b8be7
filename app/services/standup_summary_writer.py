from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from app.core.config import Settings, get_settings
from app.services.gemini_summary_client import GeminiSummaryClient
from app.services.standup_models import Standup

logger = logging.getLogger(__name__)

FALLBACK_NOTE = (
    "⚠️ *Note: This is a template-based summary. "
    "Configure GEMINI_API_KEY for AI-powered summaries.*"
)


class TextGenerationClient(Protocol):
    def generate(self, prompt: str) -> str: ...


@dataclass(frozen=True)
class GeneratedSummary:
    text: str
    generated_by_ai: bool


class StandupSummaryWriter:
    """Turns a set of standups into summary text.

    The text-generation client is tried first. Any failure on that path
    (client missing, transport error, empty or malformed output) falls back
    to a deterministic template, so ``write`` always returns text for a
    non-empty standup list.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        text_client: TextGenerationClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.text_client = text_client or self._create_text_client()

    def write(self, standups: Sequence[Standup], *, period_label: str) -> GeneratedSummary:
        if not standups:
            return GeneratedSummary(text="No standups submitted for this period.", generated_by_ai=False)

        logger.info("Generating summary for %s standups period=%s", len(standups), period_label)
        if self.text_client is None:
            logger.warning("Text generation is not configured. Using template summary.")
            return GeneratedSummary(text=build_fallback_summary(standups, period_label), generated_by_ai=False)

        try:
            generated_text = self.text_client.generate(build_prompt(standups, period_label))
        except Exception as exc:
            logger.warning("Text generation failed, using template summary: %s", exc)
            return GeneratedSummary(text=build_fallback_summary(standups, period_label), generated_by_ai=False)

        if not isinstance(generated_text, str) or not generated_text.strip():
            logger.warning("Text generation returned no text, using template summary.")
            return GeneratedSummary(text=build_fallback_summary(standups, period_label), generated_by_ai=False)
        return GeneratedSummary(text=generated_text.strip(), generated_by_ai=True)

    def _create_text_client(self) -> GeminiSummaryClient | None:
        if not self.settings.gemini_api_key.strip():
            return None
        return GeminiSummaryClient(
            api_key=self.settings.gemini_api_key.strip(),
            model=self.settings.gemini_model.strip() or "gemini-1.5-flash",
            timeout_seconds=self.settings.gemini_api_timeout_seconds,
            api_base_url=self.settings.gemini_api_url,
        )


def build_prompt(standups: Sequence[Standup], period_label: str) -> str:
    lines = [
        "You are a helpful assistant that summarizes daily standup meetings. "
        "Please analyze the following team standup updates and provide a concise, "
        "actionable summary. Format the output in a clear, readable way with emojis.",
        "",
        f"Period: {period_label}",
        "",
        "=== TEAM STANDUP ENTRIES ===",
        "",
    ]
    for index, standup in enumerate(standups, start=1):
        lines.append(f"Team Member {index} ({standup.date.isoformat()}):")
        lines.append(f"  Yesterday: {_text_or(standup.yesterday_text, 'Not provided')}")
        lines.append(f"  Today: {_text_or(standup.today_text, 'Not provided')}")
        lines.append(f"  Blockers: {_text_or(standup.blockers_text, 'None')}")
        lines.append("")
    lines.extend(
        [
            "Please provide:",
            "1. 📊 A brief overview (1-2 sentences)",
            "2. ✅ Key accomplishments from yesterday (bullet points)",
            "3. 🎯 Today's focus areas (bullet points)",
            "4. 🚧 Blockers that need attention (if any)",
            "5. 💡 Key insights or recommendations",
            "",
            "Keep the summary concise but comprehensive.",
        ],
    )
    return "\n".join(lines)


def build_fallback_summary(standups: Sequence[Standup], period_label: str) -> str:
    participant_count = len(standups)
    yesterday_items = [standup.yesterday_text for standup in standups if _has_text(standup.yesterday_text)]
    today_items = [standup.today_text for standup in standups if _has_text(standup.today_text)]
    blockers = [standup.blockers_text for standup in standups if _has_text(standup.blockers_text)]

    lines = [
        "=== TEAM STANDUP SUMMARY ===",
        "",
        "📊 **Overview**",
        f"- Total participants: {participant_count}",
        f"- Date: {period_label}",
        "",
        "✅ **Yesterday's Accomplishments**",
        *[f"- {item}" for item in yesterday_items],
        "",
        "🎯 **Today's Plans**",
        *[f"- {item}" for item in today_items],
        "",
    ]
    if blockers:
        lines.append("🚧 **Blockers & Impediments**")
        lines.extend(f"- {blocker}" for blocker in blockers)
    else:
        lines.append("✨ **No blockers reported!**")
    lines.append("")

    if blockers:
        insight = f"facing {len(blockers)} blocker(s)"
    else:
        insight = "running smoothly with no blockers"
    lines.extend(
        [
            "💡 **Key Insights**",
            f"- Team is {insight}",
            f"- {participant_count} team members actively working",
            "",
            FALLBACK_NOTE,
        ],
    )
    return "\n".join(lines)


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def _text_or(value: str | None, default: str) -> str:
    if _has_text(value):
        return str(value)
    return default

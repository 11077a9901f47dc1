"""Claude API wrapper that plans report chapters and writes section prose.

Every call carries its own timeout and a bounded retry with backoff. When the
model cannot deliver (no API key, timeout, API error, unusable output) the
renderer answers from the canned plans and prose in prompts.report instead of
raising, so a report can always be built.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable

import anthropic

from config import settings
from errors import UpstreamError
from prompts.report import (
    SYSTEM_PROMPT,
    build_plan_prompt,
    build_section_prompt,
    fallback_plan,
    fallback_section_prose,
    fallback_section_titles,
)
from schemas.report import ChapterPlan, ReportConfig, SectionContent
from services.text_splitter import clean_generated_text, word_count

logger = logging.getLogger(__name__)

DEFAULT_SECTION_WORDS = 550

PLAN_TOOL = {
    "name": "submit_chapter_plan",
    "description": "Submit the planned chapters of the report with their section titles.",
    "input_schema": {
        "type": "object",
        "properties": {
            "chapters": {
                "type": "array",
                "description": "Chapters in reading order.",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {
                            "type": "string",
                            "description": "Short chapter title in UPPER CASE, without the word CHAPTER or a number.",
                        },
                        "sections": {
                            "type": "array",
                            "description": "Section titles in Title Case, without numbering.",
                            "items": {"type": "string"},
                        },
                    },
                    "required": ["title", "sections"],
                },
            },
        },
        "required": ["chapters"],
    },
}


def _normalize_plan(
    raw: Any, chapter_count: int, sections_per_chapter: int
) -> list[ChapterPlan] | None:
    """Turn tool input into a plan, or None if it has fewer chapters than asked for."""
    if not isinstance(raw, dict):
        return None
    chapters = raw.get("chapters")
    if not isinstance(chapters, list):
        return None

    plan: list[ChapterPlan] = []
    for item in chapters:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title", "") or "").strip().upper()
        if not title:
            continue
        sections = [
            str(s).strip() for s in (item.get("sections") or []) if isinstance(s, str) and s.strip()
        ][:sections_per_chapter]
        if len(sections) < sections_per_chapter:
            for extra in fallback_section_titles(len(plan), title, sections_per_chapter):
                if len(sections) >= sections_per_chapter:
                    break
                if extra not in sections:
                    sections.append(extra)
        plan.append(ChapterPlan(title=title, sections=sections))
        if len(plan) == chapter_count:
            break

    if len(plan) < chapter_count:
        return None
    return plan


class ClaudeContentRenderer:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        retries: int | None = None,
        backoff: float | None = None,
        max_tokens: int | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.api_key = settings.ANTHROPIC_API_KEY if api_key is None else api_key
        self.model = model or settings.ANTHROPIC_MODEL
        self.timeout = settings.CONTENT_TIMEOUT_SECONDS if timeout is None else timeout
        self.retries = settings.CONTENT_RETRIES if retries is None else retries
        self.backoff = settings.CONTENT_BACKOFF_SECONDS if backoff is None else backoff
        self.max_tokens = max_tokens or settings.CONTENT_MAX_TOKENS
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise UpstreamError("ANTHROPIC_API_KEY is not configured")
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def _call(self, what: str, request: Callable[[], Awaitable[Any]]) -> Any | None:
        """Run ``request`` under the per-call timeout with retries; None when all attempts fail."""
        for attempt in range(1 + self.retries):
            try:
                return await asyncio.wait_for(request(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("Claude %s timed out after %.1fs (attempt %d)", what, self.timeout, attempt)
            except Exception as e:
                logger.error("Claude %s API error (attempt %d): %s", what, attempt, e)
            if attempt < self.retries:
                await asyncio.sleep(self.backoff * (2 ** attempt))
        return None

    async def _request_plan(self, config: ReportConfig, chapter_count: int, sections: int) -> Any:
        response = await self._get_client().messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PROMPT,
            tools=[PLAN_TOOL],
            tool_choice={"type": "tool", "name": "submit_chapter_plan"},
            messages=[{"role": "user", "content": build_plan_prompt(config, chapter_count, sections)}],
        )
        for block in response.content:
            if block.type == "tool_use" and block.name == "submit_chapter_plan":
                return block.input
        raise UpstreamError("No tool use block in chapter plan response")

    async def _request_text(self, prompt: str) -> str:
        response = await self._get_client().messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(block.text for block in response.content if block.type == "text")
        if not text.strip():
            raise UpstreamError("Empty content generated")
        return text

    async def plan_chapters(self, config: ReportConfig) -> list[ChapterPlan]:
        chapter_count = config.chapter_count or settings.DEFAULT_CHAPTER_COUNT
        sections = (
            settings.DEFAULT_SECTIONS_PER_CHAPTER
            if config.sections_per_chapter is None
            else config.sections_per_chapter
        )

        if self.configured:
            raw = await self._call(
                "chapter plan", lambda: self._request_plan(config, chapter_count, sections)
            )
            plan = _normalize_plan(raw, chapter_count, sections) if raw is not None else None
            if plan is not None:
                return plan
            logger.warning("Using fallback chapter plan for %r", config.project_title)

        return fallback_plan(config.report_type, chapter_count, sections)

    async def write_section(
        self,
        config: ReportConfig,
        chapter: ChapterPlan,
        chapter_number: int,
        section_title: str,
        section_number: int,
    ) -> SectionContent:
        if self.configured:
            word_target = config.target_word_count or DEFAULT_SECTION_WORDS
            prompt = build_section_prompt(
                config, chapter.title, chapter_number, section_title, section_number, word_target
            )
            text = await self._call(
                f"section {chapter_number}.{section_number}", lambda: self._request_text(prompt)
            )
            cleaned = clean_generated_text(text) if text else ""
            if cleaned:
                return SectionContent(title=section_title, content=cleaned, word_count=word_count(cleaned))
            logger.warning(
                "Using fallback content for section %d.%d %s", chapter_number, section_number, section_title
            )

        prose = fallback_section_prose(section_title, chapter.title, config)
        return SectionContent(
            title=section_title, content=prose, word_count=word_count(prose), fallback=True
        )

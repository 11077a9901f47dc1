"""
Report generation pipeline: drives one job from analyzing to completed/failed.

Percentage bands:
- analyzing    0-15  fixed checkpoints, no external calls
- planning    15-25  one chapter-plan request
- generating  25-90  split evenly across chapters; inside a chapter, section i of S
                     reports start + i/S * (end - start)
- formatting  90-100 document build, then completion at 100

The renderer owns timeouts and fallbacks, so a missing section never aborts the
job. Anything that still escapes (typically a BuildError) turns the job into
failed; nothing is raised to the caller.
"""

import asyncio
import logging
from typing import Protocol

from schemas.job import Artifact, Job, JobPhase
from schemas.report import ChapterContent, ChapterPlan, ReportConfig, SectionContent
from services.job_store import JobStore
from services.progress import advance, mark_completed, mark_failed

logger = logging.getLogger(__name__)

GENERATING_START = 25
GENERATING_END = 90


class ContentRenderer(Protocol):
    async def plan_chapters(self, config: ReportConfig) -> list[ChapterPlan]: ...

    async def write_section(
        self,
        config: ReportConfig,
        chapter: ChapterPlan,
        chapter_number: int,
        section_title: str,
        section_number: int,
    ) -> SectionContent: ...


class DocumentBuilder(Protocol):
    def build(self, config: ReportConfig, chapters: list[ChapterContent]) -> Artifact: ...


class JobDeleted(Exception):
    """The job record disappeared while its pipeline was still running."""


def chapter_band(index: int, total: int) -> tuple[float, float]:
    """[start, end) percentage band of chapter ``index`` (0-based) out of ``total``."""
    width = (GENERATING_END - GENERATING_START) / total
    start = GENERATING_START + index * width
    return start, start + width


def section_checkpoint(start: float, end: float, section_number: int, section_total: int) -> float:
    return start + section_number / section_total * (end - start)


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def run_report_job(
    job_id: str,
    config: ReportConfig,
    *,
    store: JobStore,
    renderer: ContentRenderer,
    builder: DocumentBuilder,
) -> None:
    async def _update(mutator) -> Job:
        job = await store.update(job_id, mutator)
        if job is None:
            raise JobDeleted(job_id)
        return job

    async def _advance(phase: JobPhase, percentage: float, label: str, **kwargs) -> Job:
        return await _update(lambda job: advance(job, phase, percentage, label, **kwargs))

    try:
        # Analyzing
        await _advance(JobPhase.ANALYZING, 5, "Analyzing project details...")
        await _advance(JobPhase.ANALYZING, 10, f"Reviewing {config.report_type} requirements...")
        await _advance(JobPhase.ANALYZING, 15, "Project analysis complete")

        # Planning
        await _advance(JobPhase.PLANNING, 18, "Planning chapter structure...")
        plan = await renderer.plan_chapters(config)
        total = len(plan)
        await _advance(
            JobPhase.PLANNING, 25, f"Planned {total} chapters", total_chapters=total,
            details=", ".join(chapter.title for chapter in plan) or None,
        )
        logger.info("Report job %s planned %d chapters", job_id, total)

        # Generating
        chapters: list[ChapterContent] = []
        words = 0
        if not plan:
            await _advance(JobPhase.GENERATING, GENERATING_END, "No chapters planned", words_generated=0)

        for idx, chapter_plan in enumerate(plan):
            number = idx + 1
            start, end = chapter_band(idx, total)
            await _advance(
                JobPhase.GENERATING, start, f"Writing Chapter {number}: {chapter_plan.title}",
                current_chapter=number,
            )

            content = ChapterContent(number=number, title=chapter_plan.title)
            section_total = len(chapter_plan.sections)
            if section_total == 0:
                await _advance(
                    JobPhase.GENERATING, end, f"Chapter {number} has no sections",
                    current_chapter=number,
                )

            for section_number, section_title in enumerate(chapter_plan.sections, start=1):
                section = await renderer.write_section(
                    config, chapter_plan, number, section_title, section_number
                )
                content.sections.append(section)
                words += section.word_count
                await _advance(
                    JobPhase.GENERATING,
                    section_checkpoint(start, end, section_number, section_total),
                    f"Generated {number}.{section_number} {section_title}",
                    words_generated=words,
                    current_chapter=number,
                    details=f"Fallback content for {number}.{section_number}" if section.fallback else None,
                )

            chapters.append(content)
            logger.info(
                "Report job %s finished chapter %d/%d (%d words)", job_id, number, total, content.word_count
            )

        # Formatting
        await _advance(JobPhase.FORMATTING, 92, "Formatting document structure...")
        artifact = await asyncio.to_thread(builder.build, config, chapters)
        await _advance(JobPhase.FORMATTING, 98, f"Created {artifact.filename}")

        await _update(lambda job: mark_completed(job, artifact))
        logger.info(
            "Report job %s completed: %d words, %d bytes", job_id, words, artifact.size
        )

    except JobDeleted:
        logger.info("Report job %s was removed before it finished", job_id)
    except Exception as e:
        logger.exception("Report job %s failed", job_id)
        message = _error_message(e)
        try:
            await store.update(job_id, lambda job: mark_failed(job, message))
        except Exception:
            logger.exception("Could not record failure of report job %s", job_id)

"""
Prompt building and canned fallbacks for report chapters.

The fallbacks are what a report is built from when the model is unavailable,
slow, or returns something unusable, so they must be deterministic for a given
configuration.
"""

from schemas.report import ChapterPlan, ReportConfig

# ---------------------------------------------------------------------------
# Chapter titles by report type. The conclusion is always appended last.
# ---------------------------------------------------------------------------
CHAPTER_TITLES = {
    "thesis": ["INTRODUCTION", "LITERATURE REVIEW", "METHODOLOGY", "RESULTS", "DISCUSSION"],
    "internship": ["INTRODUCTION", "COMPANY OVERVIEW", "ROLE AND TASKS", "SKILLS LEARNED"],
    "project": ["INTRODUCTION", "LITERATURE REVIEW", "SYSTEM DESIGN", "IMPLEMENTATION"],
}

EXTRA_CHAPTER_TITLES = [
    "TESTING AND VALIDATION",
    "RESULTS AND PERFORMANCE ANALYSIS",
    "DISCUSSION",
    "CASE STUDIES",
    "DEPLOYMENT AND MAINTENANCE",
    "ETHICAL AND SOCIAL CONSIDERATIONS",
    "RISK ANALYSIS",
    "FUTURE DIRECTIONS",
    "LESSONS LEARNED",
]

CONCLUSION_TITLE = "CONCLUSION"

SECTION_TITLES = {
    0: ["Background and Motivation", "Problem Statement", "Objectives and Scope"],
    1: ["Theoretical Framework", "Related Work Analysis", "Research Gap"],
    2: ["System Architecture", "Design Principles", "Technology Selection"],
    3: ["Implementation Details", "Development Process", "Testing and Validation"],
}
CONCLUSION_SECTIONS = ["Results Summary", "Discussion", "Future Recommendations"]
GENERIC_SECTIONS = ["Overview", "Analysis", "Implementation"]
EXTRA_SECTIONS = ["Key Challenges", "Evaluation", "Best Practices", "Summary", "Further Considerations"]


def _report_kind(report_type: str) -> str:
    kind = report_type.lower()
    if "thesis" in kind:
        return "thesis"
    if "internship" in kind:
        return "internship"
    return "project"


def fallback_chapter_titles(report_type: str, count: int) -> list[str]:
    if count <= 0:
        return []
    body = list(CHAPTER_TITLES[_report_kind(report_type)])
    for extra in EXTRA_CHAPTER_TITLES:
        if extra not in body:
            body.append(extra)
    if count == 1:
        return body[:1]
    return body[: count - 1] + [CONCLUSION_TITLE]


def fallback_section_titles(chapter_index: int, chapter_title: str, count: int) -> list[str]:
    if count <= 0:
        return []
    if "CONCLUSION" in chapter_title.upper():
        base = CONCLUSION_SECTIONS
    else:
        base = SECTION_TITLES.get(chapter_index, GENERIC_SECTIONS)
    titles = list(base)
    for extra in EXTRA_SECTIONS:
        if len(titles) >= count:
            break
        if extra not in titles:
            titles.append(extra)
    return titles[:count]


def fallback_plan(report_type: str, chapter_count: int, sections_per_chapter: int) -> list[ChapterPlan]:
    return [
        ChapterPlan(
            title=title,
            sections=fallback_section_titles(idx, title, sections_per_chapter),
        )
        for idx, title in enumerate(fallback_chapter_titles(report_type, chapter_count))
    ]


def fallback_section_prose(section_title: str, chapter_title: str, config: ReportConfig) -> str:
    project = config.project_title
    return (
        f"This section provides a structured analysis of {section_title} as part of "
        f"{chapter_title.title()} for {project}. It relates the topic to the goals of the "
        f"{config.report_type} and to the context of {config.course}.\n\n"
        "The work follows a systematic process of requirements analysis, architectural design "
        "and iterative implementation. Each step is reviewed against the stated objectives so "
        "that functional and non-functional requirements are met before the next step begins.\n\n"
        "Key considerations include scalability, maintainability and the experience of the people "
        "who use the result. Established design patterns and a clear separation of concerns keep "
        "the solution understandable and open to later extension.\n\n"
        "Verification combines unit testing, integration testing and acceptance review. Findings "
        "from each round feed back into the design, and performance is measured throughout rather "
        "than only at the end.\n\n"
        f"Taken together, this treatment of {section_title} shows how {project} meets its "
        "requirements while leaving a sound foundation for future enhancements."
    )


# ---------------------------------------------------------------------------
# Model prompts
# ---------------------------------------------------------------------------

def build_plan_prompt(config: ReportConfig, chapter_count: int, sections_per_chapter: int) -> str:
    return (
        f"Plan the chapters of a {config.report_type} report titled \"{config.project_title}\" "
        f"for the course {config.course} at {config.institution}.\n\n"
        f"Project description: {config.project_description}\n\n"
        f"Return exactly {chapter_count} chapters. The first chapter introduces the work and the "
        f"last chapter concludes it. Chapter titles are short and written in UPPER CASE. "
        f"Each chapter has exactly {sections_per_chapter} section titles in Title Case, without numbering."
    )


def build_section_prompt(
    config: ReportConfig,
    chapter_title: str,
    chapter_number: int,
    section_title: str,
    section_number: int,
    word_target: int,
) -> str:
    return (
        f"Write a {word_target}-word academic section titled \"{section_title}\" "
        f"(section {chapter_number}.{section_number}) in the chapter \"{chapter_title}\" "
        f"of a {config.report_type} report about \"{config.project_title}\".\n\n"
        f"Project: {config.project_description}\n"
        f"Course: {config.course}\n\n"
        "Write professional academic prose with technical depth, in plain paragraphs separated by "
        "blank lines. Do not repeat the section or chapter title and do not use markdown."
    )


SYSTEM_PROMPT = (
    "You write chapters of university project reports. Your writing is formal, precise and "
    "specific to the project described, and never mentions that it was generated."
)

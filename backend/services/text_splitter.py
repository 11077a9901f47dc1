"""Text splitting and cleanup for generated report prose."""
import re

_SECTION_NUMBER_RE = re.compile(r"^\d+\.\d+(?:\.\d+)*\.?\s+\S")
_CHAPTER_HEADING_RE = re.compile(r"^(?:#+\s*)?chapter\s+\d+\s*[:.-]", re.IGNORECASE)
_MARKDOWN_HEADING_RE = re.compile(r"^#{1,6}\s*")
_EMPHASIS_RE = re.compile(r"(\*\*|__|\*|`)")


def split_into_lines(text: str) -> list[str]:
    """Non-empty stripped lines. Model output often uses single newlines between paragraphs."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def word_count(text: str) -> int:
    return len(text.split())


def is_numbered_heading(line: str) -> bool:
    """'2.3 Related Work' style sub-headings."""
    return bool(_SECTION_NUMBER_RE.match(line)) and len(line.split()) <= 14


def is_chapter_heading(line: str) -> bool:
    return bool(_CHAPTER_HEADING_RE.match(line))


def clean_generated_text(text: str) -> str:
    """Strip markdown markers and repeated chapter headings from model output."""
    lines: list[str] = []
    for raw in text.strip().splitlines():
        line = raw.strip()
        if not line:
            if lines and lines[-1]:
                lines.append("")
            continue
        if is_chapter_heading(line):
            continue
        line = _MARKDOWN_HEADING_RE.sub("", line)
        line = _EMPHASIS_RE.sub("", line).strip()
        if line:
            lines.append(line)
    return "\n".join(lines).strip()

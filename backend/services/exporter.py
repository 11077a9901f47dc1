"""Export services: DOCX, PDF and EPUB report documents."""
import io
import logging
import re
from datetime import datetime, timezone
from html import escape

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt
from ebooklib import epub

from errors import BuildError
from schemas.job import Artifact
from schemas.report import ChapterContent, ReportConfig
from services.text_splitter import is_numbered_heading, split_into_lines

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
    "epub": "application/epub+zip",
}

FONT_NAME = "Times New Roman"


# ── Filenames ───────────────────────────────────────────────────────────────

def _ascii_token(value: str, fallback: str) -> str:
    token = re.sub(r"[^A-Za-z0-9_-]", "_", re.sub(r"\s+", "_", value.strip()))
    token = re.sub(r"_+", "_", token).strip("_")
    return token or fallback


def report_filename(config: ReportConfig, ext: str) -> str:
    student = _ascii_token(config.student_name, "student")
    title = _ascii_token(config.project_title, "project")
    return f"{student}_{title}_Report.{ext}"


def sanitize_download_filename(requested: str | None, ext: str) -> str | None:
    """Make a caller-supplied filename safe for Content-Disposition, keeping our extension."""
    if not requested:
        return None
    name = requested.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name.lower().endswith(f".{ext}"):
        name = name[: -(len(ext) + 1)]
    stem = re.sub(r"[^A-Za-z0-9._-]", "_", name)
    stem = re.sub(r"_+", "_", stem).strip("._")
    if not stem:
        return None
    return f"{stem}.{ext}"


# ── Shared report text ──────────────────────────────────────────────────────

def _report_year() -> str:
    return str(datetime.now(timezone.utc).year)


def acknowledgement_paragraphs(config: ReportConfig) -> list[str]:
    return [
        f"I would like to express my sincere gratitude to my supervisor {config.supervisor} for "
        f"their invaluable guidance, continuous support, and encouragement throughout the "
        f"development of this {config.report_type}.",
        f"I am grateful to the faculty members of {config.institution} for providing me with "
        "the knowledge and skills that enabled me to complete this work successfully.",
        "I would also like to thank my family and friends for their constant support and "
        "motivation during the course of this work.",
    ]


def abstract_paragraphs(config: ReportConfig, chapters: list[ChapterContent]) -> list[str]:
    chapter_names = ", ".join(ch.title.title() for ch in chapters) or "its findings"
    return [
        f"This {config.report_type} presents \"{config.project_title}\". {config.project_description}",
        f"The report is organised into {len(chapters)} chapters covering {chapter_names}.",
        "The work followed established methodologies to ensure quality, maintainability and "
        "a sound basis for future enhancement.",
    ]


def keywords_line(config: ReportConfig) -> str:
    return f"Keywords: {config.course}, {config.report_type.title()} Report, {config.project_title}"


def reference_entries(config: ReportConfig) -> list[str]:
    return [
        "Smith, J. A., & Johnson, M. B. (2023). Modern software development practices in academic "
        "environments. Journal of Computer Science Education, 15(3), 45-62.",
        "Brown, K. L. (2022). Database design principles for web applications. International "
        "Conference on Software Engineering, 123-135.",
        "Wilson, R. T., Davis, S. M., & Lee, H. K. (2023). User interface design patterns for modern "
        "applications. ACM Transactions on Computer-Human Interaction, 30(2), 1-18.",
        "Sommerville, I. (2016). Software Engineering (10th ed.). Pearson.",
        f"{config.institution} (n.d.). {config.course} project guidelines. {config.department_name}.",
    ]


def _section_heading(chapter: ChapterContent, index: int, title: str) -> str:
    return f"{chapter.number}.{index} {title}"


def _chapter_heading(chapter: ChapterContent) -> str:
    return f"CHAPTER {chapter.number}: {chapter.title}"


# ── DOCX ────────────────────────────────────────────────────────────────────

def _centered(document, text: str, *, bold: bool = False, size: int = 12, space_after: int = 12):
    paragraph = document.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    paragraph.paragraph_format.space_after = Pt(space_after)
    run = paragraph.add_run(text)
    run.bold = bold
    run.font.size = Pt(size)
    return paragraph


def _justified(document, text: str):
    paragraph = document.add_paragraph(text)
    paragraph.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
    paragraph.paragraph_format.space_after = Pt(6)
    return paragraph


def _add_cover_page(document, config: ReportConfig) -> None:
    _centered(document, config.institution.upper(), bold=True, size=16, space_after=12)
    _centered(document, config.department_name, bold=True, size=14, space_after=48)
    _centered(document, config.project_title.upper(), bold=True, size=18, space_after=48)
    _centered(document, f"A {config.report_type.upper()} REPORT", bold=True, size=14, space_after=36)
    _centered(document, "Submitted by:", space_after=6)
    _centered(document, config.student_name, bold=True, size=14, space_after=6)
    _centered(document, f"Student ID: {config.student_id}", space_after=12)
    _centered(document, config.course, space_after=6)
    _centered(document, config.semester, space_after=36)
    _centered(document, "Under the guidance of:", space_after=6)
    _centered(document, config.supervisor, bold=True, size=14, space_after=36)
    _centered(document, _report_year(), bold=True, size=14)


def _add_front_matter(document, config: ReportConfig, chapters: list[ChapterContent]) -> None:
    document.add_page_break()
    _centered(document, "ACKNOWLEDGEMENT", bold=True, size=16, space_after=24)
    for text in acknowledgement_paragraphs(config):
        _justified(document, text)
    signature = document.add_paragraph()
    signature.alignment = WD_ALIGN_PARAGRAPH.RIGHT
    signature.add_run(config.student_name).bold = True
    signature.add_run(f"\nStudent ID: {config.student_id}")

    document.add_page_break()
    _centered(document, "ABSTRACT", bold=True, size=16, space_after=24)
    for text in abstract_paragraphs(config, chapters):
        _justified(document, text)
    document.add_paragraph().add_run(keywords_line(config)).bold = True

    document.add_page_break()
    _centered(document, "TABLE OF CONTENTS", bold=True, size=16, space_after=24)
    for chapter in chapters:
        document.add_paragraph().add_run(_chapter_heading(chapter)).bold = True
        for idx, section in enumerate(chapter.sections, start=1):
            entry = document.add_paragraph(_section_heading(chapter, idx, section.title))
            entry.paragraph_format.left_indent = Pt(24)
    document.add_paragraph().add_run("REFERENCES").bold = True


def _add_prose(document, text: str) -> None:
    for line in split_into_lines(text):
        if is_numbered_heading(line):
            document.add_heading(line, level=3)
        else:
            _justified(document, line)


def export_docx(config: ReportConfig, chapters: list[ChapterContent]) -> bytes:
    """Generate a DOCX report. Returns DOCX bytes."""
    document = Document()
    normal = document.styles["Normal"]
    normal.font.name = FONT_NAME
    normal.font.size = Pt(12)

    _add_cover_page(document, config)
    _add_front_matter(document, config, chapters)

    for chapter in chapters:
        document.add_page_break()
        heading = document.add_heading(_chapter_heading(chapter), level=1)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
        for idx, section in enumerate(chapter.sections, start=1):
            document.add_heading(_section_heading(chapter, idx, section.title), level=2)
            _add_prose(document, section.content)

    document.add_page_break()
    heading = document.add_heading("REFERENCES", level=1)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    for idx, entry in enumerate(reference_entries(config), start=1):
        _justified(document, f"[{idx}] {entry}")

    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


# ── HTML / PDF ──────────────────────────────────────────────────────────────

PDF_CSS = """
@page {
    size: A4;
    margin: 2.5cm;
    @bottom-center { content: counter(page); font-size: 10pt; color: #888; }
}
body {
    font-family: 'Times New Roman', Georgia, serif;
    font-size: 12pt;
    line-height: 1.5;
    color: #1a1a1a;
}
.cover {
    text-align: center;
    padding-top: 10%;
    page-break-after: always;
}
.cover h1 { font-size: 22pt; margin: 1.5em 0; }
.cover .meta { font-size: 13pt; margin: 0.3em 0; }
.cover .strong { font-weight: bold; }
.front, .chapter, .references { page-break-before: always; }
h2 { text-align: center; font-size: 16pt; margin-bottom: 1em; }
h3 { font-size: 13pt; margin-top: 1.2em; }
h4 { font-size: 12pt; }
p { text-align: justify; }
.toc .section { margin-left: 1.5em; }
.signature { text-align: right; font-weight: bold; }
"""


def _prose_html(text: str) -> str:
    parts = []
    for line in split_into_lines(text):
        if is_numbered_heading(line):
            parts.append(f"<h4>{escape(line)}</h4>")
        else:
            parts.append(f"<p>{escape(line)}</p>")
    return "".join(parts)


def _chapter_html(chapter: ChapterContent) -> str:
    html = f"<h2>{escape(_chapter_heading(chapter))}</h2>"
    for idx, section in enumerate(chapter.sections, start=1):
        html += f"<h3>{escape(_section_heading(chapter, idx, section.title))}</h3>"
        html += _prose_html(section.content)
    return html


def _build_html(config: ReportConfig, chapters: list[ChapterContent]) -> str:
    html_parts = [
        f"<!DOCTYPE html><html><head><meta charset='utf-8'><style>{PDF_CSS}</style></head><body>",
        "<div class='cover'>",
        f"<p class='meta strong'>{escape(config.institution.upper())}</p>",
        f"<p class='meta strong'>{escape(config.department_name)}</p>",
        f"<h1>{escape(config.project_title.upper())}</h1>",
        f"<p class='meta strong'>A {escape(config.report_type.upper())} REPORT</p>",
        "<p class='meta'>Submitted by:</p>",
        f"<p class='meta strong'>{escape(config.student_name)}</p>",
        f"<p class='meta'>Student ID: {escape(config.student_id)}</p>",
        f"<p class='meta'>{escape(config.course)}</p>",
        f"<p class='meta'>{escape(config.semester)}</p>",
        "<p class='meta'>Under the guidance of:</p>",
        f"<p class='meta strong'>{escape(config.supervisor)}</p>",
        f"<p class='meta strong'>{_report_year()}</p></div>",
    ]

    html_parts.append("<div class='front'><h2>ACKNOWLEDGEMENT</h2>")
    html_parts.extend(f"<p>{escape(text)}</p>" for text in acknowledgement_paragraphs(config))
    html_parts.append(f"<p class='signature'>{escape(config.student_name)}</p></div>")

    html_parts.append("<div class='front'><h2>ABSTRACT</h2>")
    html_parts.extend(f"<p>{escape(text)}</p>" for text in abstract_paragraphs(config, chapters))
    html_parts.append(f"<p><strong>{escape(keywords_line(config))}</strong></p></div>")

    html_parts.append("<div class='front toc'><h2>TABLE OF CONTENTS</h2>")
    for chapter in chapters:
        html_parts.append(f"<p><strong>{escape(_chapter_heading(chapter))}</strong></p>")
        for idx, section in enumerate(chapter.sections, start=1):
            html_parts.append(
                f"<p class='section'>{escape(_section_heading(chapter, idx, section.title))}</p>"
            )
    html_parts.append("</div>")

    for chapter in chapters:
        html_parts.append(f"<div class='chapter'>{_chapter_html(chapter)}</div>")

    html_parts.append("<div class='references'><h2>REFERENCES</h2>")
    for idx, entry in enumerate(reference_entries(config), start=1):
        html_parts.append(f"<p>[{idx}] {escape(entry)}</p>")
    html_parts.append("</div></body></html>")
    return "".join(html_parts)


def export_pdf(config: ReportConfig, chapters: list[ChapterContent]) -> bytes:
    """Generate a PDF report. Returns PDF bytes."""
    # WeasyPrint loads Pango at import time; keep that off the API import path.
    from weasyprint import HTML

    return HTML(string=_build_html(config, chapters)).write_pdf()


# ── EPUB ────────────────────────────────────────────────────────────────────

EPUB_CSS = """
body { font-family: 'Times New Roman', Georgia, serif; font-size: 1.1em; line-height: 1.6; color: #1a1a1a; }
h2 { text-align: center; border-bottom: 1px solid #ccc; padding-bottom: 0.3em; }
h3 { margin-top: 1.2em; }
p { text-align: justify; }
"""


def export_epub(config: ReportConfig, chapters: list[ChapterContent]) -> bytes:
    """Generate an EPUB report. Returns EPUB bytes."""
    book = epub.EpubBook()
    student = _ascii_token(config.student_id, "student")
    book.set_identifier(f"report-{student}-{_ascii_token(config.project_title, 'project')[:40]}")
    book.set_title(config.project_title)
    book.set_language("en")
    book.add_author(config.student_name)
    book.add_metadata("DC", "publisher", config.institution)
    book.add_metadata("DC", "description", f"A {config.report_type} report")

    style = epub.EpubItem(
        uid="style", file_name="style/default.css", media_type="text/css", content=EPUB_CSS.encode()
    )
    book.add_item(style)

    spine = ["nav"]
    toc = []

    def _add_page(uid: str, title: str, html: str):
        page = epub.EpubHtml(title=title, file_name=f"{uid}.xhtml", lang="en")
        page.add_item(style)
        page.content = html.encode()
        book.add_item(page)
        spine.append(page)
        toc.append(page)

    front = "<h2>ABSTRACT</h2>" + "".join(
        f"<p>{escape(text)}</p>" for text in abstract_paragraphs(config, chapters)
    )
    front += f"<p><strong>{escape(keywords_line(config))}</strong></p>"
    _add_page("abstract", "Abstract", front)

    for chapter in chapters:
        _add_page(f"chapter_{chapter.number}", _chapter_heading(chapter), _chapter_html(chapter))

    references = "<h2>REFERENCES</h2>" + "".join(
        f"<p>[{idx}] {escape(entry)}</p>" for idx, entry in enumerate(reference_entries(config), start=1)
    )
    _add_page("references", "References", references)

    book.toc = toc
    book.spine = spine
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())

    buf = io.BytesIO()
    epub.write_epub(buf, book)
    return buf.getvalue()


EXPORTERS = {
    "docx": export_docx,
    "pdf": export_pdf,
    "epub": export_epub,
}


class ReportDocumentBuilder:
    """Serializes generated chapters into the configured document format."""

    def build(self, config: ReportConfig, chapters: list[ChapterContent]) -> Artifact:
        fmt = config.output_format
        exporter = EXPORTERS.get(fmt)
        if exporter is None:
            raise BuildError(f"Unsupported output format: {fmt}")
        try:
            content = exporter(config, chapters)
        except Exception as e:
            logger.error("Building %s document for %r failed: %s", fmt, config.project_title, e)
            raise BuildError(f"Failed to build {fmt} document: {e}") from e
        if not content:
            raise BuildError(f"Failed to build {fmt} document: empty output")
        return Artifact(content=content, filename=report_filename(config, fmt), media_type=MEDIA_TYPES[fmt])

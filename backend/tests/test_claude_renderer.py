import asyncio
from types import SimpleNamespace

from prompts.report import fallback_chapter_titles, fallback_section_prose
from schemas.report import ChapterPlan
from services.claude import ClaudeContentRenderer, _normalize_plan


class FakeMessages:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        assert self.responses, "unexpected extra call"
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return await response()
        return response


def _client(*responses):
    return SimpleNamespace(messages=FakeMessages(responses))


def _renderer(client=None, **kwargs) -> ClaudeContentRenderer:
    options = {"api_key": "", "timeout": 0.5, "retries": 1, "backoff": 0, "client": client}
    options.update(kwargs)
    return ClaudeContentRenderer(**options)


def _tool_response(payload):
    return SimpleNamespace(
        content=[SimpleNamespace(type="tool_use", name="submit_chapter_plan", input=payload)]
    )


def _text_response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def test_fallback_chapter_titles_end_with_conclusion() -> None:
    assert fallback_chapter_titles("Project Report", 4) == [
        "INTRODUCTION", "LITERATURE REVIEW", "SYSTEM DESIGN", "CONCLUSION",
    ]
    assert fallback_chapter_titles("Internship Report", 2) == ["INTRODUCTION", "CONCLUSION"]
    assert fallback_chapter_titles("Thesis", 1) == ["INTRODUCTION"]
    assert fallback_chapter_titles("Thesis", 0) == []
    assert len(fallback_chapter_titles("Thesis", 12)) == 12


def test_without_api_key_plan_and_sections_fall_back(report_config) -> None:
    config = report_config.model_copy(update={"chapter_count": 3, "sections_per_chapter": 2})
    renderer = _renderer()
    assert renderer.configured is False

    plan = asyncio.run(renderer.plan_chapters(config))
    assert [chapter.title for chapter in plan] == ["INTRODUCTION", "LITERATURE REVIEW", "CONCLUSION"]
    assert plan[0].sections == ["Background and Motivation", "Problem Statement"]
    assert plan[2].sections == ["Results Summary", "Discussion"]

    section = asyncio.run(renderer.write_section(config, plan[0], 1, "Problem Statement", 2))
    assert section.fallback is True
    assert "Problem Statement" in section.content
    assert "Smart Library" in section.content
    assert section.word_count == len(section.content.split())


def test_fallback_prose_is_deterministic(report_config) -> None:
    first = fallback_section_prose("Design Principles", "SYSTEM DESIGN", report_config)
    second = fallback_section_prose("Design Principles", "SYSTEM DESIGN", report_config)
    assert first == second


def test_plan_from_tool_use(report_config) -> None:
    config = report_config.model_copy(update={"chapter_count": 2, "sections_per_chapter": 2})
    client = _client(_tool_response({
        "chapters": [
            {"title": "Getting Started", "sections": ["Context", "Goals", "Extra"]},
            {"title": "wrapping up", "sections": ["Findings"]},
        ],
    }))
    plan = asyncio.run(_renderer(client).plan_chapters(config))

    assert plan[0] == ChapterPlan(title="GETTING STARTED", sections=["Context", "Goals"])
    assert plan[1].title == "WRAPPING UP"
    assert plan[1].sections[0] == "Findings"
    assert len(plan[1].sections) == 2
    assert client.messages.calls[0]["tool_choice"] == {"type": "tool", "name": "submit_chapter_plan"}


def test_short_plan_falls_back(report_config) -> None:
    config = report_config.model_copy(update={"chapter_count": 3, "sections_per_chapter": 1})
    client = _client(_tool_response({"chapters": [{"title": "ONLY ONE", "sections": ["A"]}]}))
    plan = asyncio.run(_renderer(client).plan_chapters(config))
    assert [chapter.title for chapter in plan] == ["INTRODUCTION", "LITERATURE REVIEW", "CONCLUSION"]


def test_normalize_plan_rejects_malformed_input() -> None:
    assert _normalize_plan(None, 2, 2) is None
    assert _normalize_plan({"chapters": "nope"}, 2, 2) is None
    assert _normalize_plan({"chapters": [{"title": ""}, "junk"]}, 1, 2) is None
    plan = _normalize_plan({"chapters": [{"title": "Intro"}]}, 1, 0)
    assert plan == [ChapterPlan(title="INTRO", sections=[])]


def test_section_text_is_cleaned(report_config) -> None:
    client = _client(_text_response("## Chapter 1: Intro\n\n**Libraries** matter.\n\nThey lend `books`."))
    chapter = ChapterPlan(title="INTRODUCTION", sections=["Background"])
    section = asyncio.run(_renderer(client).write_section(report_config, chapter, 1, "Background", 1))

    assert section.fallback is False
    assert section.content == "Libraries matter.\n\nThey lend books."
    assert section.word_count == 5


def test_timeouts_are_retried_then_fall_back(report_config) -> None:
    async def slow():
        await asyncio.sleep(1)
        return _text_response("too late")

    client = _client(slow, slow)
    chapter = ChapterPlan(title="INTRODUCTION", sections=["Background"])
    renderer = _renderer(client, timeout=0.01, retries=1)
    section = asyncio.run(renderer.write_section(report_config, chapter, 1, "Background", 1))

    assert section.fallback is True
    assert len(client.messages.calls) == 2


def test_api_error_then_success_uses_second_attempt(report_config) -> None:
    client = _client(RuntimeError("overloaded"), _text_response("Recovered prose."))
    chapter = ChapterPlan(title="INTRODUCTION", sections=["Background"])
    section = asyncio.run(_renderer(client).write_section(report_config, chapter, 1, "Background", 1))

    assert section.fallback is False
    assert section.content == "Recovered prose."


def test_empty_generation_falls_back(report_config) -> None:
    client = _client(_text_response("   "), _text_response(""))
    chapter = ChapterPlan(title="INTRODUCTION", sections=["Background"])
    section = asyncio.run(_renderer(client).write_section(report_config, chapter, 1, "Background", 1))
    assert section.fallback is True


def test_plan_and_section_requests_share_the_token_limit(report_config) -> None:
    client = _client(
        _tool_response({"chapters": [{"title": "Intro", "sections": ["Context"]}]}),
        _text_response("Some prose."),
    )
    config = report_config.model_copy(update={"chapter_count": 1, "sections_per_chapter": 1})
    renderer = _renderer(client, max_tokens=777)

    plan = asyncio.run(renderer.plan_chapters(config))
    asyncio.run(renderer.write_section(config, plan[0], 1, "Context", 1))

    assert [call["max_tokens"] for call in client.messages.calls] == [777, 777]

"""Tests for the analysis orchestrator."""
from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from unihelper.agents.content_providers import CategoryContent
from unihelper.agents.orchestrator import AnalysisOrchestrator
from unihelper.errors import RemoteFetchFailure
from unihelper.models.analysis import (
    APP_TIPS_DISABLED,
    AnalysisResult,
    Category,
    PageContext,
    SearchCandidate,
    TopLevelFailure,
    UserPreferences,
)
from unihelper.models.events import EventType
from unihelper.services.result_store import ANALYSIS_NAMESPACE, InMemoryResultStore

PAGE = PageContext(
    text="Course: Computer Science BSc\nDescription: Three years of programming and theory.",
    source_url="https://www.university-of-example.edu/programs/cs",
)

SNIPPET_A = "Scholarship A covers full tuition for international students with strong grades. " * 2
SNIPPET_B = "Scholarship B offers a monthly stipend for students who volunteer on campus. " * 2


class FakeSession:
    def __init__(self, service):
        self.service = service

    async def prompt(self, text):
        self.service.prompts.append(text)
        if "FAILME" in text:
            raise RuntimeError("model overloaded")
        if "application tips" in text:
            return "Tip: apply early."
        if "university program page" in text:
            return "A strong CS program."
        return f"summary #{len(self.service.prompts)}"

    async def destroy(self):
        self.service.destroyed += 1


class FakeService:
    def __init__(self, status="available"):
        self.status = status
        self.prompts: list[str] = []
        self.created = 0
        self.destroyed = 0

    async def availability(self):
        return self.status

    async def create_session(self):
        self.created += 1
        return FakeSession(self)


class FakeProvider:
    def __init__(self, protocol="links", contents=None, failures=None):
        self.protocol = protocol
        self.contents = contents or {}
        self.failures = failures or {}
        self.calls: list[tuple[str, Category]] = []

    async def fetch(self, entity_name, category):
        self.calls.append((entity_name, category))
        if category in self.failures:
            raise self.failures[category]
        return self.contents.get(category, CategoryContent(category=category))


def _links(category: Category, count: int = 2) -> CategoryContent:
    return CategoryContent(
        category=category,
        links=[
            SearchCandidate(f"{category.value} link {i}", f"https://example.edu/{category.value}/{i}")
            for i in range(count)
        ],
    )


def _orchestrator(service=None, provider=None, store=None, **kwargs) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        generation_service=service or FakeService(),
        content_provider=provider or FakeProvider(),
        store=store or InMemoryResultStore(),
        **kwargs,
    )


ALL_ON = UserPreferences(
    want_scholarships=True, want_reviews=True, want_location=True, want_app_tips=True
)


class TestCapabilityGate:
    @pytest.mark.asyncio
    async def test_unavailable_service_persists_failure_without_searching(self):
        service = FakeService(status="unavailable")
        provider = FakeProvider()
        store = InMemoryResultStore()

        outcome = await _orchestrator(service, provider, store).run(ALL_ON, PAGE)

        assert isinstance(outcome, TopLevelFailure)
        record = await store.get(ANALYSIS_NAMESPACE)
        assert list(record) == ["analysisError"]
        assert "unavailable" in record["analysisError"]
        assert provider.calls == []
        assert service.created == 0

    @pytest.mark.asyncio
    async def test_run_for_url_checks_capability_before_extracting(self):
        extractor = AsyncMock()
        orchestrator = _orchestrator(FakeService(status="no"), extractor=extractor)

        outcome = await orchestrator.run_for_url(ALL_ON, "https://example.edu/programs")

        assert isinstance(outcome, TopLevelFailure)
        extractor.extract.assert_not_awaited()


class TestCategoryIsolation:
    @pytest.mark.asyncio
    async def test_one_failing_category_leaves_siblings_intact(self):
        provider = FakeProvider(
            contents={c: _links(c) for c in Category},
            failures={Category.REVIEWS: RemoteFetchFailure("search quota exceeded")},
        )
        store = InMemoryResultStore()

        outcome = await _orchestrator(provider=provider, store=store).run(ALL_ON, PAGE)

        assert isinstance(outcome, AnalysisResult)
        record = await store.get(ANALYSIS_NAMESPACE)
        assert record["reviewLinks"] == []
        assert record["reviewSummary"] == ""
        assert len(record["scholarshipLinks"]) == 2
        assert len(record["locationLinks"]) == 2
        assert len(record["appTipsLinks"]) == 2
        assert {"stage": "reviews_search", "message": "search quota exceeded"} in record["errors"]
        assert record["pageSummary"] == "A strong CS program."

    @pytest.mark.asyncio
    async def test_categories_use_entity_name_from_page_url(self):
        provider = FakeProvider()

        await _orchestrator(provider=provider).run(ALL_ON, PAGE)

        assert {name for name, _ in provider.calls} == {"University Of Example"}
        assert [c for _, c in provider.calls] == list(Category)

    @pytest.mark.asyncio
    async def test_no_enabled_categories_skips_external_content(self):
        provider = FakeProvider()
        preferences = UserPreferences(want_scholarships=False, want_reviews=False)
        store = InMemoryResultStore()

        await _orchestrator(provider=provider, store=store).run(preferences, PAGE)

        assert provider.calls == []
        record = await store.get(ANALYSIS_NAMESPACE)
        assert record["scholarshipLinks"] == []
        assert record["generatedAppTips"] == APP_TIPS_DISABLED


class TestSnippets:
    @pytest.mark.asyncio
    async def test_empty_snippet_blob_round_trip(self):
        service = FakeService()
        provider = FakeProvider(protocol="snippets")
        store = InMemoryResultStore()
        preferences = UserPreferences(want_scholarships=True, want_reviews=True)

        await _orchestrator(service, provider, store).run(preferences, PAGE)

        record = await store.get(ANALYSIS_NAMESPACE)
        assert record["scholarshipSummary"] == ""
        assert record["reviewSummary"] == ""
        assert record["protocol"] == "snippets"
        # Only the page summary reached the model
        assert len(service.prompts) == 1

    @pytest.mark.asyncio
    async def test_invalid_snippets_are_screened_out(self):
        service = FakeService()
        provider = FakeProvider(
            protocol="snippets",
            contents={
                Category.SCHOLARSHIPS: CategoryContent(
                    category=Category.SCHOLARSHIPS,
                    snippets=[
                        "short",
                        SNIPPET_A,
                        "Could not retrieve content from https://example.edu/funding",
                        "%PDF-1.4 " + "binary " * 30,
                        SNIPPET_B,
                    ],
                )
            },
        )
        preferences = UserPreferences(want_scholarships=True, want_reviews=False)

        outcome = await _orchestrator(service, provider).run(preferences, PAGE)

        snippet_prompts = [p for p in service.prompts if "Scholarship " in p]
        assert len(snippet_prompts) == 2
        assert SNIPPET_A in snippet_prompts[0]
        assert SNIPPET_B in snippet_prompts[1]
        summary = outcome.category_summaries[Category.SCHOLARSHIPS]
        assert len(summary.split("\n\n")) == 2

    @pytest.mark.asyncio
    async def test_failed_snippet_gets_placeholder_and_siblings_continue(self):
        provider = FakeProvider(
            protocol="snippets",
            contents={
                Category.SCHOLARSHIPS: CategoryContent(
                    category=Category.SCHOLARSHIPS,
                    snippets=[SNIPPET_A + " FAILME", SNIPPET_B],
                )
            },
        )
        preferences = UserPreferences(want_scholarships=True, want_reviews=False)

        outcome = await _orchestrator(provider=provider).run(preferences, PAGE)

        first, second = outcome.category_summaries[Category.SCHOLARSHIPS].split("\n\n")
        assert first == "[Error during scholarships snippet 1: model overloaded]"
        assert second.startswith("summary #")
        assert [e.stage for e in outcome.errors] == ["scholarships_snippet"]

    @pytest.mark.asyncio
    async def test_per_category_mode_shares_one_session(self):
        service = FakeService()
        provider = FakeProvider(
            protocol="snippets",
            contents={
                Category.SCHOLARSHIPS: CategoryContent(
                    category=Category.SCHOLARSHIPS,
                    snippets=[SNIPPET_A, SNIPPET_B, SNIPPET_A],
                )
            },
        )
        preferences = UserPreferences(want_scholarships=True, want_reviews=False)

        await _orchestrator(service, provider, session_mode="per_category").run(preferences, PAGE)

        # page summary + one pooled session for three snippets
        assert service.created == 2
        assert service.destroyed == 2
        assert len(service.prompts) == 4


class TestGenerationFailures:
    @pytest.mark.asyncio
    async def test_page_summary_failure_is_recorded(self):
        service = FakeService()
        page = PageContext(text=PAGE.text + " FAILME", source_url=PAGE.source_url)
        preferences = UserPreferences(want_scholarships=False, want_reviews=False)

        outcome = await _orchestrator(service).run(preferences, page)

        assert outcome.page_summary == "[Error during page summary: model overloaded]"
        assert outcome.errors[0].stage == "page_summary"

    @pytest.mark.asyncio
    async def test_app_tips_use_summary_and_link_titles(self):
        service = FakeService()
        provider = FakeProvider(contents={Category.APP_TIPS: _links(Category.APP_TIPS, 1)})
        preferences = UserPreferences(
            want_scholarships=False, want_reviews=False, want_app_tips=True
        )

        outcome = await _orchestrator(service, provider).run(preferences, PAGE)

        assert outcome.generated_app_tips == "Tip: apply early."
        tips_prompt = service.prompts[-1]
        assert "Page Summary:\nA strong CS program." in tips_prompt
        assert "app_tips link 0" in tips_prompt

    @pytest.mark.asyncio
    async def test_app_tips_disabled_placeholder(self):
        outcome = await _orchestrator().run(UserPreferences(want_app_tips=False), PAGE)

        assert outcome.generated_app_tips == APP_TIPS_DISABLED

    @pytest.mark.asyncio
    async def test_unexpected_failure_becomes_analysis_error(self):
        store = InMemoryResultStore()

        with patch(
            "unihelper.agents.orchestrator.render_prompt", side_effect=KeyError("page_text")
        ):
            outcome = await _orchestrator(store=store).run(ALL_ON, PAGE)

        assert isinstance(outcome, TopLevelFailure)
        record = await store.get(ANALYSIS_NAMESPACE)
        assert list(record) == ["analysisError"]
        assert record["analysisError"].startswith("Unexpected error during analysis")


class TestPromptBounds:
    @pytest.mark.asyncio
    async def test_page_within_limit_reaches_the_model_whole(self):
        service = FakeService()
        page = PageContext(text="x" * 17990 + "TAILMARK", source_url=PAGE.source_url)
        preferences = UserPreferences(want_scholarships=False, want_reviews=False)

        with patch("unihelper.agents.orchestrator.settings") as mock_settings:
            mock_settings.generation_prompt_char_limit = 18000
            mock_settings.generation_session_mode = "per_prompt"
            await _orchestrator(service).run(preferences, page)

        summary_prompt = service.prompts[0]
        assert summary_prompt.endswith("x" * 17990 + "TAILMARK")
        assert summary_prompt.startswith("Generate a concise, single-paragraph summary")

    @pytest.mark.asyncio
    async def test_overlong_page_is_cut_before_rendering(self):
        service = FakeService()
        page = PageContext(text="x" * 1500 + "TAILMARK", source_url=PAGE.source_url)
        preferences = UserPreferences(want_scholarships=False, want_reviews=False)

        with patch("unihelper.agents.orchestrator.settings") as mock_settings:
            mock_settings.generation_prompt_char_limit = 1000
            mock_settings.generation_session_mode = "per_prompt"
            await _orchestrator(service).run(preferences, page)

        summary_prompt = service.prompts[0]
        assert "TAILMARK" not in summary_prompt
        assert summary_prompt.endswith("\n\n" + "x" * 1000)
        assert "Study Focused: 5/10" in summary_prompt

    @pytest.mark.asyncio
    async def test_long_snippet_keeps_the_instructions(self):
        service = FakeService()
        snippet = "Scholarship details for international applicants. " * 40
        provider = FakeProvider(
            protocol="snippets",
            contents={
                Category.SCHOLARSHIPS: CategoryContent(
                    category=Category.SCHOLARSHIPS, snippets=[snippet]
                )
            },
        )
        preferences = UserPreferences(want_scholarships=True, want_reviews=False)

        with patch("unihelper.agents.orchestrator.settings") as mock_settings:
            mock_settings.generation_prompt_char_limit = 1000
            mock_settings.generation_session_mode = "per_prompt"
            await _orchestrator(service, provider).run(preferences, PAGE)

        snippet_prompt = next(p for p in service.prompts if "Text:\n" in p)
        assert snippet_prompt.startswith("The following text was found while researching")
        assert snippet_prompt.endswith("Text:\n" + snippet[:1000])


class TestRunForUrl:
    @pytest.mark.asyncio
    async def test_extraction_failure_persists_error(self):
        extractor = AsyncMock()
        extractor.extract.side_effect = RemoteFetchFailure(
            "Could not find any relevant course content on this page."
        )
        provider = FakeProvider()
        store = InMemoryResultStore()

        outcome = await _orchestrator(provider=provider, store=store, extractor=extractor).run_for_url(
            ALL_ON, "https://example.edu/programs"
        )

        assert isinstance(outcome, TopLevelFailure)
        assert await store.get(ANALYSIS_NAMESPACE) == {
            "analysisError": "Could not find any relevant course content on this page."
        }
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_extracted_page_flows_into_pipeline(self):
        extractor = AsyncMock()
        extractor.extract.return_value = PAGE
        store = InMemoryResultStore()

        outcome = await _orchestrator(store=store, extractor=extractor).run_for_url(
            UserPreferences(), PAGE.source_url
        )

        assert isinstance(outcome, AnalysisResult)
        record = await store.get(ANALYSIS_NAMESPACE)
        assert record["pageSummary"] == "A strong CS program."


@pytest.mark.asyncio
async def test_events_bracket_the_run():
    events = []

    async def collect(event):
        events.append(event)

    await _orchestrator(on_event=collect).run(ALL_ON, PAGE)

    assert events[0].event == EventType.ANALYSIS_STARTED
    assert events[0].data["entity_name"] == "University Of Example"
    assert events[-1].event == EventType.ANALYSIS_COMPLETE
    completed = [e.data["category"] for e in events if e.event == EventType.CATEGORY_COMPLETED]
    assert sorted(completed) == sorted(c.value for c in Category)


@pytest.mark.asyncio
async def test_persisted_record_always_carries_every_key():
    store = InMemoryResultStore()

    await _orchestrator(store=store).run(UserPreferences(), PAGE)

    record = await store.get(ANALYSIS_NAMESPACE)
    assert set(record) == {
        "pageSummary",
        "scholarshipLinks",
        "reviewLinks",
        "locationLinks",
        "appTipsLinks",
        "scholarshipSummary",
        "reviewSummary",
        "locationSummary",
        "appTipsSummary",
        "generatedAppTips",
        "errors",
        "protocol",
    }

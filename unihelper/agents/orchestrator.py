from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
from uuid import uuid4

from loguru import logger

from unihelper.agents.content_providers import ExternalContentProvider, get_content_provider
from unihelper.config import settings
from unihelper.errors import CapabilityUnavailable, UnexpectedFailure
from unihelper.models.analysis import (
    APP_TIPS_DISABLED,
    AnalysisResult,
    Category,
    PageContext,
    SearchCandidate,
    StageError,
    TopLevelFailure,
    UserPreferences,
)
from unihelper.models.events import SSEEvent
from unihelper.services import streaming
from unihelper.services.generation import (
    GeneratedText,
    GenerativeTextService,
    ensure_available,
    error_placeholder,
    generate_text,
    generation_session,
    get_generation_service,
    prompt_session,
)
from unihelper.services.prompt_store import render_prompt
from unihelper.services.result_store import ANALYSIS_NAMESPACE, ResultStore, get_result_store
from unihelper.services.snippet_protocol import valid_snippets
from unihelper.tools.page_scraper import PageTextExtractor

EventCallback = Callable[[SSEEvent], Awaitable[None]]


@dataclass
class CategoryOutcome:
    """What one category task contributes to the result. Tasks never share one."""

    category: Category
    links: list[SearchCandidate] = field(default_factory=list)
    summary: str = ""
    snippets_count: int = 0
    errors: list[StageError] = field(default_factory=list)


class AnalysisOrchestrator:
    """Runs the page analysis pipeline for one user action.

    Flow:
      1. Check the generative-text capability (the only fatal precondition)
      2. Summarize the page while the enabled categories fetch external content
      3. Summarize valid snippets per category, one after another
      4. Generate application tips from the page summary
      5. Persist the record and report completion

    Search, snippet and generation failures are recorded in ``errors`` and
    replaced by empty values or bracketed placeholders. Only an unexpected
    exception turns the run into a ``TopLevelFailure``.
    """

    def __init__(
        self,
        *,
        generation_service: GenerativeTextService | None = None,
        content_provider: ExternalContentProvider | None = None,
        store: ResultStore | None = None,
        extractor: PageTextExtractor | None = None,
        on_event: EventCallback | None = None,
        session_mode: str | None = None,
    ):
        self.generation_service = generation_service or get_generation_service()
        self.content_provider = content_provider or get_content_provider()
        self.store = store or get_result_store()
        self.extractor = extractor or PageTextExtractor()
        self.on_event = on_event
        self.session_mode = (session_mode or settings.generation_session_mode).lower().strip()
        self.prompt_char_limit = max(int(settings.generation_prompt_char_limit), 1000)

    async def run(
        self, preferences: UserPreferences, page_context: PageContext
    ) -> AnalysisResult | TopLevelFailure:
        try:
            await ensure_available(self.generation_service)
        except CapabilityUnavailable as e:
            return await self._fail(str(e), stage="capability")
        return await self._run_pipeline(preferences, page_context)

    async def run_for_url(
        self, preferences: UserPreferences, url: str
    ) -> AnalysisResult | TopLevelFailure:
        """Extract the page behind ``url`` first, then run the pipeline."""
        try:
            await ensure_available(self.generation_service)
        except CapabilityUnavailable as e:
            return await self._fail(str(e), stage="capability")

        try:
            page_context = await self.extractor.extract(url)
        except Exception as e:
            logger.warning(f"Page extraction failed for {url}: {e}")
            return await self._fail(str(e) or "Failed to get valid text content from the page.", stage="extraction")

        return await self._run_pipeline(preferences, page_context)

    async def _run_pipeline(
        self, preferences: UserPreferences, page_context: PageContext
    ) -> AnalysisResult | TopLevelFailure:
        run_id = uuid4().hex
        started = time.monotonic()
        categories = preferences.enabled_categories()
        entity_name = page_context.entity_name if categories else ""

        await self._emit(
            streaming.analysis_started(
                run_id,
                entity_name=entity_name,
                categories=[c.value for c in categories],
            )
        )

        try:
            result = await self._analyze(preferences, page_context, entity_name, categories)
        except Exception as e:
            logger.exception(f"Analysis failed with unexpected error: {e}")
            return await self._fail(f"Unexpected error during analysis: {e}", stage="unexpected")

        await self._persist(result.to_payload())
        await self._emit(
            streaming.analysis_complete(
                run_id,
                errors_count=len(result.errors),
                runtime_ms=int((time.monotonic() - started) * 1000),
            )
        )
        logger.info(
            f"Analysis {run_id} complete for {entity_name or page_context.source_url} "
            f"with {len(result.errors)} recorded errors"
        )
        return result

    async def _analyze(
        self,
        preferences: UserPreferences,
        page_context: PageContext,
        entity_name: str,
        categories: list[Category],
    ) -> AnalysisResult:
        raw = await asyncio.gather(
            self._summarize_page(preferences, page_context),
            *(self._process_category(c, entity_name, preferences) for c in categories),
            return_exceptions=True,
        )
        for item in raw:
            if isinstance(item, BaseException):
                raise UnexpectedFailure(str(item) or item.__class__.__name__) from item

        page_summary: GeneratedText = raw[0]
        outcomes: list[CategoryOutcome] = list(raw[1:])

        result = AnalysisResult(protocol=self.content_provider.protocol)
        result.page_summary = page_summary.text
        if page_summary.failed:
            result.errors.append(StageError(stage="page_summary", message=page_summary.error or ""))

        for outcome in outcomes:
            result.links[outcome.category] = outcome.links
            result.category_summaries[outcome.category] = outcome.summary
            result.errors.extend(outcome.errors)

        result.generated_app_tips = await self._generate_app_tips(preferences, result)
        return result

    async def _summarize_page(
        self, preferences: UserPreferences, page_context: PageContext
    ) -> GeneratedText:
        prompt = render_prompt(
            "analysis.page_summary",
            page_text=page_context.text[: self.prompt_char_limit],
            **preferences.trait_values(),
        )
        generated = await generate_text(self.generation_service, prompt, "page summary")
        await self._emit(streaming.stage_completed("page_summary", success=not generated.failed))
        return generated

    async def _process_category(
        self,
        category: Category,
        entity_name: str,
        preferences: UserPreferences,
    ) -> CategoryOutcome:
        outcome = CategoryOutcome(category=category)
        try:
            content = await self.content_provider.fetch(entity_name, category)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(f"External content for {category.value} failed: {message}")
            outcome.errors.append(StageError(stage=f"{category.value}_search", message=message))
            await self._emit(streaming.category_completed(category.value, success=False))
            return outcome

        outcome.links = content.links
        snippets = valid_snippets(content.snippets)
        outcome.snippets_count = len(snippets)
        if snippets:
            summaries = await self._summarize_snippets(
                category, entity_name, preferences, snippets, outcome.errors
            )
            outcome.summary = "\n\n".join(summaries)

        await self._emit(
            streaming.category_completed(
                category.value,
                success=True,
                links_count=len(outcome.links),
                snippets_count=outcome.snippets_count,
            )
        )
        return outcome

    def _snippet_prompt(
        self,
        category: Category,
        entity_name: str,
        preferences: UserPreferences,
        snippet: str,
    ) -> str:
        return render_prompt(
            "analysis.snippet_summary",
            topic=category.topic,
            entity_name=entity_name,
            snippet=snippet[: self.prompt_char_limit],
            **preferences.trait_values(),
        )

    async def _summarize_snippets(
        self,
        category: Category,
        entity_name: str,
        preferences: UserPreferences,
        snippets: list[str],
        errors: list[StageError],
    ) -> list[str]:
        """Summarize snippets of one category strictly in sequence."""
        tasks = [f"{category.value} snippet {i + 1}" for i in range(len(snippets))]
        prompts = [self._snippet_prompt(category, entity_name, preferences, s) for s in snippets]
        stage = f"{category.value}_snippet"
        summaries: list[str] = []

        if self.session_mode == "per_category":
            try:
                async with generation_session(self.generation_service) as session:
                    for task, prompt in zip(tasks, prompts):
                        generated = await prompt_session(session, prompt, task)
                        if generated.failed:
                            errors.append(StageError(stage=stage, message=generated.error or ""))
                        summaries.append(generated.text)
            except Exception as e:
                message = str(e) or e.__class__.__name__
                logger.error(f"Generation session for {category.value} failed: {message}")
                errors.append(StageError(stage=stage, message=message))
                summaries.extend(error_placeholder(task, message) for task in tasks[len(summaries):])
            return summaries

        for task, prompt in zip(tasks, prompts):
            generated = await generate_text(self.generation_service, prompt, task)
            if generated.failed:
                errors.append(StageError(stage=stage, message=generated.error or ""))
            summaries.append(generated.text)
        return summaries

    async def _generate_app_tips(
        self, preferences: UserPreferences, result: AnalysisResult
    ) -> str:
        if not preferences.want_app_tips:
            logger.debug("Skipping application tip generation")
            return APP_TIPS_DISABLED

        context = f"Page Summary:\n{result.page_summary}\n\n"
        tips_links = result.links.get(Category.APP_TIPS, [])
        if tips_links:
            context += "Relevant pages found:\n" + "\n".join(
                f"- {link.title or link.url}" for link in tips_links
            ) + "\n\n"
        tips_research = result.category_summaries.get(Category.APP_TIPS, "")
        if tips_research:
            context += f"Application research notes:\n{tips_research}\n"

        prompt = render_prompt(
            "analysis.app_tips",
            context=context[: self.prompt_char_limit],
            **preferences.trait_values(),
        )
        generated = await generate_text(self.generation_service, prompt, "application tips")
        if generated.failed:
            result.errors.append(StageError(stage="app_tips", message=generated.error or ""))
        await self._emit(streaming.stage_completed("app_tips", success=not generated.failed))
        return generated.text

    async def _fail(self, message: str, *, stage: str) -> TopLevelFailure:
        failure = TopLevelFailure(message=message, stage=stage)
        await self._persist(failure.to_payload())
        await self._emit(streaming.error(message, stage=stage))
        return failure

    async def _persist(self, payload: dict[str, Any]) -> None:
        try:
            await self.store.replace(ANALYSIS_NAMESPACE, payload)
        except Exception as e:
            logger.exception(f"Failed to persist analysis record: {e}")

    async def _emit(self, event: SSEEvent) -> None:
        if self.on_event is None:
            return
        try:
            await self.on_event(event)
        except Exception as e:
            logger.warning(f"Event listener failed for {event.event.value}: {e}")

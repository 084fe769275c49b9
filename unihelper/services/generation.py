"""Generative-text capability with scoped session handling.

Every prompt runs inside a session that is created right before it and
destroyed in ``finally`` afterwards. ``generate_text`` is the one-shot path
(acquire, prompt, release); ``generation_session`` plus ``prompt_session`` let a
caller batch several prompts through one session.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Protocol

from loguru import logger

from unihelper.config import settings
from unihelper.errors import CapabilityUnavailable, MalformedResponse
from unihelper.llm_client import OpenRouterClientAdapter, get_client, get_model
from unihelper.services import logger as log_service
from unihelper.services.prompt_store import render_prompt

AVAILABLE_STATES = ("available", "readily", "downloadable")


class GenerationSession(Protocol):
    async def prompt(self, text: str) -> str: ...
    async def destroy(self) -> None: ...


class GenerativeTextService(Protocol):
    async def availability(self) -> str: ...
    async def create_session(self) -> GenerationSession: ...


@dataclass(frozen=True)
class GeneratedText:
    text: str
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def error_placeholder(task: str, message: str) -> str:
    return f"[Error during {task}: {message}]"


def _describe(exc: BaseException, timeout: float | None) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"timed out after {timeout}s"
    return str(exc) or exc.__class__.__name__


def _blank_prompt(task: str) -> GeneratedText:
    logger.warning(f"Empty prompt for {task}, skipping model call")
    return GeneratedText(text=f"[No input provided for {task}.]")


async def ensure_available(service: GenerativeTextService) -> None:
    """Raise ``CapabilityUnavailable`` unless the service can take prompts."""
    try:
        status = await service.availability()
    except Exception as exc:
        raise CapabilityUnavailable(f"Generative text service check failed: {exc}") from exc
    logger.debug(f"Generative text availability: {status}")
    if status not in AVAILABLE_STATES:
        raise CapabilityUnavailable(f"AI model is currently {status}. Check configuration.")


@asynccontextmanager
async def generation_session(service: GenerativeTextService) -> AsyncIterator[GenerationSession]:
    session = await service.create_session()
    try:
        yield session
    finally:
        try:
            await session.destroy()
        except Exception as exc:
            logger.warning(f"Failed to destroy generation session: {exc}")


async def prompt_session(
    session: GenerationSession,
    prompt: str,
    task: str,
    *,
    timeout: float | None = None,
) -> GeneratedText:
    """Prompt an acquired session; failures come back as a placeholder.

    The prompt is sent as given. Callers bound their variable inputs before
    rendering so the template text always survives.
    """
    if not prompt or not prompt.strip():
        return _blank_prompt(task)

    deadline = timeout if timeout is not None else settings.remote_call_timeout_seconds
    try:
        text = await asyncio.wait_for(session.prompt(prompt), timeout=deadline)
    except Exception as exc:
        message = _describe(exc, deadline)
        logger.error(f"Error generating text for {task}: {message}")
        return GeneratedText(text=error_placeholder(task, message), error=message)
    return GeneratedText(text=text)


async def generate_text(
    service: GenerativeTextService,
    prompt: str,
    task: str,
    *,
    timeout: float | None = None,
) -> GeneratedText:
    """One acquire/prompt/release cycle for a single logical task."""
    if not prompt or not prompt.strip():
        return _blank_prompt(task)

    logger.debug(f"Generating text for {task}")
    try:
        async with generation_session(service) as session:
            return await prompt_session(session, prompt, task, timeout=timeout)
    except Exception as exc:
        message = _describe(exc, timeout)
        logger.error(f"Could not open generation session for {task}: {message}")
        return GeneratedText(text=error_placeholder(task, message), error=message)


class OpenRouterSession:
    """One OpenRouter connection pool, closed when the session is destroyed."""

    def __init__(
        self,
        client: OpenRouterClientAdapter,
        *,
        model: str,
        max_tokens: int,
        system_prompt: str,
    ):
        self._client = client
        self.model = model
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt
        self._closed = False

    async def prompt(self, text: str) -> str:
        if self._closed:
            raise RuntimeError("Generation session already destroyed")
        t0 = time.monotonic()
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=self.system_prompt,
                messages=[{"role": "user", "content": text}],
            )
        except Exception as exc:
            log_service.log_llm_call(
                model=self.model,
                caller="generation",
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(exc),
            )
            raise

        log_service.log_llm_call(
            model=self.model,
            caller="generation",
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        result = response.text.strip()
        if not result:
            raise MalformedResponse("Model returned an empty response")
        return result

    async def destroy(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.close()


class OpenRouterTextService:
    """Generative-text capability backed by an OpenRouter model."""

    def __init__(
        self,
        model: str | None = None,
        *,
        client_factory: Callable[[], OpenRouterClientAdapter] = get_client,
    ):
        self.model = model or get_model()
        self._client_factory = client_factory

    async def availability(self) -> str:
        if not settings.openrouter_api_key.strip() or not self.model:
            return "unavailable"
        return "available"

    async def create_session(self) -> OpenRouterSession:
        return OpenRouterSession(
            self._client_factory(),
            model=self.model,
            max_tokens=settings.generation_max_tokens,
            system_prompt=render_prompt("generation.system_prompt"),
        )


_service: GenerativeTextService | None = None


def get_generation_service() -> GenerativeTextService:
    global _service
    if _service is None:
        _service = OpenRouterTextService()
    return _service

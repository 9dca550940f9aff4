# api.py
# Inbound entry points for a host (CLI, editor extension, service).
#
# Every entry point takes the credential explicitly; nothing here reads it
# from the environment. Settings come from the caller or Settings.from_env().
# Hosts that already hold a TextGenerator can pass it as `client` and the
# credential is then not used.

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Protocol

from code_helper.config import Settings
from code_helper.errors import MissingPrerequisite
from code_helper.llm import TextGenerationClient, TextGenerator
from code_helper.log import get_logger
from code_helper.models import AgentResponse, CodeReviewResult, ImplementationResult, PlanStep
from code_helper.orchestrator import AgentOrchestrator, StageCallback, derive_plan_steps
from code_helper.review import CodeReviewAgent
from code_helper.tools import ToolRegistry

logger = get_logger("api")


@asynccontextmanager
async def _generator(
    credential: str, settings: Settings, client: TextGenerator | None
) -> AsyncIterator[TextGenerator]:
    if client is not None:
        yield client
        return
    owned = TextGenerationClient(
        credential=credential,
        model=settings.model,
        base_url=settings.base_url,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        backoff_base=settings.backoff_base,
    )
    try:
        yield owned
    finally:
        await owned.aclose()


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


async def run_pipeline(
    code: str,
    instruction: str,
    file_name: str,
    credential: str,
    on_stage_update: StageCallback | None = None,
    *,
    settings: Settings | None = None,
    client: TextGenerator | None = None,
) -> AgentResponse:
    settings = settings or Settings.from_env()
    async with _generator(credential, settings, client) as generator:
        orchestrator = AgentOrchestrator(generator, ToolRegistry(settings.project_root), settings)
        return await orchestrator.run(code, instruction, file_name, on_stage_update)


def plan_steps(response: AgentResponse | None) -> list[PlanStep]:
    """Steps to implement; raises NoPlanStepsFound rather than returning []."""
    return derive_plan_steps(response)


async def generate_implementation(
    code: str,
    instruction: str,
    file_name: str,
    plan_steps: list[PlanStep],
    credential: str,
    *,
    settings: Settings | None = None,
    client: TextGenerator | None = None,
) -> ImplementationResult:
    settings = settings or Settings.from_env()
    async with _generator(credential, settings, client) as generator:
        orchestrator = AgentOrchestrator(generator, ToolRegistry(settings.project_root), settings)
        return await orchestrator.generate_implementation(code, instruction, file_name, plan_steps)


# ---------------------------------------------------------------------------
# Code review
# ---------------------------------------------------------------------------


async def run_code_review(
    code: str,
    file_name: str,
    credential: str,
    *,
    settings: Settings | None = None,
    client: TextGenerator | None = None,
) -> list[CodeReviewResult]:
    """Always four results, ordered bug, performance, security, clarity."""
    settings = settings or Settings.from_env()
    async with _generator(credential, settings, client) as generator:
        agent = CodeReviewAgent(generator, max_code_chars=settings.review_max_code_chars)
        return await agent.perform_code_review(code, file_name)


async def implement_review_fix(
    code: str,
    file_name: str,
    result: CodeReviewResult,
    credential: str,
    *,
    settings: Settings | None = None,
    client: TextGenerator | None = None,
) -> CodeReviewResult:
    settings = settings or Settings.from_env()
    async with _generator(credential, settings, client) as generator:
        agent = CodeReviewAgent(generator, max_code_chars=settings.review_max_code_chars)
        return await agent.implement_fix(code, file_name, result)


# ---------------------------------------------------------------------------
# Apply effect
# ---------------------------------------------------------------------------


class TextStore(Protocol):
    """Whatever holds the text being changed: a file, an editor buffer."""

    def read(self) -> str: ...

    def write(self, text: str) -> None: ...


class FileTextStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def write(self, text: str) -> None:
        self.path.write_text(text, encoding="utf-8")


def apply_changes(store: TextStore, new_code: str) -> str:
    """Replace the store's text with `new_code`; returns the previous text."""
    if not new_code.strip():
        raise MissingPrerequisite("No generated code to apply.")
    previous = store.read()
    store.write(new_code)
    logger.info("changes_applied", previous_chars=len(previous), new_chars=len(new_code))
    return previous

# analysis.py
# Context-gathering analysis agent: the "thinking" stage.
#
# Control flow:
#   seed context (4 tool calls) → thinking loop
#     → model call → gap policy → gap-closing tool calls → merge
#   → template summary (no model call)
#
# The loop stops after max_iterations or once confidence reaches the
# threshold. Gap detection lives behind GapPolicy so the loop never depends
# on how confidence is computed.

import asyncio
import re
from typing import Awaitable, Callable, Protocol

from code_helper import prompts
from code_helper.errors import InvalidCredential, error_code
from code_helper.llm import TextGenerator
from code_helper.log import get_logger
from code_helper.models import ContextGap, ContextGatheringResult, GapKind, StageType, StageUpdate
from code_helper.tools import ToolRegistry

logger = get_logger("analysis")

Emit = Callable[[StageUpdate], Awaitable[None]]

STOPWORDS = frozenset(
    {
        "add", "create", "implement", "the", "a", "an", "and", "or", "but",
        "in", "on", "at", "to", "for", "of", "with", "by",
    }
)
MAX_SEARCH_TERMS = 5
MAX_IDENTIFIER_CANDIDATES = 3
MIN_TERM_LENGTH = 4
FALLBACK_SEARCH_QUERY = "code implementation"

_IDENTIFIER_TOKEN = re.compile(r"\b[a-zA-Z][a-zA-Z0-9]*\b")


def extract_search_terms(instruction: str) -> list[str]:
    """Lower-cased words of at least four letters that are not stopwords, first five."""
    words = instruction.lower().split()
    terms = [w for w in words if len(w) >= MIN_TERM_LENGTH and w not in STOPWORDS]
    return terms[:MAX_SEARCH_TERMS]


def extract_identifier_candidates(instruction: str) -> list[str]:
    """Identifier-shaped tokens of at least four characters, first three, case kept."""
    tokens = _IDENTIFIER_TOKEN.findall(instruction)
    return [t for t in tokens if len(t) >= MIN_TERM_LENGTH][:MAX_IDENTIFIER_CANDIDATES]


# ---------------------------------------------------------------------------
# Gap policy
# ---------------------------------------------------------------------------


class GapPolicy(Protocol):
    def assess(self, reply: str, context: ContextGatheringResult) -> ContextGap: ...


class HeuristicGapPolicy:
    """
    Scores the gathered context by size and the reply by lexical cues.

    Confidence starts at 0.5 and loses 0.2 for a thin project structure,
    0.3 for no search reports and 0.2 for thin dependency data, floored at 0.
    More context is wanted when the reply asks for it or confidence is
    below the threshold.
    """

    BASE_CONFIDENCE = 0.5
    CUES = ("need more", "gather", "additional")

    def __init__(self, threshold: float = 0.8) -> None:
        self.threshold = threshold

    def assess(self, reply: str, context: ContextGatheringResult) -> ContextGap:
        gaps: list[GapKind] = []
        confidence = self.BASE_CONFIDENCE

        if len(context.project_structure) < 200:
            gaps.append("project_structure")
            confidence -= 0.2
        if not context.relevant_files:
            gaps.append("relevant_files")
            confidence -= 0.3
        if len(context.dependencies) < 100:
            gaps.append("dependencies")
            confidence -= 0.2

        confidence = max(0.0, round(confidence, 4))
        lowered = reply.lower()
        needs_more = any(cue in lowered for cue in self.CUES) or confidence < self.threshold
        return ContextGap(needs_more_context=needs_more, gaps=gaps, confidence=confidence)


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class ContextGatheringAgent:
    """
    Builds a picture of the codebase before any planning happens.

    Example:
        agent = ContextGatheringAgent(client, ToolRegistry("."))
        thinking = await agent.analyze(code, "add input validation", "calc.js")
    """

    def __init__(
        self,
        client: TextGenerator,
        tools: ToolRegistry,
        *,
        max_iterations: int = 5,
        threshold: float = 0.8,
        iteration_delay: float = 1.0,
        policy: GapPolicy | None = None,
    ) -> None:
        self.client = client
        self.tools = tools
        self.max_iterations = max_iterations
        self.threshold = threshold
        self.iteration_delay = iteration_delay
        self.policy = policy or HeuristicGapPolicy(threshold)

    async def analyze(
        self,
        code: str,
        instruction: str,
        file_name: str,
        emit: Emit | None = None,
    ) -> str:
        if emit:
            await emit(
                StageUpdate(
                    stage_type=StageType.THINKING,
                    content="Gathering project context...",
                )
            )

        context = await self.seed_context(instruction, file_name)
        transcript, context = await self.thinking_loop(code, instruction, file_name, context, emit)
        summary = summarize(transcript, context)

        if emit:
            await emit(
                StageUpdate(stage_type=StageType.THINKING, content=summary, is_complete=True)
            )
        return summary

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    async def _tool(self, name: str, params: dict) -> str:
        try:
            return await self.tools.invoke(name, params)
        except Exception as exc:
            logger.warning("context_tool_failed", tool=name, error=str(exc))
            return f"Unable to run {name}: {exc}"

    async def _search_all(self, instruction: str) -> list[str]:
        return [await self._tool("search", {"query": t}) for t in extract_search_terms(instruction)]

    async def seed_context(self, instruction: str, file_name: str) -> ContextGatheringResult:
        structure = await self._tool("describe_project", {"depth": "medium"})
        relevant = await self._search_all(instruction)
        identifiers = [
            await self._tool("find_identifier", {"name": name, "scope": "project_wide"})
            for name in extract_identifier_candidates(instruction)
        ]
        dependencies = await self._tool(
            "describe_dependencies", {"file_path": file_name, "include_dev": False}
        )
        logger.debug(
            "context_seeded",
            structure_chars=len(structure),
            search_reports=len(relevant),
            identifier_reports=len(identifiers),
        )
        return ContextGatheringResult(
            project_structure=structure,
            relevant_files=relevant,
            existing_variables=identifiers,
            dependencies=dependencies,
        )

    async def close_gaps(self, gaps: list[GapKind], file_name: str) -> ContextGatheringResult:
        additional = ContextGatheringResult()
        for gap in gaps:
            match gap:
                case "project_structure":
                    additional.project_structure = await self._tool(
                        "describe_project", {"depth": "deep"}
                    )
                case "relevant_files":
                    additional.relevant_files = await self._search_all(FALLBACK_SEARCH_QUERY)
                case "dependencies":
                    additional.dependencies = await self._tool(
                        "describe_dependencies", {"file_path": file_name, "include_dev": True}
                    )
        return additional

    # ------------------------------------------------------------------
    # Thinking loop
    # ------------------------------------------------------------------

    async def _think(self, prompt: str) -> str:
        try:
            return await self.client.call(prompt)
        except InvalidCredential:
            raise
        except Exception as exc:
            logger.warning(
                "context_model_call_failed", error_code=error_code(exc).value, error=str(exc)
            )
            return f"Error getting model response: {exc}"

    async def thinking_loop(
        self,
        code: str,
        instruction: str,
        file_name: str,
        context: ContextGatheringResult,
        emit: Emit | None = None,
    ) -> tuple[str, ContextGatheringResult]:
        transcript: list[str] = []
        confidence = 0.0
        iteration = 0

        while iteration < self.max_iterations and confidence < self.threshold:
            if iteration:
                await asyncio.sleep(self.iteration_delay)

            prompt = prompts.thinking_iteration(code, instruction, file_name, context, iteration + 1)
            reply = await self._think(prompt)
            transcript.append(f"--- Iteration {iteration + 1} ---\n{reply}")

            gap = self.policy.assess(reply, context)
            if gap.needs_more_context:
                context = context.merge(await self.close_gaps(gap.gaps, file_name))
                confidence = gap.confidence
            else:
                confidence = 1.0
            iteration += 1

            logger.debug(
                "context_iteration_complete",
                iteration=iteration,
                confidence=confidence,
                gaps=gap.gaps,
            )
            if emit:
                await emit(
                    StageUpdate(
                        stage_type=StageType.THINKING,
                        content=(
                            f"Context gathering iteration {iteration}/{self.max_iterations} "
                            f"(confidence {confidence:.2f})"
                        ),
                    )
                )

        return "\n\n".join(transcript), context


def summarize(transcript: str, context: ContextGatheringResult) -> str:
    """Final thinking narrative, formatted from the gathered context."""
    return f"""\
# Intelligent Analysis Complete

## Context Gathered
- **Project Structure**: {len(context.project_structure.splitlines())} lines of directory layout
- **Relevant Files**: {len(context.relevant_files)} search reports
- **Existing Identifiers**: {len(context.existing_variables)} identifier lookups
- **Dependencies**: file imports and declared project dependencies

## Thinking Process
{transcript}

## Final Assessment
The gathered context covers:
1. How the project is organized
2. Existing code that relates to the request
3. Identifiers already declared and where they are used
4. Imports and declared dependencies

Observations, approach and plan build on this context so the change reuses what exists."""

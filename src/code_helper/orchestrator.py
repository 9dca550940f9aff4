# orchestrator.py
# Agent orchestrator: the four-stage planning pipeline.
#
# Control flow (strictly ordered, each stage feeds the next):
#   thinking → observations → approach → plan → AgentResponse
#
# Streaming is opt-in: pass on_stage_update and every stage is announced
# with an is_complete=False placeholder and closed with one is_complete=True
# update. The callback may be a plain function or a coroutine function.
#
# Failure policy:
#   observations / approach fail  → placeholder streamed, stage recorded in
#                                   failed_stages, empty value in the
#                                   response, pipeline continues
#   plan fails or is empty        → PipelineFailed
#   thinking InvalidCredential    → propagates unchanged

import inspect
from typing import Awaitable, Callable

from code_helper.agents import (
    ApproachAgent,
    ImplementationAgent,
    ObservationAgent,
    PlanningAgent,
)
from code_helper.analysis import ContextGatheringAgent, Emit, GapPolicy
from code_helper.config import Settings
from code_helper.errors import MissingPrerequisite, NoPlanStepsFound, PipelineFailed
from code_helper.llm import TextGenerator
from code_helper.log import get_logger
from code_helper.models import (
    AgentResponse,
    ImplementationResult,
    PlanStep,
    StageFailed,
    StageType,
    StageUpdate,
)
from code_helper.parsing import extract_plan_steps
from code_helper.tools import ToolRegistry

logger = get_logger("orchestrator")

StageCallback = Callable[[StageUpdate], Awaitable[None] | None]

PROGRESS_MESSAGES: dict[StageType, str] = {
    StageType.OBSERVATIONS: "Generating observations from the analysis...",
    StageType.APPROACH: "Defining the implementation approach...",
    StageType.PLAN: "Creating the detailed plan...",
}


def _emitter(callback: StageCallback | None) -> Emit | None:
    if callback is None:
        return None

    async def emit(update: StageUpdate) -> None:
        result = callback(update)
        if inspect.isawaitable(result):
            await result

    return emit


def derive_plan_steps(response: AgentResponse | None) -> list[PlanStep]:
    """
    Ordered plan steps from a finished pipeline run.

    Raises MissingPrerequisite when there is no usable plan and
    NoPlanStepsFound when the plan has no `### Step N:` headings.
    """
    if response is None or not response.detailed_plan.strip():
        raise MissingPrerequisite("No plan has been generated yet.")
    if StageType.PLAN in response.failed_stages:
        raise MissingPrerequisite("The plan stage failed; regenerate the plan.")

    steps = extract_plan_steps(response.detailed_plan)
    if not steps:
        raise NoPlanStepsFound("No valid plan steps found in the detailed plan.")
    return steps


class AgentOrchestrator:
    """
    Drives analysis, observations, approach and plan for one request.

    Example:
        orchestrator = AgentOrchestrator(client, ToolRegistry("."))
        response = await orchestrator.run(code, "add input validation", "calc.js")
        steps = orchestrator.execute(response)
        result = await orchestrator.generate_implementation(code, "add input validation", "calc.js", steps)
    """

    def __init__(
        self,
        client: TextGenerator,
        tools: ToolRegistry,
        settings: Settings | None = None,
        *,
        policy: GapPolicy | None = None,
    ) -> None:
        settings = settings or Settings()
        self.analysis = ContextGatheringAgent(
            client,
            tools,
            max_iterations=settings.max_thinking_iterations,
            threshold=settings.context_threshold,
            iteration_delay=settings.iteration_delay,
            policy=policy,
        )
        self.observer = ObservationAgent(client)
        self.architect = ApproachAgent(client)
        self.planner = PlanningAgent(client)
        self.implementer = ImplementationAgent(client)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def run(
        self,
        code: str,
        instruction: str,
        file_name: str,
        on_stage_update: StageCallback | None = None,
    ) -> AgentResponse:
        emit = _emitter(on_stage_update)
        failed: list[StageType] = []
        logger.info("pipeline_started", file_name=file_name, streaming=emit is not None)

        # ── Thinking ─────────────────────────────────────────────────
        thinking = await self.analysis.analyze(code, instruction, file_name, emit)

        # ── Observations ─────────────────────────────────────────────
        await self._announce(emit, StageType.OBSERVATIONS)
        outcome = await self.observer.generate(code, instruction, file_name, thinking)
        if isinstance(outcome, StageFailed):
            failed.append(StageType.OBSERVATIONS)
            observations: list[str] = []
            shown = [outcome.placeholder]
        else:
            observations = list(outcome.value)
            shown = observations
        if emit:
            await emit(
                StageUpdate(
                    stage_type=StageType.OBSERVATIONS,
                    content="",
                    points=shown,
                    is_complete=True,
                )
            )

        # ── Approach ─────────────────────────────────────────────────
        await self._announce(emit, StageType.APPROACH)
        outcome = await self.architect.generate(
            code, instruction, file_name, thinking, observations
        )
        if isinstance(outcome, StageFailed):
            failed.append(StageType.APPROACH)
            approach = ""
            approach_shown = outcome.placeholder
        else:
            approach = approach_shown = str(outcome.value)
        await self._complete(emit, StageType.APPROACH, approach_shown)

        # ── Plan ─────────────────────────────────────────────────────
        await self._announce(emit, StageType.PLAN)
        outcome = await self.planner.generate(code, instruction, file_name, thinking, approach)
        if isinstance(outcome, StageFailed):
            logger.error("pipeline_failed", stage="plan", error_code=outcome.code)
            raise PipelineFailed(StageType.PLAN.value, outcome.reason, outcome.code)
        detailed_plan = str(outcome.value)
        await self._complete(emit, StageType.PLAN, detailed_plan)

        logger.info("pipeline_complete", failed_stages=[s.value for s in failed])
        return AgentResponse(
            thinking=thinking,
            observations=tuple(observations),
            approach=approach,
            detailed_plan=detailed_plan,
            failed_stages=tuple(failed),
        )

    async def _announce(self, emit: Emit | None, stage: StageType) -> None:
        if emit:
            await emit(StageUpdate(stage_type=stage, content=PROGRESS_MESSAGES[stage]))

    async def _complete(self, emit: Emit | None, stage: StageType, content: str) -> None:
        if emit:
            await emit(StageUpdate(stage_type=stage, content=content, is_complete=True))

    # ------------------------------------------------------------------
    # Post-pipeline
    # ------------------------------------------------------------------

    def execute(self, response: AgentResponse | None) -> list[PlanStep]:
        return derive_plan_steps(response)

    async def generate_implementation(
        self,
        code: str,
        instruction: str,
        file_name: str,
        plan_steps: list[PlanStep],
    ) -> ImplementationResult:
        return await self.implementer.generate(code, instruction, file_name, plan_steps)


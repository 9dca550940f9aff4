# agents.py
# Observation, approach, planning and implementation agents.
#
# The three intermediate stage agents never raise on a generator failure: they
# return StageFailed carrying the reason, the error code and the placeholder
# text the host is shown. The orchestrator decides whether a failure is
# fatal. The implementation agent is a terminal step and propagates errors.

from code_helper import prompts
from code_helper.errors import ErrorCode, MalformedResponse, NoPlanStepsFound, error_code
from code_helper.llm import TextGenerator
from code_helper.log import get_logger
from code_helper.models import (
    ImplementationResult,
    PlanStep,
    StageFailed,
    StageOk,
    StageOutcome,
    StageType,
)
from code_helper.parsing import parse_ai_response, parse_numbered_list

logger = get_logger("agents")

PLACEHOLDERS: dict[StageType, str] = {
    StageType.OBSERVATIONS: "Error generating observations",
    StageType.APPROACH: "Error defining approach",
    StageType.PLAN: "Error creating detailed plan",
}


class _StageAgent:
    stage: StageType

    def __init__(self, client: TextGenerator) -> None:
        self.client = client

    def _failed(self, reason: str, code: str) -> StageFailed:
        logger.warning("stage_failed", stage=self.stage.value, error_code=code, reason=reason)
        return StageFailed(reason=reason, code=code, placeholder=PLACEHOLDERS[self.stage])

    async def _ask(self, prompt: str) -> str | StageFailed:
        try:
            return await self.client.call(prompt)
        except Exception as exc:
            return self._failed(str(exc), error_code(exc).value)


class ObservationAgent(_StageAgent):
    """Turns the thinking narrative into 3-5 numbered observations."""

    stage = StageType.OBSERVATIONS

    async def generate(
        self, code: str, instruction: str, file_name: str, thinking: str
    ) -> StageOutcome:
        reply = await self._ask(prompts.observations(code, instruction, file_name, thinking))
        if isinstance(reply, StageFailed):
            return reply
        points = parse_numbered_list(reply)
        if not points:
            return self._failed("Reply contained no numbered observations.", ErrorCode.MALFORMED_RESPONSE.value)
        return StageOk(value=points)


class ApproachAgent(_StageAgent):
    """Free-form approach prose; the whole reply is the stage output."""

    stage = StageType.APPROACH

    async def generate(
        self,
        code: str,
        instruction: str,
        file_name: str,
        thinking: str,
        observations: list[str],
    ) -> StageOutcome:
        reply = await self._ask(
            prompts.approach(code, instruction, file_name, thinking, observations)
        )
        if isinstance(reply, StageFailed):
            return reply
        if not reply.strip():
            return self._failed("Reply was empty.", ErrorCode.MALFORMED_RESPONSE.value)
        return StageOk(value=reply.strip())


class PlanningAgent(_StageAgent):
    """Markdown phase/step plan, returned raw. Steps are extracted later."""

    stage = StageType.PLAN

    async def generate(
        self,
        code: str,
        instruction: str,
        file_name: str,
        thinking: str,
        approach: str,
    ) -> StageOutcome:
        reply = await self._ask(
            prompts.detailed_plan(code, instruction, file_name, thinking, approach)
        )
        if isinstance(reply, StageFailed):
            return reply
        if not reply.strip():
            return self._failed("Reply was empty.", ErrorCode.MALFORMED_RESPONSE.value)
        logger.debug("plan_generated", plan_chars=len(reply))
        return StageOk(value=reply.strip())


class ImplementationAgent:
    """
    Generates replacement code for a file from approved plan steps.

    Raises NoPlanStepsFound for an empty step list, MalformedResponse when
    the reply has no NEW_CODE section, and any TextGenerationError from the
    client once its retries are spent.
    """

    def __init__(self, client: TextGenerator) -> None:
        self.client = client

    async def generate(
        self,
        code: str,
        instruction: str,
        file_name: str,
        plan_steps: list[PlanStep],
    ) -> ImplementationResult:
        if not plan_steps:
            raise NoPlanStepsFound("No valid plan steps to implement.")

        reply = await self.client.call(
            prompts.implementation(code, instruction, file_name, plan_steps)
        )
        parsed = parse_ai_response(reply)
        if not parsed.new_code:
            raise MalformedResponse("Reply contained no NEW_CODE_START/NEW_CODE_END section.")

        logger.debug(
            "implementation_generated",
            code_chars=len(parsed.new_code),
            reply_steps=len(parsed.plan),
        )
        return ImplementationResult(
            new_code=parsed.new_code,
            explanation=parsed.explanation,
            plan=parsed.plan,
        )

# review.py
# Code review agent: four independent single-shot analyses of one file.
#
# Aspects run concurrently but results always come back in the fixed order
# bug, performance, security, clarity. A client failure in one aspect turns
# into a FAILED result for that aspect only, whatever the exception type.

import asyncio

from code_helper import prompts
from code_helper.errors import MalformedResponse, MissingPrerequisite, error_code
from code_helper.llm import TextGenerator
from code_helper.log import get_logger
from code_helper.models import REVIEW_ORDER, CodeReviewResult, ReviewAspect, ReviewOutcome
from code_helper.parsing import parse_ai_response, parse_review_response

logger = get_logger("review")

TRUNCATION_MARKER = "\n\n[Code truncated for analysis due to length]"


def truncate_code(code: str, max_chars: int) -> str:
    if len(code) <= max_chars:
        return code
    return code[:max_chars] + TRUNCATION_MARKER


def failed_result(aspect: ReviewAspect, exc: Exception) -> CodeReviewResult:
    return CodeReviewResult(
        aspect=aspect,
        outcome=ReviewOutcome.FAILED,
        has_issues=True,
        issues=[f"API call failed: {exc}"],
        recommendations=["Check API key and network connection"],
        steps=["Verify your API key", "Check internet connection", "Retry analysis"],
        error_code=error_code(exc).value,
    )


class CodeReviewAgent:
    """
    Example:
        agent = CodeReviewAgent(client)
        results = await agent.perform_code_review(source, "calc.py")
        fixed = await agent.implement_fix(source, "calc.py", results[0])
    """

    def __init__(self, client: TextGenerator, *, max_code_chars: int = 10_000) -> None:
        self.client = client
        self.max_code_chars = max_code_chars

    async def perform_code_review(self, code: str, file_name: str) -> list[CodeReviewResult]:
        if not code or not code.strip():
            raise MissingPrerequisite("No code content provided for review.")

        if len(code) > self.max_code_chars:
            logger.warning(
                "review_code_truncated", code_chars=len(code), limit=self.max_code_chars
            )
        reviewed = truncate_code(code, self.max_code_chars)

        results = await asyncio.gather(
            *(self.review_aspect(aspect, reviewed, file_name) for aspect in REVIEW_ORDER)
        )
        logger.info(
            "review_complete",
            file_name=file_name,
            outcomes={r.aspect.value: r.outcome.value for r in results},
        )
        return list(results)

    async def review_aspect(
        self, aspect: ReviewAspect, code: str, file_name: str
    ) -> CodeReviewResult:
        try:
            reply = await self.client.call(prompts.review(aspect, code, file_name))
        except Exception as exc:
            logger.warning(
                "review_aspect_failed",
                aspect=aspect.value,
                error_code=error_code(exc).value,
                error=str(exc),
            )
            return failed_result(aspect, exc)

        result = parse_review_response(aspect, reply)
        if result.outcome is ReviewOutcome.UNPARSED:
            logger.warning("review_reply_unparsed", aspect=aspect.value, preview=result.raw_preview)
        return result

    async def implement_fix(
        self, code: str, file_name: str, result: CodeReviewResult
    ) -> CodeReviewResult:
        """
        Ask for code that resolves one aspect's findings.

        Returns a copy of `result` with generated_code set; the input is not
        modified. Client errors propagate.
        """
        if result.outcome is not ReviewOutcome.ISSUES_FOUND:
            raise MissingPrerequisite(
                f"The {result.aspect.value} review has no findings to implement."
            )

        reply = await self.client.call(
            prompts.review_fix(
                result.aspect,
                code,
                file_name,
                result.issues,
                result.recommendations,
                result.steps,
            )
        )
        new_code = parse_ai_response(reply).new_code
        if not new_code:
            raise MalformedResponse("Reply contained no NEW_CODE_START/NEW_CODE_END section.")
        return result.model_copy(update={"generated_code": new_code})

# errors.py
# Error taxonomy shared by the client, the agents and the orchestrator.
#
# Every error carries a stable ErrorCode so hosts can branch on the kind of
# failure instead of matching message text.

from enum import Enum


class ErrorCode(str, Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    REQUEST_FAILED = "request_failed"
    NO_PLAN_STEPS = "no_plan_steps"
    MISSING_PREREQUISITE = "missing_prerequisite"
    PIPELINE_FAILED = "pipeline_failed"
    UNEXPECTED = "unexpected_error"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CodeHelperError(Exception):
    """Base class. `code` identifies the failure kind."""

    code: ErrorCode = ErrorCode.REQUEST_FAILED
    retryable: bool = False


class TextGenerationError(CodeHelperError):
    """Raised by the text-generation client once its retry budget is spent."""


class InvalidCredential(TextGenerationError):
    """The API key was rejected (HTTP 401) or missing. Terminal."""

    code = ErrorCode.INVALID_CREDENTIAL


class RateLimited(TextGenerationError):
    """HTTP 429."""

    code = ErrorCode.RATE_LIMITED
    retryable = True


class ServerError(TextGenerationError):
    """HTTP 5xx."""

    code = ErrorCode.SERVER_ERROR
    retryable = True


class Timeout(TextGenerationError):
    """A single attempt exceeded the request timeout. Not retried: it carries no status."""

    code = ErrorCode.TIMEOUT


class MalformedResponse(TextGenerationError):
    """The reply did not have the expected nested shape. Never retried."""

    code = ErrorCode.MALFORMED_RESPONSE


class RequestFailed(TextGenerationError):
    """Any other 4xx, or a transport failure before a response arrived."""

    code = ErrorCode.REQUEST_FAILED


class NoPlanStepsFound(CodeHelperError):
    """The detailed plan contained no '### Step N:' headings."""

    code = ErrorCode.NO_PLAN_STEPS


class MissingPrerequisite(CodeHelperError):
    """An operation was invoked before its inputs existed (no plan, no code)."""

    code = ErrorCode.MISSING_PREREQUISITE


class PipelineFailed(CodeHelperError):
    """A stage failed in a way that leaves the final plan unusable."""

    code = ErrorCode.PIPELINE_FAILED

    def __init__(self, stage: str, reason: str, cause_code: str | None = None) -> None:
        super().__init__(f"Stage '{stage}' failed: {reason}")
        self.stage = stage
        self.reason = reason
        self.cause_code = cause_code


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

_USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_CREDENTIAL: "Your API key was rejected. Check the key and try again.",
    ErrorCode.RATE_LIMITED: "The model service is rate limiting requests. Wait a moment and retry.",
    ErrorCode.SERVER_ERROR: "The model service is having problems. Try again later.",
    ErrorCode.TIMEOUT: "The model service did not answer in time. Try again.",
    ErrorCode.MALFORMED_RESPONSE: "The model service returned an unexpected reply.",
    ErrorCode.REQUEST_FAILED: "The request to the model service failed. Check your connection.",
    ErrorCode.NO_PLAN_STEPS: "The generated plan has no steps to implement. Regenerate the plan.",
    ErrorCode.MISSING_PREREQUISITE: "A required input is missing. Generate a plan first, or provide code to work on.",
    ErrorCode.PIPELINE_FAILED: "The planning pipeline could not produce a usable plan.",
    ErrorCode.UNEXPECTED: "Something unexpected went wrong. Run with --verbose for details.",
}


def error_code(exc: BaseException) -> ErrorCode:
    """The code for any exception; UNEXPECTED for anything outside the taxonomy."""
    if isinstance(exc, CodeHelperError):
        return exc.code
    return ErrorCode.UNEXPECTED


def user_message(exc: BaseException) -> str:
    """Actionable text for a host to show. Falls back to the exception text."""
    if isinstance(exc, PipelineFailed) and exc.cause_code:
        cause = {c.value: m for c, m in _USER_MESSAGES.items()}.get(exc.cause_code)
        if cause:
            return f"{_USER_MESSAGES[ErrorCode.PIPELINE_FAILED]} {cause}"
    if isinstance(exc, CodeHelperError):
        return _USER_MESSAGES.get(exc.code, str(exc))
    return str(exc)

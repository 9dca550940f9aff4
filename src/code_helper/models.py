# models.py
# Data contracts for the planning pipeline and code review.
# No business logic lives here beyond small invariant-preserving helpers.
#
# Python names are snake_case; hosts receive camelCase keys through the
# serialization aliases (model_dump(by_alias=True)).

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Contract(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


class StageType(str, Enum):
    THINKING = "thinking"
    OBSERVATIONS = "observations"
    APPROACH = "approach"
    PLAN = "plan"


STAGE_ORDER: tuple[StageType, ...] = (
    StageType.THINKING,
    StageType.OBSERVATIONS,
    StageType.APPROACH,
    StageType.PLAN,
)


class StageUpdate(_Contract):
    """A partial or final notification for one pipeline stage."""

    stage_type: StageType = Field(..., alias="type")
    content: str = Field(default="", description="Stage text, or a progress message while running.")
    is_complete: bool = False
    points: list[str] | None = Field(
        default=None, description="Observation points; only set on the final observations update."
    )

    def to_message(self) -> dict:
        """Wire shape delivered to the host sink."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AgentResponse(_Contract):
    """Aggregate output of one pipeline run. Immutable once returned; sequences are tuples."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    thinking: str
    observations: tuple[str, ...] = Field(
        ..., description="Observation points; empty when the observations stage failed."
    )
    approach: str
    detailed_plan: str
    failed_stages: tuple[StageType, ...] = ()


class PlanStep(_Contract):
    step: int = Field(..., ge=1, description="1-based position in the plan.")
    description: str
    status: Literal["pending", "executing", "completed"] = "pending"


# ---------------------------------------------------------------------------
# Tagged stage results
# ---------------------------------------------------------------------------


class StageOk(BaseModel):
    value: str | list[str]

    @property
    def ok(self) -> bool:
        return True


class StageFailed(BaseModel):
    """A stage that could not produce output. `placeholder` is what the host sees."""

    reason: str
    code: str
    placeholder: str

    @property
    def ok(self) -> bool:
        return False


StageOutcome = StageOk | StageFailed


# ---------------------------------------------------------------------------
# Context gathering
# ---------------------------------------------------------------------------

GapKind = Literal["project_structure", "relevant_files", "dependencies"]


class ContextGatheringResult(_Contract):
    """Accumulated codebase context. Fields only grow across iterations."""

    project_structure: str = ""
    relevant_files: list[str] = Field(default_factory=list)
    existing_variables: list[str] = Field(default_factory=list)
    dependencies: str = ""
    analysis: str = ""

    def merge(self, additional: "ContextGatheringResult") -> "ContextGatheringResult":
        """Lists are concatenated; scalars are replaced only when the addition is non-empty."""
        return ContextGatheringResult(
            project_structure=additional.project_structure or self.project_structure,
            relevant_files=[*self.relevant_files, *additional.relevant_files],
            existing_variables=[*self.existing_variables, *additional.existing_variables],
            dependencies=additional.dependencies or self.dependencies,
            analysis=additional.analysis or self.analysis,
        )


class ContextGap(_Contract):
    needs_more_context: bool
    gaps: list[GapKind] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Structured replies
# ---------------------------------------------------------------------------


class ParsedAIResponse(_Contract):
    """Sections of a PLAN/EXPLANATION/NEW_CODE reply. Missing sections are empty."""

    plan_text: str = ""
    plan: list[PlanStep] = Field(default_factory=list)
    explanation: str = ""
    new_code: str = ""


class ImplementationResult(_Contract):
    new_code: str
    explanation: str = ""
    plan: list[PlanStep] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Code review
# ---------------------------------------------------------------------------


class ReviewAspect(str, Enum):
    BUG = "bug"
    PERFORMANCE = "performance"
    SECURITY = "security"
    CLARITY = "clarity"


REVIEW_ORDER: tuple[ReviewAspect, ...] = (
    ReviewAspect.BUG,
    ReviewAspect.PERFORMANCE,
    ReviewAspect.SECURITY,
    ReviewAspect.CLARITY,
)


class ReviewOutcome(str, Enum):
    CLEAN = "clean"
    ISSUES_FOUND = "issues_found"
    UNPARSED = "unparsed"
    FAILED = "failed"


class CodeReviewResult(_Contract):
    aspect: ReviewAspect = Field(..., alias="type")
    outcome: ReviewOutcome
    has_issues: bool
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    raw_preview: str | None = Field(default=None, description="Start of an unparseable reply.")
    error_code: str | None = None
    generated_code: str | None = None

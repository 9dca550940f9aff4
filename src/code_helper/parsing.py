# parsing.py
# Structured-text extraction from free-form model replies.
#
# Nothing in this module raises on odd input: a missing section yields an
# empty string or list, and the caller decides whether that is fatal.

import re

from code_helper.models import (
    CodeReviewResult,
    ParsedAIResponse,
    PlanStep,
    ReviewAspect,
    ReviewOutcome,
)
from code_helper.prompts import no_issues_sentinel

RAW_PREVIEW_CHARS = 200

_NUMBERED_LINE = re.compile(r"^\s*\d+\.\s*")
_STEP_HEADING = re.compile(r"^\s*###\s*Step\s+\d+\s*:\s*(.+?)\s*$")
_FENCE_OPEN = re.compile(r"^\s*```[\w.+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


# ---------------------------------------------------------------------------
# Marker sections
# ---------------------------------------------------------------------------


def extract_section(text: str, name: str) -> str:
    """Body between NAME_START and NAME_END, trimmed; "" when either marker is absent."""
    match = re.search(rf"{re.escape(name)}_START(.*?){re.escape(name)}_END", text, re.DOTALL)
    return match.group(1).strip() if match else ""


def parse_numbered_list(text: str) -> list[str]:
    """Lines starting with `<int>.`, prefix stripped, in order."""
    items = []
    for line in text.splitlines():
        if _NUMBERED_LINE.match(line):
            item = _NUMBERED_LINE.sub("", line, count=1).strip()
            if item:
                items.append(item)
    return items


def _plan_from_text(plan_text: str) -> list[PlanStep]:
    # Numbered lines win; a reply that ignored numbering still yields one
    # step per non-empty line.
    lines = parse_numbered_list(plan_text)
    if not lines:
        lines = [line.strip() for line in plan_text.splitlines() if line.strip()]
    return [PlanStep(step=i, description=line) for i, line in enumerate(lines, start=1)]


def parse_ai_response(raw: str) -> ParsedAIResponse:
    """
    Split a PLAN / EXPLANATION / NEW_CODE reply into its sections.

    Each marker pair is extracted independently, so a reply missing one
    section still yields the other two.
    """
    plan_text = extract_section(raw, "PLAN")
    return ParsedAIResponse(
        plan_text=plan_text,
        plan=_plan_from_text(plan_text),
        explanation=extract_section(raw, "EXPLANATION"),
        new_code=strip_code_fence(extract_section(raw, "NEW_CODE")),
    )


def strip_code_fence(code: str) -> str:
    """Remove a leading ```lang line and a trailing ``` if present."""
    stripped = _FENCE_OPEN.sub("", code, count=1)
    stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


# ---------------------------------------------------------------------------
# Plan headings
# ---------------------------------------------------------------------------


def extract_plan_steps(detailed_plan: str) -> list[PlanStep]:
    """
    `### Step N: Title` headings from a markdown plan, renumbered 1..n in
    document order. Returns [] when there are none.
    """
    titles = []
    for line in detailed_plan.splitlines():
        match = _STEP_HEADING.match(line)
        if match:
            titles.append(match.group(1))
    return [PlanStep(step=i, description=title) for i, title in enumerate(titles, start=1)]


# ---------------------------------------------------------------------------
# Code review replies
# ---------------------------------------------------------------------------

_SECTION_HEADERS = {
    "ISSUES:": "issues",
    "RECOMMENDATIONS:": "recommendations",
    "STEPS:": "steps",
}

# Lines the model writes when it found nothing; never counted as findings.
NO_ISSUE_SENTINELS = (
    "no issues detected",
    "no bugs detected",
    "no performance issues detected",
    "no security issues detected",
    "no clarity issues detected",
    "no recommendations needed",
    "no action required",
)


def is_sentinel(item: str) -> bool:
    lowered = item.lower()
    return any(phrase in lowered for phrase in NO_ISSUE_SENTINELS)


def parse_review_response(aspect: ReviewAspect, raw: str) -> CodeReviewResult:
    """
    Run the ISSUES / RECOMMENDATIONS / STEPS state machine over a review reply.

    Outcomes:
      ISSUES_FOUND  at least one non-sentinel bullet was collected
      CLEAN         a section header was present but every bullet was a sentinel
      UNPARSED      no section header at all; raw_preview keeps the reply start
    """
    sections: dict[str, list[str]] = {"issues": [], "recommendations": [], "steps": []}
    current: str | None = None
    saw_header = False

    for line in raw.splitlines():
        trimmed = line.strip()
        if trimmed in _SECTION_HEADERS:
            current = _SECTION_HEADERS[trimmed]
            saw_header = True
            continue
        if current is None or not trimmed.startswith("-"):
            continue
        item = trimmed[1:].strip()
        if item and not is_sentinel(item):
            sections[current].append(item)

    if any(sections.values()):
        return CodeReviewResult(
            aspect=aspect,
            outcome=ReviewOutcome.ISSUES_FOUND,
            has_issues=True,
            **sections,
        )

    if saw_header:
        return CodeReviewResult(
            aspect=aspect,
            outcome=ReviewOutcome.CLEAN,
            has_issues=False,
            issues=[no_issues_sentinel(aspect)],
            recommendations=["No recommendations needed"],
            steps=["No action required"],
        )

    return CodeReviewResult(
        aspect=aspect,
        outcome=ReviewOutcome.UNPARSED,
        has_issues=False,
        issues=["No specific issues detected"],
        recommendations=["Code appears to be well-structured"],
        steps=["Continue monitoring code quality"],
        raw_preview=raw.strip()[:RAW_PREVIEW_CHARS],
    )

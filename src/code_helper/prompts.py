# prompts.py
# Prompt templates. Pure functions: inputs in, instruction string out.
#
# Each template opens with a fixed role line; the parsers in parsing.py
# depend on the output formats these templates demand, so change them
# together.

from code_helper.models import ContextGatheringResult, PlanStep, ReviewAspect

STRUCTURE_PREVIEW_CHARS = 500
DEPENDENCIES_PREVIEW_CHARS = 300


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


# ---------------------------------------------------------------------------
# Planning pipeline
# ---------------------------------------------------------------------------


def thinking_iteration(
    code: str,
    instruction: str,
    file_name: str,
    context: ContextGatheringResult,
    iteration: int,
) -> str:
    return f"""\
You are an expert code analyst performing iteration {iteration} of context gathering.

Current Context:
- Project Structure: {context.project_structure[:STRUCTURE_PREVIEW_CHARS]}...
- Relevant Files Found: {len(context.relevant_files)} search reports
- Existing Identifiers: {len(context.existing_variables)} lookups
- Dependencies: {context.dependencies[:DEPENDENCIES_PREVIEW_CHARS]}...

User Request: {instruction}
File: {file_name}
Current Code:
{code}

Task: Review the context gathered so far and answer:
1. Which additional information would be most valuable to gather?
2. Where are the gaps in our understanding of this codebase?
3. Which concrete questions about the codebase remain open?

Reason step by step and say clearly what context is still missing."""


def observations(code: str, instruction: str, file_name: str, thinking: str) -> str:
    return f"""\
You are an expert code reviewer. Using the analysis below, list the key observations.

File: {file_name}
User Request: {instruction}
Current Code:
{code}

Analysis:
{thinking}

Task: Give 3-5 key observations about the current state of the code and what has
to change to satisfy the request. Consider:
- Code structure and organization
- Missing functionality
- Possible improvements
- Risks and areas of concern
- Existing code that should be reused rather than duplicated

Respond with ONLY a numbered list of observations, one per line."""


def approach(
    code: str,
    instruction: str,
    file_name: str,
    thinking: str,
    observation_points: list[str],
) -> str:
    return f"""\
You are an expert software architect. Using the analysis and observations, define the approach.

File: {file_name}
User Request: {instruction}
Current Code:
{code}

Analysis:
{thinking}

Key Observations:
{_numbered(observation_points)}

Task: Describe a high-level approach that addresses the observations and achieves
the request. Cover:
- Overall strategy
- Guiding principles
- Design considerations
- Success criteria
- How existing code is reused

Respond with ONLY the approach, written as clear, structured paragraphs."""


def detailed_plan(
    code: str,
    instruction: str,
    file_name: str,
    thinking: str,
    approach_text: str,
) -> str:
    return f"""\
You are an expert software engineer. Create a detailed implementation plan. Do not write
the final code. The plan must only change the single file named below.

File: {file_name}
User Request: {instruction}
Current Code:
{code}

Analysis:
{thinking}

Approach: {approach_text}

Task: Write a step-by-step implementation plan without questions for the user.
Use exactly this markdown structure:

# Implementation Plan

## Phase 1: [Phase Name]
### Step 1: [Step Title]
- **Action**: [What to do]
- **Details**: [How to do it]
- **Expected Outcome**: [What should happen]

### Step 2: [Step Title]
- **Action**: [What to do]
- **Details**: [How to do it]
- **Expected Outcome**: [What should happen]

## Phase 2: [Phase Name]
[More phases and steps...]

Number steps consecutively across phases. Each step must be specific and build on
the previous ones, so that the code can be generated from the plan alone."""


def implementation(
    code: str,
    instruction: str,
    file_name: str,
    plan_steps: list[PlanStep],
) -> str:
    steps = _numbered([step.description for step in plan_steps])
    return f"""\
You are an AI code assistant. The user wants to: "{instruction}"

File: {file_name}
Current Code:
{code}

Implement this plan:
{steps}

Respond in this exact format:

PLAN_START
1. [First step you carried out]
2. [Second step you carried out]
...
PLAN_END

EXPLANATION_START
[What you changed and why]
EXPLANATION_END

NEW_CODE_START
[The complete new contents of the file]
NEW_CODE_END

The new code must be complete and ready to replace the file as-is."""


# ---------------------------------------------------------------------------
# Code review
# ---------------------------------------------------------------------------

_REVIEW_BRIEFS: dict[ReviewAspect, tuple[str, str, list[str], str, str]] = {
    # aspect: (role line, task, focus areas, noun for lists, "no issues" sentinel)
    ReviewAspect.BUG: (
        "You are a code review expert.",
        "Analyze the following code for existing bugs and errors.",
        [
            "Logic errors",
            "Unhandled edge cases",
            "Type mismatches",
            "Null/undefined access",
            "Index and bounds errors",
            "Exception handling",
            "Syntax errors",
        ],
        "bugs",
        "No bugs detected",
    ),
    ReviewAspect.PERFORMANCE: (
        "You are a performance optimization expert.",
        "Analyze the following code for performance optimization opportunities.",
        [
            "Algorithmic complexity",
            "Memory usage",
            "Loop efficiency",
            "Query efficiency",
            "Caching opportunities",
            "Async usage",
        ],
        "performance issues",
        "No performance issues detected",
    ),
    ReviewAspect.SECURITY: (
        "You are a security expert.",
        "Analyze the following code for security vulnerabilities.",
        [
            "Input validation",
            "Injection (SQL, command, template)",
            "Cross-site scripting",
            "Authentication and authorization",
            "Handling of secrets and sensitive data",
            "Secure coding practices",
        ],
        "security issues",
        "No security issues detected",
    ),
    ReviewAspect.CLARITY: (
        "You are a code quality expert.",
        "Analyze the following code for clarity and maintainability improvements.",
        [
            "Readability",
            "Naming",
            "Function complexity",
            "Documentation",
            "Organization",
            "Idiomatic practices",
        ],
        "clarity issues",
        "No clarity issues detected",
    ),
}


def no_issues_sentinel(aspect: ReviewAspect) -> str:
    return _REVIEW_BRIEFS[aspect][4]


def review(aspect: ReviewAspect, code: str, file_name: str) -> str:
    role, task, focus, noun, sentinel = _REVIEW_BRIEFS[aspect]
    return f"""\
{role} {task}

Code to review:
```{file_name}
{code}
```

Focus on:
{_numbered(focus)}

Provide your analysis in EXACTLY this format (do not deviate):

ISSUES:
- [Each specific {noun[:-1] if noun.endswith("s") else noun} found, one per line starting with a dash]

RECOMMENDATIONS:
- [Each specific recommendation, one per line starting with a dash]

STEPS:
- [Each step-by-step action to resolve the {noun}, one per line starting with a dash]

If nothing is found, respond with:
ISSUES:
- {sentinel}

RECOMMENDATIONS:
- No recommendations needed

STEPS:
- No action required"""


def review_fix(
    aspect: ReviewAspect,
    code: str,
    file_name: str,
    issues: list[str],
    recommendations: list[str],
    steps: list[str],
) -> str:
    return f"""\
You are an AI code assistant fixing {aspect.value} findings from a code review.

File: {file_name}
Current Code:
{code}

Issues:
{_numbered(issues)}

Recommendations:
{_numbered(recommendations)}

Steps:
{_numbered(steps)}

Apply the fixes and respond in this exact format:

EXPLANATION_START
[What you changed and why]
EXPLANATION_END

NEW_CODE_START
[The complete new contents of the file]
NEW_CODE_END"""

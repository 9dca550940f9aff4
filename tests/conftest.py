import pytest

from code_helper.config import Settings
from code_helper.tools import ToolRegistry

# Opening role line of each prompt template, used to route fake replies.
THINKING = "You are an expert code analyst"
OBSERVATIONS = "You are an expert code reviewer"
APPROACH = "You are an expert software architect"
PLAN = "You are an expert software engineer"
IMPLEMENTATION = "You are an AI code assistant. The user wants"
REVIEW_FIX = "You are an AI code assistant fixing"
REVIEW_BUG = "You are a code review expert"
REVIEW_PERFORMANCE = "You are a performance optimization expert"
REVIEW_SECURITY = "You are a security expert"
REVIEW_CLARITY = "You are a code quality expert"

THINKING_REPLY = "The module is small. We need more detail on how inputs reach add()."
OBSERVATIONS_REPLY = """\
1. add() accepts any value without checking its type
2. String inputs are concatenated instead of summed
3. Callers get no error for invalid input
"""
APPROACH_REPLY = "Validate both arguments as finite numbers before adding and throw a TypeError otherwise."
PLAN_REPLY = """\
# Implementation Plan

## Phase 1: Validation
### Step 1: Check argument types
- **Action**: Add a typeof check for a and b
- **Details**: Reject anything that is not a number
- **Expected Outcome**: Non-numbers are rejected

### Step 2: Reject non-finite numbers
- **Action**: Use Number.isFinite
- **Details**: NaN and Infinity are rejected
- **Expected Outcome**: Only finite numbers are added

## Phase 2: Errors
### Step 3: Throw a descriptive TypeError
- **Action**: Throw with the offending argument name
- **Details**: Message names a or b
- **Expected Outcome**: Callers see a clear error
"""
IMPLEMENTATION_REPLY = """\
PLAN_START
1. Added type checks
2. Added finite checks
PLAN_END

EXPLANATION_START
Both arguments are validated before the sum.
EXPLANATION_END

NEW_CODE_START
```javascript
function add(a, b) {
  if (!Number.isFinite(a) || !Number.isFinite(b)) {
    throw new TypeError("add expects two finite numbers");
  }
  return a + b;
}
```
NEW_CODE_END
"""
CLEAN_REVIEW_REPLY = """\
ISSUES:
- No issues detected

RECOMMENDATIONS:
- No recommendations needed

STEPS:
- No action required
"""
BUG_REVIEW_REPLY = """\
ISSUES:
- add() concatenates strings instead of failing
- No bugs detected

RECOMMENDATIONS:
- Validate argument types

STEPS:
- Add a typeof check before the sum
"""

ADD_SOURCE = "function add(a,b){return a+b}"


class ScriptedGenerator:
    """
    Fake text generator. Replies are looked up by prompt prefix; a list is
    consumed in order (its last entry repeats) and an exception is raised.
    """

    def __init__(self, replies: dict):
        self.replies = {prefix: list(r) if isinstance(r, list) else [r] for prefix, r in replies.items()}
        self.prompts: list[str] = []

    async def call(self, prompt: str) -> str:
        self.prompts.append(prompt)
        for prefix, queue in self.replies.items():
            if prompt.startswith(prefix):
                reply = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(reply, BaseException):
                    raise reply
                return reply
        raise AssertionError(f"No scripted reply for prompt: {prompt[:80]!r}")

    def calls_to(self, prefix: str) -> list[str]:
        return [p for p in self.prompts if p.startswith(prefix)]


def pipeline_replies(**overrides) -> dict:
    replies = {
        THINKING: THINKING_REPLY,
        OBSERVATIONS: OBSERVATIONS_REPLY,
        APPROACH: APPROACH_REPLY,
        PLAN: PLAN_REPLY,
        IMPLEMENTATION: IMPLEMENTATION_REPLY,
    }
    replies.update(overrides)
    return replies


def review_replies(**overrides) -> dict:
    replies = {
        REVIEW_BUG: BUG_REVIEW_REPLY,
        REVIEW_PERFORMANCE: CLEAN_REVIEW_REPLY,
        REVIEW_SECURITY: CLEAN_REVIEW_REPLY,
        REVIEW_CLARITY: CLEAN_REVIEW_REPLY,
    }
    replies.update(overrides)
    return replies


@pytest.fixture
def project(tmp_path):
    """A small mixed JS/Python project."""
    (tmp_path / "calc.js").write_text(ADD_SOURCE + "\n", encoding="utf-8")
    (tmp_path / "package.json").write_text(
        '{"name": "calc", "dependencies": {"lodash": "^4.17.21"}, '
        '"devDependencies": {"jest": "^29.0.0"}}',
        encoding="utf-8",
    )
    src = tmp_path / "src"
    src.mkdir()
    (src / "validation.js").write_text(
        "import { isNumber } from 'lodash';\n"
        "\n"
        "// input validation helpers\n"
        "export function validateInput(value) {\n"
        "  const limit = 100;\n"
        "  return isNumber(value) && value < limit;\n"
        "}\n",
        encoding="utf-8",
    )
    (src / "report.py").write_text(
        "import json\n"
        "from pathlib import Path\n"
        "\n"
        "THRESHOLD = 3\n"
        "\n"
        "\n"
        "def build_report(rows):\n"
        "    # one line per row\n"
        "    return json.dumps(rows)\n",
        encoding="utf-8",
    )
    hidden = tmp_path / "node_modules"
    hidden.mkdir()
    (hidden / "vendor.js").write_text("const validation = 'vendored';\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def registry(project):
    return ToolRegistry(project)


@pytest.fixture
def settings(project):
    return Settings(project_root=str(project), iteration_delay=0.0, max_thinking_iterations=3)

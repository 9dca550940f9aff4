import pytest
from conftest import (
    APPROACH,
    APPROACH_REPLY,
    IMPLEMENTATION,
    IMPLEMENTATION_REPLY,
    OBSERVATIONS,
    OBSERVATIONS_REPLY,
    PLAN,
    PLAN_REPLY,
    ScriptedGenerator,
)

from code_helper.agents import (
    PLACEHOLDERS,
    ApproachAgent,
    ImplementationAgent,
    ObservationAgent,
    PlanningAgent,
)
from code_helper.errors import MalformedResponse, NoPlanStepsFound, RateLimited, ServerError
from code_helper.models import PlanStep, StageFailed, StageOk, StageType

CODE = "function add(a,b){return a+b}"


@pytest.mark.asyncio
async def test_observations_are_parsed_into_points():
    agent = ObservationAgent(ScriptedGenerator({OBSERVATIONS: OBSERVATIONS_REPLY}))
    outcome = await agent.generate(CODE, "add input validation", "calc.js", "thinking")

    assert isinstance(outcome, StageOk)
    assert outcome.ok
    assert outcome.value == [
        "add() accepts any value without checking its type",
        "String inputs are concatenated instead of summed",
        "Callers get no error for invalid input",
    ]


@pytest.mark.asyncio
async def test_observation_reply_without_numbered_lines_fails_the_stage():
    agent = ObservationAgent(ScriptedGenerator({OBSERVATIONS: "Looks fine to me."}))
    outcome = await agent.generate(CODE, "tweak", "calc.js", "thinking")

    assert isinstance(outcome, StageFailed)
    assert outcome.code == "malformed_response"
    assert outcome.placeholder == "Error generating observations"


@pytest.mark.asyncio
async def test_model_errors_become_stage_failures_with_placeholders():
    client = ScriptedGenerator(
        {
            OBSERVATIONS: ServerError("down"),
            APPROACH: RateLimited("slow down"),
            PLAN: ServerError("down"),
        }
    )

    observed = await ObservationAgent(client).generate(CODE, "x", "calc.js", "t")
    approach = await ApproachAgent(client).generate(CODE, "x", "calc.js", "t", [])
    plan = await PlanningAgent(client).generate(CODE, "x", "calc.js", "t", "")

    assert not observed.ok and not approach.ok and not plan.ok
    assert approach.code == "rate_limited"
    assert approach.reason == "slow down"
    assert [observed.placeholder, approach.placeholder, plan.placeholder] == [
        PLACEHOLDERS[StageType.OBSERVATIONS],
        PLACEHOLDERS[StageType.APPROACH],
        PLACEHOLDERS[StageType.PLAN],
    ]


@pytest.mark.asyncio
async def test_approach_prompt_lists_observations():
    client = ScriptedGenerator({APPROACH: APPROACH_REPLY})
    outcome = await ApproachAgent(client).generate(
        CODE, "add input validation", "calc.js", "thinking", ["first point", "second point"]
    )

    assert outcome.value == APPROACH_REPLY
    prompt = client.calls_to(APPROACH)[0]
    assert "first point" in prompt
    assert "second point" in prompt


@pytest.mark.asyncio
async def test_empty_replies_fail_approach_and_plan():
    client = ScriptedGenerator({APPROACH: "   ", PLAN: "\n"})

    approach = await ApproachAgent(client).generate(CODE, "x", "calc.js", "t", [])
    plan = await PlanningAgent(client).generate(CODE, "x", "calc.js", "t", "")

    assert isinstance(approach, StageFailed)
    assert isinstance(plan, StageFailed)


@pytest.mark.asyncio
async def test_plan_is_returned_raw_and_receives_the_approach():
    client = ScriptedGenerator({PLAN: PLAN_REPLY})
    outcome = await PlanningAgent(client).generate(
        CODE, "add input validation", "calc.js", "thinking", APPROACH_REPLY
    )

    assert outcome.value == PLAN_REPLY.strip()
    assert APPROACH_REPLY in client.calls_to(PLAN)[0]


# ---------------------------------------------------------------------------
# Implementation
# ---------------------------------------------------------------------------

STEPS = [
    PlanStep(step=1, description="Check argument types"),
    PlanStep(step=2, description="Reject non-finite numbers"),
]


@pytest.mark.asyncio
async def test_implementation_returns_unfenced_code_and_explanation():
    client = ScriptedGenerator({IMPLEMENTATION: IMPLEMENTATION_REPLY})
    result = await ImplementationAgent(client).generate(CODE, "add input validation", "calc.js", STEPS)

    assert result.new_code.startswith("function add(a, b) {")
    assert "```" not in result.new_code
    assert result.explanation == "Both arguments are validated before the sum."
    assert [s.description for s in result.plan] == ["Added type checks", "Added finite checks"]

    prompt = client.calls_to(IMPLEMENTATION)[0]
    assert "Check argument types" in prompt
    assert "Reject non-finite numbers" in prompt


@pytest.mark.asyncio
async def test_implementation_without_steps_makes_no_call():
    client = ScriptedGenerator({})
    with pytest.raises(NoPlanStepsFound):
        await ImplementationAgent(client).generate(CODE, "x", "calc.js", [])
    assert client.prompts == []


@pytest.mark.asyncio
async def test_implementation_reply_without_code_is_malformed():
    client = ScriptedGenerator({IMPLEMENTATION: "PLAN_START\n1. nothing\nPLAN_END"})
    with pytest.raises(MalformedResponse):
        await ImplementationAgent(client).generate(CODE, "x", "calc.js", STEPS)


@pytest.mark.asyncio
async def test_implementation_propagates_client_errors():
    client = ScriptedGenerator({IMPLEMENTATION: ServerError("down")})
    with pytest.raises(ServerError):
        await ImplementationAgent(client).generate(CODE, "x", "calc.js", STEPS)


@pytest.mark.asyncio
async def test_untyped_generator_errors_also_fail_the_stage():
    client = ScriptedGenerator({APPROACH: ValueError("bad payload")})
    outcome = await ApproachAgent(client).generate(CODE, "x", "calc.js", "t", [])

    assert isinstance(outcome, StageFailed)
    assert outcome.code == "unexpected_error"
    assert outcome.placeholder == "Error defining approach"

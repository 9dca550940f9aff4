import json

import httpx
import pytest

from code_helper.errors import (
    ErrorCode,
    InvalidCredential,
    MalformedResponse,
    RateLimited,
    RequestFailed,
    ServerError,
    Timeout,
)
from code_helper.llm import TextGenerationClient


def _completion(text: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "created": 0,
            "model": "test-model",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": text},
                    "finish_reason": "stop",
                }
            ],
        },
    )


def _error(status: int) -> httpx.Response:
    return httpx.Response(status, json={"error": {"message": f"status {status}"}})


class Script:
    """MockTransport handler replaying responses (or raising) in order."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(request)
        return step


@pytest.fixture
def delays(monkeypatch):
    recorded: list[float] = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr("code_helper.llm.asyncio.sleep", fake_sleep)
    return recorded


def _client(script: Script, **kwargs) -> TextGenerationClient:
    return TextGenerationClient(
        credential="sk-test",
        model="test-model",
        base_url="https://llm.example.test/v1",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(script)),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_successful_call_returns_stripped_text(delays):
    script = Script(_completion("  hello there \n"))
    client = _client(script)

    assert await client.call("Say hello") == "hello there"
    assert delays == []

    request = script.requests[0]
    assert request.url.path.endswith("/chat/completions")
    assert request.headers["authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "test-model"
    assert body["messages"] == [{"role": "user", "content": "Say hello"}]


@pytest.mark.asyncio
async def test_two_server_errors_then_success_retries_twice_with_growing_delay(delays):
    script = Script(_error(500), _error(500), _completion("ok"))
    client = _client(script)

    assert await client.call("prompt") == "ok"
    assert len(script.requests) == 3
    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_invalid_credential_is_not_retried(delays):
    script = Script(_error(401), _completion("never reached"))
    client = _client(script)

    with pytest.raises(InvalidCredential) as excinfo:
        await client.call("prompt")

    assert excinfo.value.code is ErrorCode.INVALID_CREDENTIAL
    assert len(script.requests) == 1
    assert delays == []


@pytest.mark.asyncio
async def test_rate_limit_surfaces_after_retries_are_spent(delays):
    script = Script(_error(429), _error(429), _error(429))
    client = _client(script)

    with pytest.raises(RateLimited):
        await client.call("prompt")
    assert len(script.requests) == 3
    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_server_error_surfaces_after_retries_are_spent(delays):
    script = Script(_error(503), _error(502), _error(500))
    client = _client(script)

    with pytest.raises(ServerError):
        await client.call("prompt")
    assert len(script.requests) == 3


@pytest.mark.asyncio
async def test_other_client_errors_fail_immediately(delays):
    script = Script(_error(400))
    client = _client(script)

    with pytest.raises(RequestFailed):
        await client.call("prompt")
    assert len(script.requests) == 1
    assert delays == []


@pytest.mark.asyncio
async def test_timeout_is_raised_without_retry(delays):
    script = Script(httpx.ReadTimeout("slow"), _completion("never reached"))
    client = _client(script)

    with pytest.raises(Timeout):
        await client.call("prompt")
    assert len(script.requests) == 1
    assert delays == []


@pytest.mark.asyncio
async def test_connection_failure_is_not_retried(delays):
    script = Script(httpx.ConnectError("refused"))
    client = _client(script)

    with pytest.raises(RequestFailed):
        await client.call("prompt")
    assert len(script.requests) == 1


@pytest.mark.asyncio
async def test_reply_without_choices_is_malformed(delays):
    script = Script(httpx.Response(200, json={"id": "x", "choices": []}), _completion("unused"))
    client = _client(script)

    with pytest.raises(MalformedResponse):
        await client.call("prompt")
    assert len(script.requests) == 1


@pytest.mark.asyncio
async def test_backoff_base_and_retry_budget_are_configurable(delays):
    script = Script(_error(500), _error(500), _error(500), _error(500))
    client = _client(script, max_retries=3, backoff_base=0.5)

    with pytest.raises(ServerError):
        await client.call("prompt")
    assert delays == [0.5, 1.0, 2.0]


@pytest.mark.asyncio
async def test_unreadable_body_is_malformed_and_not_retried(delays):
    script = Script(
        httpx.Response(200, headers={"content-type": "application/json"}, content=b"<html>oops"),
        _completion("unused"),
    )
    client = _client(script)

    with pytest.raises(MalformedResponse):
        await client.call("prompt")
    assert len(script.requests) == 1
    assert delays == []


@pytest.mark.parametrize("credential", ["", "   "])
def test_empty_credential_is_rejected_before_any_request(credential):
    with pytest.raises(InvalidCredential):
        TextGenerationClient(credential=credential)

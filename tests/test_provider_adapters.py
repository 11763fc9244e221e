import json

import pytest
import requests

from promptext_notes.llm.context import RunContext
from promptext_notes.llm.pricing import estimate_cost
from promptext_notes.llm.providers.anthropic_provider import AnthropicProvider
from promptext_notes.llm.providers.cerebras_provider import CerebrasProvider
from promptext_notes.llm.providers.groq_provider import GroqProvider
from promptext_notes.llm.providers.ollama_provider import OllamaProvider
from promptext_notes.llm.providers.openai_provider import OpenAIProvider
from promptext_notes.llm.providers.openrouter_provider import OpenRouterProvider
from promptext_notes.llm.types import (
    CancellationError,
    ConfigurationError,
    EmptyCompletionError,
    LLMRequest,
    ProviderConfig,
    RetryExhaustedError,
    RetryPolicy,
    TransientRequestError,
    describe_error,
)


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, headers, json, timeout):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _config(provider, model="test-model", attempts=1, **custom):
    return ProviderConfig(
        provider=provider,
        model=model,
        api_key_env="TEST_KEY",
        max_tokens=256,
        temperature=0.2,
        timeout_seconds=15,
        retry=RetryPolicy(attempts=attempts, backoff="constant", initial_delay_seconds=0),
        custom=custom,
    )


def _request(model="test-model", system_prompt=""):
    return LLMRequest(prompt="Summarize the changes", model=model, max_tokens=256, temperature=0.2, system_prompt=system_prompt)


def _chat_payload(content="- Added retry support", choices=None):
    return {
        "id": "chatcmpl-1",
        "model": "gpt-4o-mini-2024-07-18",
        "choices": choices if choices is not None else [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 1000, "completion_tokens": 500, "total_tokens": 1500},
    }


def test_anthropic_sends_system_field_and_version_header():
    session = FakeSession(DummyResponse(payload={
        "id": "msg_1",
        "model": "claude-haiku-4-5",
        "content": [{"type": "text", "text": "### Added\n- Retry engine"}],
        "usage": {"input_tokens": 1000, "output_tokens": 500},
        "stop_reason": "end_turn",
    }))
    provider = AnthropicProvider(_config("anthropic", model="haiku", anthropic_version="2024-01-01"), "sk-ant", session)

    result = provider.generate(_request(model="haiku", system_prompt="You write changelogs"), RunContext())

    call = session.calls[0]
    assert call["url"] == "https://api.anthropic.com/v1/messages"
    assert call["headers"]["x-api-key"] == "sk-ant"
    assert call["headers"]["anthropic-version"] == "2024-01-01"
    assert call["json"]["system"] == "You write changelogs"
    assert call["json"]["model"] == "claude-haiku-4-5"
    assert call["json"]["messages"] == [{"role": "user", "content": "Summarize the changes"}]
    assert call["timeout"] == 15

    assert result.text == "### Added\n- Retry engine"
    assert result.provider == "anthropic"
    assert result.tokens_used == 1500
    assert result.metadata["id"] == "msg_1"
    assert result.cost_usd == pytest.approx(0.0028)


def test_anthropic_omits_system_when_not_given():
    session = FakeSession(DummyResponse(payload={
        "model": "claude-sonnet-4-5",
        "content": [{"type": "text", "text": "ok"}],
        "usage": {},
    }))
    provider = AnthropicProvider(_config("anthropic"), "sk-ant", session)
    result = provider.generate(_request())

    assert "system" not in session.calls[0]["json"]
    assert session.calls[0]["headers"]["anthropic-version"] == "2023-06-01"
    assert result.tokens_used == 0


def test_openai_places_system_prompt_as_leading_message():
    session = FakeSession(DummyResponse(payload=_chat_payload()))
    provider = OpenAIProvider(_config("openai"), "sk-openai", session)

    result = provider.generate(_request(system_prompt="Be terse"))

    call = session.calls[0]
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-openai"
    assert call["json"]["messages"] == [
        {"role": "system", "content": "Be terse"},
        {"role": "user", "content": "Summarize the changes"},
    ]
    assert result.text == "- Added retry support"
    assert result.model == "gpt-4o-mini-2024-07-18"
    assert result.tokens_used == 1500
    assert result.metadata["finish_reason"] == "stop"
    assert result.cost_usd == pytest.approx(1000 * 0.15 / 1_000_000 + 500 * 0.6 / 1_000_000)


def test_zero_choices_is_retried_then_reported_as_empty_completion():
    session = FakeSession(DummyResponse(payload=_chat_payload(choices=[])))
    provider = OpenAIProvider(_config("openai", attempts=3), "sk-openai", session)

    with pytest.raises(RetryExhaustedError) as excinfo:
        provider.generate(_request())

    assert len(session.calls) == 3
    assert isinstance(excinfo.value.last_error, EmptyCompletionError)
    assert "no content in response" in str(excinfo.value)


def test_blank_completion_counts_as_empty():
    session = FakeSession(DummyResponse(payload=_chat_payload(content="   ")))
    provider = GroqProvider(_config("groq"), "gsk", session)

    with pytest.raises(RetryExhaustedError) as excinfo:
        provider.generate(_request())
    assert isinstance(excinfo.value.last_error, EmptyCompletionError)


def test_vendor_error_envelope_message_is_surfaced():
    body = {"error": {"message": "The model `gpt-9` does not exist", "type": "invalid_request_error", "code": "model_not_found"}}
    session = FakeSession(DummyResponse(status_code=404, payload=body))
    provider = OpenAIProvider(_config("openai"), "sk-openai", session)

    with pytest.raises(RetryExhaustedError) as excinfo:
        provider.generate(_request())

    last = excinfo.value.last_error
    assert isinstance(last, TransientRequestError)
    assert last.status_code == 404
    assert last.error_type == "invalid_request_error"
    assert "does not exist" in describe_error(excinfo.value)


def test_anthropic_error_envelope_is_parsed():
    body = {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
    session = FakeSession(DummyResponse(status_code=529, payload=body))
    provider = AnthropicProvider(_config("anthropic", attempts=2), "sk-ant", session)

    with pytest.raises(RetryExhaustedError) as excinfo:
        provider.generate(_request())

    assert len(session.calls) == 2
    assert describe_error(excinfo.value) == "Anthropic API error: Overloaded (overloaded_error)"


def test_unparseable_error_body_falls_back_to_status_and_body():
    session = FakeSession(DummyResponse(status_code=502, payload=None, text="<html>Bad Gateway</html>"))
    provider = CerebrasProvider(_config("cerebras"), "csk", session)

    with pytest.raises(RetryExhaustedError) as excinfo:
        provider.generate(_request())

    message = describe_error(excinfo.value)
    assert "status 502" in message
    assert "<html>Bad Gateway</html>" in message


def test_network_errors_are_retried():
    session = FakeSession(
        requests.ConnectionError("connection reset"),
        DummyResponse(payload=_chat_payload(content="- Fixed crash")),
    )
    provider = OpenAIProvider(_config("openai", attempts=3), "sk-openai", session)

    result = provider.generate(_request())

    assert len(session.calls) == 2
    assert result.text == "- Fixed crash"


def test_validate_config_failure_makes_no_http_call():
    session = FakeSession(DummyResponse(payload=_chat_payload()))
    provider = OpenAIProvider(_config("openai", model="", attempts=3), "sk-openai", session)

    with pytest.raises(ConfigurationError):
        provider.generate(_request(model=""))

    assert session.calls == []


def test_missing_key_fails_validation_before_network():
    session = FakeSession(DummyResponse(payload=_chat_payload()))
    provider = OpenRouterProvider(_config("openrouter"), "", session)

    with pytest.raises(ConfigurationError) as excinfo:
        provider.generate(_request())

    assert "TEST_KEY" in str(excinfo.value)
    assert session.calls == []


def test_expired_context_raises_cancellation_without_request():
    session = FakeSession(DummyResponse(payload=_chat_payload()))
    provider = OpenAIProvider(_config("openai"), "sk-openai", session)
    ctx = RunContext()
    ctx.cancel()

    with pytest.raises(CancellationError):
        provider.generate(_request(), ctx)

    assert session.calls == []


def test_http_timeout_is_bounded_by_context_deadline():
    session = FakeSession(DummyResponse(payload=_chat_payload()))
    provider = OpenAIProvider(_config("openai"), "sk-openai", session)

    provider.generate(_request(), RunContext(timeout_seconds=5))

    assert 0 < session.calls[0]["timeout"] <= 5


def test_openrouter_attribution_headers_and_cost_lookup():
    session = FakeSession(DummyResponse(payload=_chat_payload()))
    config = _config("openrouter", model="openai/gpt-4o-mini", http_referer="https://example.dev", x_title="notes")
    provider = OpenRouterProvider(config, "or-key", session)

    result = provider.generate(_request(model="openai/gpt-4o-mini"))

    call = session.calls[0]
    assert call["url"] == "https://openrouter.ai/api/v1/chat/completions"
    assert call["headers"]["HTTP-Referer"] == "https://example.dev"
    assert call["headers"]["X-Title"] == "notes"
    assert result.provider == "openrouter"
    assert result.cost_usd > 0


def test_free_tier_vendors_report_zero_cost():
    for provider_cls, name, url in (
        (CerebrasProvider, "cerebras", "https://api.cerebras.ai/v1/chat/completions"),
        (GroqProvider, "groq", "https://api.groq.com/openai/v1/chat/completions"),
    ):
        session = FakeSession(DummyResponse(payload=_chat_payload()))
        result = provider_cls(_config(name), "key", session).generate(_request())
        assert session.calls[0]["url"] == url
        assert result.cost_usd == 0.0
        assert result.provider == name


def test_base_url_override_changes_endpoint():
    session = FakeSession(DummyResponse(payload=_chat_payload()))
    provider = OpenAIProvider(_config("openai", base_url="http://proxy.local/v1/"), "sk", session)
    provider.generate(_request())
    assert session.calls[0]["url"] == "http://proxy.local/v1/chat/completions"


def test_ollama_concatenates_system_prompt_and_needs_no_key():
    session = FakeSession(DummyResponse(payload={
        "model": "llama3.2",
        "created_at": "2026-01-01T00:00:00Z",
        "response": "- Added polish stage",
        "done": True,
        "prompt_eval_count": 40,
        "eval_count": 12,
    }))
    provider = OllamaProvider(_config("ollama", ollama_url="http://gpu-box:11434"), "", session)

    result = provider.generate(_request(system_prompt="You write changelogs"))

    call = session.calls[0]
    assert call["url"] == "http://gpu-box:11434/api/generate"
    assert "Authorization" not in call["headers"]
    assert call["json"]["prompt"] == "System: You write changelogs\n\nUser: Summarize the changes"
    assert call["json"]["stream"] is False
    assert call["json"]["options"] == {"temperature": 0.2, "num_predict": 256}
    assert result.text == "- Added polish stage"
    assert result.tokens_used == 52
    assert result.cost_usd == 0.0
    assert result.metadata["created_at"] == "2026-01-01T00:00:00Z"


def test_ollama_plain_error_string_and_empty_response():
    session = FakeSession(DummyResponse(status_code=404, payload={"error": "model 'llama9' not found"}))
    provider = OllamaProvider(_config("ollama"), "", session)
    with pytest.raises(RetryExhaustedError) as excinfo:
        provider.generate(_request())
    assert session.calls[0]["url"] == "http://localhost:11434/api/generate"
    assert "model 'llama9' not found" in describe_error(excinfo.value)

    empty = FakeSession(DummyResponse(payload={"model": "llama3.2", "response": "", "done": True}))
    with pytest.raises(RetryExhaustedError) as excinfo:
        OllamaProvider(_config("ollama"), "", empty).generate(_request())
    assert isinstance(excinfo.value.last_error, EmptyCompletionError)


@pytest.mark.parametrize("provider, model, expected", [
    ("anthropic", "claude-opus-4-1", (15.0, 75.0)),
    ("anthropic", "claude-something-new", (0.8, 4.0)),
    ("openai", "gpt-4o-2024-08-06", (2.5, 10.0)),
    ("openai", "o9-preview", (0.15, 0.6)),
    ("openrouter", "meta-llama/llama-3-70b", (0.0, 0.0)),
    ("ollama", "llama3.2", (0.0, 0.0)),
])
def test_pricing_substring_lookup(provider, model, expected):
    input_price, output_price = expected
    cost = estimate_cost(provider, model, 1_000_000, 1_000_000)
    assert cost == pytest.approx(input_price + output_price)

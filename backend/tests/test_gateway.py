import json

import httpx
import pytest

from backend.advisor import gateway as gw
from backend.advisor.config import Settings
from backend.advisor.gateway import (
    ChatCompletionsProvider,
    HuggingFaceProvider,
    ModelGateway,
    ProviderError,
    build_providers,
    clean_response,
    parse_generated_text,
)
from backend.advisor.heuristics import generate_heuristic_response
from backend.advisor.prompts import ANSWER_MARKER, QUESTION_MARKER

from conftest import StaticProvider

ARGS = ("What is my revenue?", "", "anna", "Sunrise Bakery", "catering", ["File: a.txt\nRevenue: 5000"])


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def _completion(text):
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def _provider(handler, models=("model-a", "model-b")):
    return ChatCompletionsProvider(
        "testrouter",
        "secret-key",
        "https://llm.example/v1",
        list(models),
        extra_headers={"X-Title": "Business Advisor"},
        client=_client(handler),
    )


# -------------------------------------------------------------------
# Cleaning
# -------------------------------------------------------------------
def test_clean_response_collapses_repeats_and_whitespace():
    raw = "  <s>[INST] Great!!!!!!  Sales  are up\n\n\n\nKeep going</s>  "

    assert clean_response(raw) == "Great!!! Sales are up\n\nKeep going"


def test_clean_response_drops_echoed_prompt():
    raw = f"Some echo\n{QUESTION_MARKER}\nHow?\n{ANSWER_MARKER}\nRaise prices by 5%."

    assert clean_response(raw) == "Raise prices by 5%."


def test_clean_response_keeps_marker_at_start():
    raw = f"{ANSWER_MARKER} Raise prices."

    assert clean_response(raw) == raw


@pytest.mark.parametrize(
    "raw",
    [
        "aa[INST]aa and  [/INST] done",
        f"x {ANSWER_MARKER} y {ANSWER_MARKER} z",
        "line\n\n[INST]\n\nnext   word",
        "BUSINESS  OWNER QUESTION: echo",
        "",
    ],
)
def test_clean_response_is_idempotent(raw):
    once = clean_response(raw)

    assert clean_response(once) == once


def test_clean_response_of_only_tokens_is_empty():
    assert clean_response(" <s>[INST][/INST]</s> ") == ""


# -------------------------------------------------------------------
# Providers
# -------------------------------------------------------------------
def test_chat_provider_sends_openai_style_request():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=_completion("  Increase prices.  "))

    result = _provider(handler).attempt("prompt text")

    assert result.ok
    assert result.text == "Increase prices."
    assert result.model == "model-a"
    request = seen[0]
    assert str(request.url) == "https://llm.example/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer secret-key"
    assert request.headers["X-Title"] == "Business Advisor"
    body = json.loads(request.content)
    assert body == {
        "model": "model-a",
        "messages": [{"role": "user", "content": "prompt text"}],
        "max_tokens": 2000,
        "temperature": 0.7,
        "top_p": 0.9,
    }


@pytest.mark.parametrize(
    "first_response",
    [
        httpx.Response(429, text="rate limited"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"error": {"message": "no credits", "type": "billing"}}),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=_completion("   ")),
        httpx.Response(200, json=["unexpected"]),
    ],
)
def test_chat_provider_moves_to_next_model_on_failure(first_response):
    models = []

    def handler(request):
        model = json.loads(request.content)["model"]
        models.append(model)
        if model == "model-a":
            return first_response
        return httpx.Response(200, json=_completion("Second model answer"))

    result = _provider(handler).attempt("prompt")

    assert models == ["model-a", "model-b"]
    assert result.text == "Second model answer"
    assert result.model == "model-b"


def test_chat_provider_network_error_counts_as_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = _provider(handler).attempt("prompt")

    assert not result.ok
    assert "Request failed" in result.error


def test_chat_provider_reports_last_error_when_all_models_fail():
    def handler(request):
        model = json.loads(request.content)["model"]
        return httpx.Response(200, json={"error": {"message": f"{model} overloaded", "type": "server"}})

    result = _provider(handler).attempt("prompt")

    assert not result.ok
    assert "model-b overloaded (type: server)" in result.error


def test_non_200_error_body_is_truncated():
    def handler(request):
        return httpx.Response(500, text="E" * 1000)

    result = _provider(handler, models=["only"]).attempt("prompt")

    assert "status 500" in result.error
    assert "E" * 200 in result.error
    assert "E" * 201 not in result.error


def test_huggingface_provider_wraps_instruct_prompts():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=[{"generated_text": "Hire one more baker."}])

    provider = HuggingFaceProvider("hf-key", models=["mistralai/Mistral-7B-Instruct-v0.2"], client=_client(handler))
    result = provider.attempt("prompt")

    assert result.text == "Hire one more baker."
    assert seen[0]["inputs"] == "<s>[INST] prompt [/INST]"
    assert seen[0]["options"] == {"wait_for_model": True}


def test_parse_generated_text_shapes():
    assert parse_generated_text({"generated_text": "ok"}) == "ok"
    assert parse_generated_text({"summary": "s" * 60}) == "s" * 60
    assert parse_generated_text({"short": "tiny"}) is None
    with pytest.raises(ProviderError):
        parse_generated_text({"error": "Model is loading, please retry in a couple of minutes later on"})


def test_build_providers_follows_priority_order():
    settings = Settings(openrouter_api_key="or", groq_api_key="gq", hf_api_key="hf")

    names = [p.name for p in build_providers(settings)]

    assert names == ["openrouter", "groq", "huggingface"]
    assert build_providers(Settings()) == []


def test_openrouter_preset_uses_free_models():
    provider = build_providers(Settings(openrouter_api_key="or"))[0]

    assert provider.base_url == gw.OPENROUTER_BASE_URL
    assert provider.models == gw.OPENROUTER_MODELS
    assert provider.timeout == 60.0


# -------------------------------------------------------------------
# Gateway
# -------------------------------------------------------------------
def test_gateway_without_credentials_matches_heuristic_responder():
    assert ModelGateway([]).answer(*ARGS) == generate_heuristic_response(*ARGS)


def test_gateway_falls_back_when_every_provider_fails():
    failing = [StaticProvider(error="down"), StaticProvider(error="also down")]

    text = ModelGateway(failing).answer(*ARGS)

    assert text
    assert text == generate_heuristic_response(*ARGS)
    assert all(len(p.prompts) == 1 for p in failing)


def test_gateway_falls_back_when_all_http_models_fail():
    def handler(request):
        return httpx.Response(503, text="unavailable")

    text = ModelGateway([_provider(handler)]).answer(*ARGS)

    assert "- Revenue: 5000" in text


def test_gateway_returns_first_usable_cleaned_answer():
    empty = StaticProvider(text="<s>[INST]</s>", name="empty")
    good = StaticProvider(text="Answer  with   spaces", name="good")
    never = StaticProvider(text="unused", name="never")

    text = ModelGateway([empty, good, never]).answer(*ARGS)

    assert text == "Answer with spaces"
    assert never.prompts == []


def test_gateway_sends_built_prompt():
    provider = StaticProvider(text="ok")

    ModelGateway([provider]).answer(*ARGS)

    prompt = provider.prompts[0]
    assert "Revenue: 5000" in prompt
    assert prompt.rstrip().endswith("═")
    assert ANSWER_MARKER in prompt


def test_gateway_from_settings_uses_given_client():
    def handler(request):
        return httpx.Response(200, json=_completion("From groq"))

    gateway = ModelGateway.from_settings(Settings(groq_api_key="gq"), client=_client(handler))

    assert gateway.answer(*ARGS) == "From groq"


def test_model_list_provider_needs_a_model_call():
    with pytest.raises(TypeError):
        gw.ModelListProvider("key", ["model"])

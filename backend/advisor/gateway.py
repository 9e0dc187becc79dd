import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from .config import Settings
from .heuristics import generate_heuristic_response
from .logger import get_logger
from .prompts import ANSWER_MARKER, QUESTION_MARKER, build_prompt

log = get_logger("gateway")

# -------------------------------------------------------------------
# Provider presets
# -------------------------------------------------------------------
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_MODELS = [
    "mistralai/mistral-7b-instruct:free",
    "google/gemini-2.0-flash-exp:free",
    "meta-llama/llama-3.2-3b-instruct:free",
]
OPENROUTER_HEADERS = {"HTTP-Referer": "http://localhost:3000", "X-Title": "Business Advisor"}

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_MODELS = [
    "llama-3.1-8b-instant",
    "mixtral-8x7b-32768",
    "llama-3.3-70b-versatile",
]

AIONET_BASE_URL = "https://api.ai.io.net/v1"
AIONET_MODELS = ["io-nexus-70b-chat"]

HF_BASE_URL = "https://router.huggingface.co/hf-inference/models"
HF_MODELS = [
    "mistralai/Mistral-7B-Instruct-v0.2",
    "meta-llama/Llama-2-7b-chat-hf",
    "google/flan-t5-xxl",
]

DEFAULT_TIMEOUT = 60.0
ERROR_EXCERPT_CHARS = 200


class ProviderError(Exception):
    """One model of a provider failed to produce usable text."""


@dataclass(frozen=True)
class CompletionResult:
    text: Optional[str] = None
    error: Optional[str] = None
    model: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.text)


class CompletionProvider(Protocol):
    name: str

    def attempt(self, prompt: str) -> CompletionResult:
        ...


class ModelListProvider(ABC):
    """Tries each configured model in order and returns the first completion."""

    name = "provider"

    def __init__(
        self,
        api_key: str,
        models: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.models = list(models)
        self.timeout = timeout
        self.client = client

    def attempt(self, prompt: str) -> CompletionResult:
        last_error = "no models configured"
        for model in self.models:
            log.info("Trying %s model %s (prompt length %d)", self.name, model, len(prompt))
            try:
                text = self.try_model(model, prompt)
            except ProviderError as e:
                last_error = str(e)
                log.warning("%s model %s failed: %s", self.name, model, last_error)
                continue
            log.info("%s model %s succeeded", self.name, model)
            return CompletionResult(text=text, model=model)
        return CompletionResult(error=f"All {self.name} models failed: {last_error}")

    @abstractmethod
    def try_model(self, model: str, prompt: str) -> str:
        """Return the text one model produced or raise ProviderError."""

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post_json(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Any:
        try:
            if self.client is not None:
                resp = self.client.post(url, headers=headers, json=payload, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(f"Request failed: {e}") from e

        if resp.status_code != 200:
            raise ProviderError(
                f"{self.name} API returned status {resp.status_code}: {resp.text[:ERROR_EXCERPT_CHARS]}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(
                f"Cannot parse {self.name} response: {e}, body: {resp.text[:ERROR_EXCERPT_CHARS]}"
            ) from e


class ChatCompletionsProvider(ModelListProvider):
    """OpenAI-compatible `/chat/completions` endpoint (OpenRouter, Groq, ai.io.net)."""

    def __init__(
        self,
        name: str,
        api_key: str,
        base_url: str,
        models: Sequence[str],
        extra_headers: Optional[Dict[str, str]] = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        top_p: float = 0.9,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(api_key, models, timeout=timeout, client=client)
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.extra_headers = dict(extra_headers or {})
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p

    def try_model(self, model: str, prompt: str) -> str:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
        }
        headers = {**self._headers(), **self.extra_headers}
        data = self._post_json(f"{self.base_url}/chat/completions", payload, headers)
        return parse_chat_completion(self.name, data)


def parse_chat_completion(provider_name: str, data: Any) -> str:
    """Extract `choices[0].message.content` or raise ProviderError."""
    if not isinstance(data, dict):
        raise ProviderError(f"Unexpected {provider_name} response shape: {str(data)[:ERROR_EXCERPT_CHARS]}")

    error = data.get("error")
    if error:
        if isinstance(error, dict):
            raise ProviderError(
                f"{provider_name} API error: {error.get('message', '')} (type: {error.get('type', '')})"
            )
        raise ProviderError(f"{provider_name} API error: {error}")

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise ProviderError(f"No choices in {provider_name} response")

    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise ProviderError(f"Empty completion from {provider_name}")
    return content.strip()


class HuggingFaceProvider(ModelListProvider):
    """Hugging Face inference router (text-generation task)."""

    name = "huggingface"

    def __init__(
        self,
        api_key: str,
        models: Sequence[str] = HF_MODELS,
        base_url: str = HF_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(api_key, models, timeout=timeout, client=client)
        self.base_url = base_url.rstrip("/")

    @staticmethod
    def format_prompt(model: str, prompt: str) -> str:
        if "mistral" in model.lower() or "llama" in model.lower():
            return f"<s>[INST] {prompt} [/INST]"
        return prompt

    def try_model(self, model: str, prompt: str) -> str:
        payload = {
            "inputs": self.format_prompt(model, prompt),
            "parameters": {
                "max_new_tokens": 800,
                "temperature": 0.7,
                "top_p": 0.9,
                "do_sample": True,
            },
            "options": {"wait_for_model": True},
        }
        data = self._post_json(f"{self.base_url}/{model}", payload, self._headers())
        text = parse_generated_text(data)
        if not text:
            raise ProviderError("Cannot find generated_text in Hugging Face response")
        return text


def parse_generated_text(data: Any) -> Optional[str]:
    if isinstance(data, list):
        for item in data:
            if isinstance(item, dict) and isinstance(item.get("generated_text"), str):
                return item["generated_text"].strip() or None
        return None

    if isinstance(data, dict):
        if data.get("error"):
            raise ProviderError(f"Hugging Face API error: {data['error']}")
        if isinstance(data.get("generated_text"), str):
            return data["generated_text"].strip() or None
        for value in data.values():
            if isinstance(value, str) and len(value) > 50:
                return value.strip()
    return None


def build_providers(settings: Settings, client: Optional[httpx.Client] = None) -> List[CompletionProvider]:
    """Providers with a configured key, in priority order."""
    timeout = settings.model_timeout
    providers: List[CompletionProvider] = []
    if settings.openrouter_api_key:
        providers.append(
            ChatCompletionsProvider(
                "openrouter",
                settings.openrouter_api_key,
                OPENROUTER_BASE_URL,
                OPENROUTER_MODELS,
                extra_headers=OPENROUTER_HEADERS,
                timeout=timeout,
                client=client,
            )
        )
    if settings.groq_api_key:
        providers.append(
            ChatCompletionsProvider(
                "groq", settings.groq_api_key, GROQ_BASE_URL, GROQ_MODELS, timeout=timeout, client=client
            )
        )
    if settings.aionet_api_key:
        providers.append(
            ChatCompletionsProvider(
                "aionet",
                settings.aionet_api_key,
                AIONET_BASE_URL,
                AIONET_MODELS,
                max_tokens=800,
                timeout=timeout,
                client=client,
            )
        )
    if settings.hf_api_key:
        providers.append(HuggingFaceProvider(settings.hf_api_key, timeout=timeout, client=client))
    return providers


# -------------------------------------------------------------------
# Output cleaning
# -------------------------------------------------------------------
INSTRUCTION_TOKENS = ("[INST]", "[/INST]", "<s>", "</s>")
RESPONSE_MARKERS = (ANSWER_MARKER, QUESTION_MARKER)
MAX_REPEAT = 3

_REPEATED_CHARS = re.compile(r"(.)\1{%d,}" % MAX_REPEAT, re.DOTALL)
_BLANK_LINES = re.compile(r"(\r?\n)(?:\r?\n){2,}")
_DOUBLE_SPACES = re.compile(r" {2,}")


def _clean_once(text: str) -> str:
    text = text.strip()
    text = _REPEATED_CHARS.sub(r"\1" * MAX_REPEAT, text)
    for token in INSTRUCTION_TOKENS:
        text = text.replace(token, "")
    # A model that echoes the prompt: keep only what follows the echoed marker.
    for marker in RESPONSE_MARKERS:
        idx = text.find(marker)
        if idx > 0:
            text = text[idx + len(marker):].strip()
    text = _BLANK_LINES.sub(r"\1\1", text)
    text = _DOUBLE_SPACES.sub(" ", text)
    return text.strip()


def clean_response(text: Optional[str]) -> str:
    """Normalise raw model output; repeated until nothing changes, so idempotent."""
    if not text:
        return ""
    previous = None
    while text != previous:
        previous, text = text, _clean_once(text)
    return text


# -------------------------------------------------------------------
# Gateway
# -------------------------------------------------------------------
class ModelGateway:
    def __init__(self, providers: Optional[Sequence[CompletionProvider]] = None):
        self.providers = list(providers or [])

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.Client] = None) -> "ModelGateway":
        return cls(build_providers(settings, client=client))

    def complete(self, prompt: str) -> Optional[str]:
        """First non-empty cleaned completion across providers, else None."""
        for provider in self.providers:
            result = provider.attempt(prompt)
            if not result.ok:
                log.warning("Provider %s failed: %s", provider.name, result.error)
                continue
            cleaned = clean_response(result.text)
            if not cleaned:
                log.warning("Provider %s returned an answer that is empty after cleaning", provider.name)
                continue
            log.info("Answer produced by %s (model %s)", provider.name, result.model)
            return cleaned
        return None

    def answer(
        self,
        question: str,
        category: Optional[str],
        username: Optional[str],
        business_name: Optional[str],
        specialization: Optional[str],
        file_texts: Sequence[str],
    ) -> str:
        args = (question, category, username, business_name, specialization, file_texts)
        if not self.providers:
            log.warning("No model provider credential configured, using the heuristic responder")
            return generate_heuristic_response(*args)

        text = self.complete(build_prompt(*args))
        if text:
            return text

        log.warning("All model providers failed, using the heuristic responder")
        return generate_heuristic_response(*args)

"""AI Resilience Layer: Retry, Circuit Breaker, Cost Tracking.

Provides a unified resilient_llm_call() entry point that wraps every call to
the generative-AI backend with retry logic, circuit breaking, and cost
tracking, and maps provider failures onto the app's error taxonomy.

A call takes a role-tagged message list and, optionally, a ToolSchema that
asks the provider for a structured payload (tool / function call style).
The result is always text: free text, or the JSON arguments of the tool call.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from errors import AIServiceError, ConfigurationError, RateLimitedError

if TYPE_CHECKING:
    from pydantic import BaseModel
    from ai_schemas import ToolSchema

logger = logging.getLogger(__name__)


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ProviderState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-provider state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self) -> None:
        self._providers: dict[str, _ProviderState] = {}
        self._lock = threading.Lock()

    def _get_state(self, provider: str) -> _ProviderState:
        if provider not in self._providers:
            self._providers[provider] = _ProviderState()
        return self._providers[provider]

    def record_success(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures += 1
            state.last_failure_time = time.time()
            if state.failures >= self.FAILURE_THRESHOLD:
                state.state = "open"

    def is_open(self, provider: str) -> bool:
        with self._lock:
            state = self._get_state(provider)
            if state.state == "closed":
                return False
            if state.state == "open":
                elapsed = time.time() - state.last_failure_time
                if elapsed >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False  # allow one attempt
                return True
            # half_open, allow one attempt
            return False

    def get_state(self, provider: str) -> str:
        with self._lock:
            return self._get_state(provider).state

    def reset(self) -> None:
        with self._lock:
            self._providers.clear()


_circuit_breaker = CircuitBreaker()


# ── Cost Tracker ────────────────────────────────────────────

# Approximate pricing per 1M tokens (input + output averaged)
_MODEL_PRICING: dict[str, float] = {
    "gemini-2.5-flash": 0.3,
    "gemini-2.0-flash": 0.075,
    "gemini-1.5-flash": 0.075,
    "claude-sonnet-4-20250514": 3.0,
    "gpt-4o": 2.5,
    "gpt-4o-mini": 0.15,
}


class CostTracker:
    """Estimates tokens from character count and applies model-specific pricing."""

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough estimate: 1 token ~ 4 characters."""
        return max(1, len(text) // 4)

    @staticmethod
    def track_call(
        model: str,
        input_text: str,
        output_text: str,
        latency_ms: int,
    ) -> dict:
        input_tokens = CostTracker.estimate_tokens(input_text)
        output_tokens = CostTracker.estimate_tokens(output_text)
        total_tokens = input_tokens + output_tokens

        price_per_million = _MODEL_PRICING.get(model, 1.0)
        cost_usd = (total_tokens / 1_000_000) * price_per_million

        return {
            "input_tokens_est": input_tokens,
            "output_tokens_est": output_tokens,
            "total_tokens_est": total_tokens,
            "cost_estimate_usd": round(cost_usd, 6),
            "model": model,
            "latency_ms": latency_ms,
        }


# ── Error classification ────────────────────────────────────

_TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    OSError,
)

_RATE_LIMIT_PATTERNS = (
    "429",
    "quota",
    "rate limit",
    "rate_limit",
    "resource exhausted",
    "resource_exhausted",
)

_TRANSIENT_PATTERNS = (
    "503",
    "502",
    "500",
    "overloaded",
    "temporarily unavailable",
    "timeout",
    "timed out",
    "connection",
)


def _is_rate_limited(exc: BaseException) -> bool:
    msg = str(exc).lower()
    return any(p in msg for p in _RATE_LIMIT_PATTERNS)


def _is_transient(exc: BaseException) -> bool:
    """Check if an exception is transient (worth retrying). Quota errors are not."""
    if _is_rate_limited(exc):
        return False
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    msg = str(exc).lower()
    return any(p in msg for p in _TRANSIENT_PATTERNS)


class TransientLLMError(Exception):
    """Wrapper for transient LLM errors that should be retried."""
    pass


# ── Provider calls ──────────────────────────────────────────

def _split_system(messages: list[dict]) -> tuple[str, list[dict]]:
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    rest = [m for m in messages if m["role"] != "system"]
    return system, rest


def _do_call(provider: str, model: str, messages: list[dict], tool: ToolSchema | None,
             api_key: str, base_url: str = "") -> str:
    """Execute the actual LLM API call (no retry)."""
    if provider == "gemini":
        import google.generativeai as genai
        genai.configure(api_key=api_key)
        system, rest = _split_system(messages)
        generation_config = None
        if tool is not None:
            system = (
                f"{system}\n\nResponda APENAS com um objeto JSON que siga este JSON Schema "
                f"({tool.name}: {tool.description}):\n{json.dumps(tool.parameters, ensure_ascii=False)}"
            ).strip()
            generation_config = {"response_mime_type": "application/json"}
        m = genai.GenerativeModel(model, system_instruction=system or None)
        contents = [
            {"role": "model" if msg["role"] == "assistant" else "user", "parts": [msg["content"]]}
            for msg in rest
        ]
        response = m.generate_content(contents, generation_config=generation_config)
        return response.text

    elif provider == "claude":
        import anthropic
        client = anthropic.Anthropic(api_key=api_key)
        system, rest = _split_system(messages)
        kwargs: dict = {"model": model, "max_tokens": 4096, "messages": rest}
        if system:
            kwargs["system"] = system
        if tool is not None:
            kwargs["tools"] = [{
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters,
            }]
            kwargs["tool_choice"] = {"type": "tool", "name": tool.name}
        response = client.messages.create(**kwargs)
        for block in response.content:
            if tool is not None and block.type == "tool_use":
                return json.dumps(block.input, ensure_ascii=False)
            if tool is None and block.type == "text":
                return block.text
        return ""

    elif provider == "openai":
        from openai import OpenAI
        client = OpenAI(api_key=api_key, base_url=base_url or None)
        kwargs = {"model": model, "messages": messages, "max_tokens": 4096}
        if tool is not None:
            kwargs["tools"] = [{
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }]
            kwargs["tool_choice"] = {"type": "function", "function": {"name": tool.name}}
        response = client.chat.completions.create(**kwargs)
        message = response.choices[0].message
        if tool is not None and message.tool_calls:
            return message.tool_calls[0].function.arguments
        return message.content or ""

    else:
        raise ConfigurationError(f"Provedor de IA desconhecido: {provider}")


@retry(
    retry=retry_if_exception_type(TransientLLMError),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _call_with_retry(provider: str, model: str, messages: list[dict], tool: ToolSchema | None,
                     api_key: str, base_url: str = "") -> str:
    """Call LLM with tenacity retry on transient errors."""
    try:
        return _do_call(provider, model, messages, tool, api_key, base_url)
    except Exception as exc:
        if _is_transient(exc):
            raise TransientLLMError(str(exc)) from exc
        raise


# ── Main entry point ────────────────────────────────────────

def resilient_llm_call(
    provider: str,
    model: str,
    messages: list[dict],
    tool: ToolSchema | None = None,
    api_key: str = "",
    base_url: str = "",
) -> tuple[str, dict]:
    """Main entry point for resilient LLM calls.

    Args:
        provider: 'gemini', 'claude', or 'openai'
        model: Model name string
        messages: Role-tagged messages ('system', 'user', 'assistant')
        tool: Structured-output schema; when given the reply is its JSON arguments
        api_key: Provider credential
        base_url: OpenAI-compatible gateway URL (openai provider only)

    Returns:
        (response_text, metadata_dict) where metadata includes tokens, cost,
        latency, provider, model.

    Raises:
        ConfigurationError: no credential for the provider.
        RateLimitedError: the provider refused on quota / rate limit.
        AIServiceError: circuit open, or any other provider failure.
    """
    if not api_key:
        raise ConfigurationError(f"Chave de API ausente para o provedor de IA '{provider}'.")

    if _circuit_breaker.is_open(provider):
        raise AIServiceError("O serviço de IA está temporariamente indisponível. Tente novamente em instantes.")

    start = time.time()
    try:
        response_text = _call_with_retry(provider, model, messages, tool, api_key, base_url)
    except ConfigurationError:
        raise
    except Exception as exc:
        _circuit_breaker.record_failure(provider)
        logger.error("AI call failed (provider=%s model=%s): %s", provider, model, exc)
        if _is_rate_limited(exc):
            raise RateLimitedError() from exc
        raise AIServiceError(str(exc) or exc.__class__.__name__) from exc

    latency_ms = int((time.time() - start) * 1000)
    _circuit_breaker.record_success(provider)

    input_text = "".join(m["content"] for m in messages)
    metrics = CostTracker.track_call(model, input_text, response_text, latency_ms)
    metrics["provider"] = provider
    metrics["tool"] = tool.name if tool else None
    logger.info(
        "AI call ok provider=%s model=%s tool=%s tokens~%d cost~$%.6f latency=%dms",
        provider, model, metrics["tool"], metrics["total_tokens_est"],
        metrics["cost_estimate_usd"], latency_ms,
    )
    return response_text, metrics


def get_circuit_breaker() -> CircuitBreaker:
    """Access the module-level circuit breaker singleton."""
    return _circuit_breaker


# ── Backend facade used by the services ─────────────────────

class AIBackend:
    """Provider + credentials bound once; services call complete() / structured()."""

    def __init__(self, provider: str, model: str, api_key: str, base_url: str = ""):
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.base_url = base_url

    @classmethod
    def from_config(cls, config) -> AIBackend:
        from config import PROVIDER_KEY_SETTINGS
        provider = config.get("AI_PROVIDER", "gemini")
        key_setting = PROVIDER_KEY_SETTINGS.get(provider, "")
        return cls(
            provider=provider,
            model=config.get("AI_MODEL", ""),
            api_key=config.get(key_setting, "") if key_setting else "",
            base_url=config.get("AI_BASE_URL", ""),
        )

    def complete(self, messages: list[dict]) -> str:
        text, _ = resilient_llm_call(self.provider, self.model, messages,
                                     api_key=self.api_key, base_url=self.base_url)
        return text

    def structured(self, messages: list[dict], tool: ToolSchema) -> BaseModel:
        from ai_schemas import parse_structured
        text, _ = resilient_llm_call(self.provider, self.model, messages, tool=tool,
                                     api_key=self.api_key, base_url=self.base_url)
        return parse_structured(text, tool.model)

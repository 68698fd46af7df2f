"""
Platform Factory
LLM Gateway.

Provider-agnostic LLM router with:
    - Multi-provider support (Anthropic Claude, OpenAI, Gemini, local stub)
    - Bounded per-call timeout (worker thread + SDK timeout)
    - Auto-retry with exponential backoff
    - Provider fallback chain on failure
    - Token tracking & cost logging (ai_usage_logs)

Every failure mode surfaces as ``UpstreamModelError``; callers in the
analysis pipeline turn that into their heuristic path.

Usage:
    from platform_factory.ai.gateway import LLMGateway
    gw = LLMGateway(config=app.config)
    result = gw.chat(messages, purpose="requirement_analysis", user="owner")
    result["content"]
"""

import json
import logging
import os
import re
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from flask import has_app_context
from sqlalchemy.exc import SQLAlchemyError

from platform_factory.core.exceptions import UpstreamModelError
from platform_factory.middleware.timing import current_trace_id
from platform_factory.models import db
from platform_factory.models.ai import AIUsageLog, calculate_cost

logger = logging.getLogger(__name__)


# ── Provider Abstract Base ────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    @abstractmethod
    def chat(self, messages: list, model: str, **kwargs) -> dict:
        """
        Send a chat completion request.

        Args:
            messages: List of {"role": "...", "content": "..."} dicts.
            model: Model identifier string.
            **kwargs: temperature, max_tokens, etc.

        Returns:
            dict with keys: content, prompt_tokens, completion_tokens, model
        """
        ...


# ── Anthropic Provider ────────────────────────────────────────────────────────

class AnthropicProvider(LLMProvider):
    """Claude API (Anthropic) provider."""

    def __init__(self, timeout: float = 30.0):
        super().__init__(timeout)
        self.api_key = os.getenv("ANTHROPIC_API_KEY", "")
        self._client = None

    def _get_client(self):
        if self._client is None:
            import anthropic
            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def chat(self, messages: list, model: str = "claude-3-5-haiku-20241022", **kwargs) -> dict:
        client = self._get_client()

        # Separate system message
        system_msg = ""
        chat_messages = []
        for m in messages:
            if m["role"] == "system":
                system_msg = m["content"]
            else:
                chat_messages.append(m)

        params = {
            "model": model,
            "messages": chat_messages,
            "max_tokens": kwargs.get("max_tokens", 4096),
            "temperature": kwargs.get("temperature", 0.2),
        }
        if system_msg:
            params["system"] = system_msg

        response = client.messages.create(**params)
        text_blocks = [b.text for b in response.content if getattr(b, "type", "") == "text"]
        if not text_blocks:
            raise UpstreamModelError("Anthropic response contained no text block")

        return {
            "content": "".join(text_blocks),
            "prompt_tokens": response.usage.input_tokens,
            "completion_tokens": response.usage.output_tokens,
            "model": model,
        }


# ── OpenAI Provider ───────────────────────────────────────────────────────────

class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider."""

    def __init__(self, timeout: float = 30.0):
        super().__init__(timeout)
        self.api_key = os.getenv("OPENAI_API_KEY", "")
        self._client = None

    def _get_client(self):
        if self._client is None:
            import openai
            self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def chat(self, messages: list, model: str = "gpt-4o-mini", **kwargs) -> dict:
        client = self._get_client()
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=kwargs.get("max_tokens", 4096),
            temperature=kwargs.get("temperature", 0.2),
            response_format={"type": "json_object"},
        )
        choice = response.choices[0]
        return {
            "content": choice.message.content or "",
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "model": model,
        }


# ── Google Gemini Provider ───────────────────────────────────────────────────

class GeminiProvider(LLMProvider):
    """
    Google Gemini API provider.

    Environment:
        GEMINI_API_KEY — obtain at https://aistudio.google.com/apikey
    """

    def __init__(self, timeout: float = 30.0):
        super().__init__(timeout)
        self.api_key = os.getenv("GEMINI_API_KEY", "")
        self._client = None

    def _get_client(self):
        if self._client is None:
            from google import genai
            from google.genai import types
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def chat(self, messages: list, model: str = "gemini-2.5-flash", **kwargs) -> dict:
        client = self._get_client()
        from google.genai import types

        # Separate system instruction from conversation messages
        system_parts = []
        contents = []
        for m in messages:
            if m["role"] == "system":
                system_parts.append(m["content"])
            else:
                role = "model" if m["role"] == "assistant" else "user"
                contents.append(types.Content(role=role, parts=[types.Part(text=m["content"])]))

        config = types.GenerateContentConfig(
            temperature=kwargs.get("temperature", 0.2),
            max_output_tokens=kwargs.get("max_tokens", 4096),
            response_mime_type="application/json",
        )
        if system_parts:
            config.system_instruction = "\n\n".join(system_parts)

        response = client.models.generate_content(model=model, contents=contents, config=config)

        prompt_tokens = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
        completion_tokens = getattr(response.usage_metadata, "candidates_token_count", 0) or 0

        return {
            "content": response.text or "",
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "model": model,
        }


# ── Local Stub Provider (for dev/test without API keys) ──────────────────────

class LocalStubProvider(LLMProvider):
    """
    Local stub that returns deterministic, context-aware JSON for the
    pipeline prompts. No API key required.
    """

    _TEXT_BLOCK = re.compile(r'"""\n(.*?)\n"""', re.DOTALL)
    _JSON_BLOCK = re.compile(r"```json\n(.*?)\n```", re.DOTALL)

    _FEATURE_HINTS = {
        "payment": ("Payments", "integration"),
        "دفع": ("Payments", "integration"),
        "subscription": ("Subscriptions", "feature"),
        "اشتراك": ("Subscriptions", "feature"),
        "dashboard": ("Dashboard", "feature"),
        "analytics": ("Analytics", "feature"),
        "login": ("Authentication", "security"),
        "record": ("Records Management", "data"),
        "سجل": ("Records Management", "data"),
        "content": ("Content Management", "feature"),
    }

    def chat(self, messages: list, model: str = "local-stub", **kwargs) -> dict:
        user_msg = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_msg = m["content"]
                break

        content = self._generate_stub_response(user_msg)

        return {
            "content": content,
            "prompt_tokens": len(user_msg.split()) * 2,  # rough estimate
            "completion_tokens": len(content.split()) * 2,
            "model": "local-stub",
        }

    def _generate_stub_response(self, user_msg: str) -> str:
        blocks = self._JSON_BLOCK.findall(user_msg)
        if blocks:
            return json.dumps(self._stub_specification(blocks), ensure_ascii=False)

        match = self._TEXT_BLOCK.search(user_msg)
        text = match.group(1) if match else user_msg
        return json.dumps(self._stub_analysis(text), ensure_ascii=False)

    def _stub_analysis(self, text: str) -> dict:
        lowered = text.lower()
        keywords = []
        for word in re.findall(r"\w+", lowered):
            if len(word) > 3 and word not in keywords:
                keywords.append(word)

        entities = []
        seen = set()
        for hint, (value, etype) in self._FEATURE_HINTS.items():
            idx = lowered.find(hint)
            if idx >= 0 and value not in seen:
                seen.add(value)
                entities.append({
                    "type": etype,
                    "value": value,
                    "confidence": 0.7,
                    "position": {"start": idx, "end": idx + len(hint)},
                })

        word_count = len(text.split())
        complexity = "simple" if word_count < 8 else "moderate" if word_count < 40 else "complex"
        return {
            "intents": [{
                "action": "create",
                "target": "platform",
                "parameters": {},
                "confidence": 0.8,
                "context": keywords[:3],
            }],
            "entities": {"entities": entities, "relationships": []},
            "sentiment": "neutral",
            "urgency": "medium",
            "complexity": complexity,
            "keywords": keywords[:12],
            "summary": text[:200],
            "suggestedActions": [f"Design {e['value']}" for e in entities] or ["Define platform scope"],
        }

    @staticmethod
    def _stub_specification(blocks: list[str]) -> dict:
        try:
            analysis = json.loads(blocks[0])
        except json.JSONDecodeError:
            analysis = {}
        actions = analysis.get("suggestedActions") or ["Core platform"]
        features = [
            {
                "id": f"F-{i}",
                "name": action,
                "description": action,
                "priority": "must" if i == 1 else "should",
                "complexity": 5,
                "estimatedHours": 40,
                "dependencies": [],
            }
            for i, action in enumerate(actions, start=1)
        ]
        return {
            "platform": {"name": "New Platform", "type": "web", "compliance": []},
            "architecture": {
                "frontend": {"framework": "React + TypeScript", "features": ["Responsive", "RTL Support"]},
                "backend": {"framework": "Node.js + Express", "features": ["REST API"]},
                "database": {"type": "PostgreSQL", "schema": []},
                "security": {"level": "standard", "features": ["CSRF Protection"]},
                "infrastructure": {"provider": "Hetzner Cloud", "services": ["Kubernetes"]},
            },
            "features": features,
            "integrations": [],
            "timeline": {
                "phases": [{"name": "Build", "duration": "6 weeks", "deliverables": ["MVP"]}],
                "totalEstimate": "6 weeks",
            },
            "budget": {"development": 30000, "infrastructure": 6000, "maintenance": 3000, "currency": "USD"},
        }


# ── Gateway ──────────────────────────────────────────────────────────────────

# model → (provider, fallback models tried once the primary gives up)
MODEL_ROUTES = {
    "claude-sonnet-4-20250514": ("anthropic", ("claude-3-5-haiku-20241022", "gpt-4o-mini", "gemini-2.5-flash")),
    "claude-3-5-sonnet-20241022": ("anthropic", ("claude-3-5-haiku-20241022", "gpt-4o-mini", "gemini-2.5-flash")),
    "claude-3-5-haiku-20241022": ("anthropic", ("gpt-4o-mini", "gemini-2.5-flash")),
    "gpt-4o": ("openai", ("gpt-4o-mini", "claude-3-5-haiku-20241022", "gemini-2.5-flash")),
    "gpt-4o-mini": ("openai", ("claude-3-5-haiku-20241022", "gemini-2.5-flash")),
    "gemini-2.5-pro": ("gemini", ("gemini-2.5-flash", "claude-3-5-haiku-20241022", "gpt-4o-mini")),
    "gemini-2.5-flash": ("gemini", ("claude-3-5-haiku-20241022", "gpt-4o-mini")),
    "local-stub": ("local", ()),
}

_PROVIDER_ENV = (
    ("anthropic", "ANTHROPIC_API_KEY", AnthropicProvider),
    ("openai", "OPENAI_API_KEY", OpenAIProvider),
    ("gemini", "GEMINI_API_KEY", GeminiProvider),
)


class LLMGateway:
    """
    Single entry point for model calls made by the analysis pipeline.

    A call tries the requested model (``LLM_DEFAULT_CHAT_MODEL`` when none is
    given) up to ``1 + LLM_MAX_RETRIES`` times, then each configured fallback
    once. Every attempt is bounded by ``LLM_TIMEOUT_SECONDS``. The local stub
    answers when the primary provider has no credentials but is never used
    as a fallback, so a real outage still reaches the heuristic path.
    """

    DEFAULT_CHAT_MODEL = "claude-3-5-haiku-20241022"

    def __init__(self, config=None, providers: dict | None = None):
        config = config or {}
        self.default_model = config.get("LLM_DEFAULT_CHAT_MODEL") or self.DEFAULT_CHAT_MODEL
        self.timeout = float(config.get("LLM_TIMEOUT_SECONDS", 30.0))
        self.max_retries = int(config.get("LLM_MAX_RETRIES", 1))
        self._executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="llm-call")

        if providers is None:
            providers = {
                name: factory(self.timeout)
                for name, env_key, factory in _PROVIDER_ENV
                if os.getenv(env_key)
            }
        self._providers: dict[str, LLMProvider] = dict(providers)
        self._providers.setdefault("local", LocalStubProvider(self.timeout))

    @property
    def available_providers(self) -> list[str]:
        return sorted(self._providers)

    def _route(self, model: str) -> str:
        provider_name = MODEL_ROUTES.get(model, ("local", ()))[0]
        if provider_name not in self._providers:
            logger.warning("No credentials for provider %s; model %s served by the local stub",
                           provider_name, model)
            return "local"
        return provider_name

    def _attempt_plan(self, model: str, attempts: int) -> list[tuple[str, str, bool]]:
        """(model, provider, is_fallback) in the order they will be tried."""
        plan = [(model, self._route(model), False)] * attempts
        for fallback_model in MODEL_ROUTES.get(model, ("local", ()))[1]:
            provider_name = MODEL_ROUTES[fallback_model][0]
            if provider_name != "local" and provider_name in self._providers:
                plan.append((fallback_model, provider_name, True))
        return plan

    def _call_with_timeout(self, provider: LLMProvider, messages: list, model: str, **kwargs) -> dict:
        future = self._executor.submit(provider.chat, messages, model, **kwargs)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            raise UpstreamModelError(
                f"{model} did not answer within {self.timeout:g}s", kind="timeout",
            ) from None

    def chat(
        self,
        messages: list,
        model: str | None = None,
        *,
        purpose: str = "",
        user: str = "system",
        trace_id: str | None = None,
        max_retries: int | None = None,
        **kwargs,
    ) -> dict:
        """
        Run a chat completion through the attempt plan.

        Returns the provider result extended with ``cost_usd``,
        ``latency_ms``, ``provider`` and ``fallback_provider``. Raises
        ``UpstreamModelError`` when every attempt fails; its ``kind`` is
        ``"timeout"`` if the last failure was a timeout.
        """
        model = model or self.default_model
        retries = self.max_retries if max_retries is None else max_retries
        attempts = max(1, retries + 1)
        trace_id = trace_id or (current_trace_id() if has_app_context() else None)
        context = {"user": user, "purpose": purpose, "trace_id": trace_id}

        plan = self._attempt_plan(model, attempts)
        last_error: Exception | None = None
        for index, (attempt_model, provider_name, is_fallback) in enumerate(plan):
            if index and not is_fallback:
                threading.Event().wait(min(2 ** (index - 1), 4))
            started = time.perf_counter()
            try:
                result = self._call_with_timeout(self._providers[provider_name], messages, attempt_model, **kwargs)
            except Exception as exc:  # SDKs raise their own hierarchies
                last_error = exc
                logger.warning("LLM attempt %d/%d (%s/%s) failed: %s",
                               index + 1, len(plan), provider_name, attempt_model, exc)
                continue
            return self._finish(
                result, provider_name, attempt_model, started,
                fallback_provider=provider_name if is_fallback else None, **context,
            )

        self._log_usage(
            provider=plan[0][1], model=model,
            prompt_tokens=0, completion_tokens=0, cost_usd=0.0, latency_ms=0,
            success=False, error_message=str(last_error), **context,
        )
        kind = last_error.kind if isinstance(last_error, UpstreamModelError) else "upstream_error"
        raise UpstreamModelError(f"{purpose or 'LLM'} call failed after {len(plan)} attempt(s): {last_error}",
                                 kind=kind)

    def _finish(self, result: dict, provider_name: str, model: str, started: float, *,
                user: str, purpose: str, trace_id: str | None,
                fallback_provider: str | None = None) -> dict:
        latency_ms = int((time.perf_counter() - started) * 1000)
        cost = calculate_cost(model, result["prompt_tokens"], result["completion_tokens"])
        result.update(cost_usd=cost, latency_ms=latency_ms, provider=provider_name,
                      fallback_provider=fallback_provider)
        self._log_usage(
            provider=provider_name, model=model,
            prompt_tokens=result["prompt_tokens"], completion_tokens=result["completion_tokens"],
            cost_usd=cost, latency_ms=latency_ms,
            user=user, purpose=purpose, trace_id=trace_id,
            success=True, fallback_provider=fallback_provider,
        )
        return result

    @staticmethod
    def _log_usage(*, provider, model, prompt_tokens, completion_tokens,
                   cost_usd, latency_ms, user, purpose, trace_id,
                   success, error_message=None, fallback_provider=None):
        """Write one AIUsageLog row in a savepoint; the caller's transaction is left alone."""
        if not has_app_context():
            return
        try:
            with db.session.begin_nested():
                db.session.add(AIUsageLog(
                    provider=provider, model=model,
                    prompt_tokens=prompt_tokens, completion_tokens=completion_tokens,
                    total_tokens=prompt_tokens + completion_tokens,
                    cost_usd=cost_usd, latency_ms=latency_ms,
                    user=user, purpose=purpose or "general", trace_id=trace_id,
                    success=success, error_message=error_message,
                    fallback_provider=fallback_provider,
                ))
        except SQLAlchemyError as exc:
            logger.error("Could not record LLM usage: %s", exc)

"""
Provider-agnostic completion client for Sagasu.

Supports OpenAI, Anthropic and Google Gemini with a shared text-generation
interface. Every provider failure surfaces as CompletionError.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, List, Optional

logger = logging.getLogger("sagasu.common.llm_client")

SUPPORTED_PROVIDERS = ("openai", "anthropic", "google")

# System prompt shared by every assistant conversation
DEFAULT_SYSTEM_PROMPT = """You're an assistant in a Slack workspace.
Users in the workspace will ask you to help them write something or to think better about a specific topic.
You'll respond to those questions in a professional way.
When you include markdown text, convert them to Slack compatible ones.
When a prompt has Slack's special syntax like <@USER_ID> or <#CHANNEL_ID>, you must keep them as-is in your response."""


class CompletionError(Exception):
    """The completion service could not produce a response."""
    pass


def resolve_provider(
    provider: str,
    openai_api_key: Optional[str] = None,
    anthropic_api_key: Optional[str] = None,
    google_api_key: Optional[str] = None,
) -> str:
    """Resolve "auto" to the first provider that has an API key."""
    provider = (provider or "openai").lower()
    if provider != "auto":
        return provider
    keys = {
        "openai": openai_api_key,
        "anthropic": anthropic_api_key,
        "google": google_api_key,
    }
    for name in SUPPORTED_PROVIDERS:
        if keys[name]:
            return name
    return "openai"


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> None:
        self.provider = resolve_provider(
            provider, openai_api_key, anthropic_api_key, google_api_key
        )
        self.model = model
        self.temperature = temperature
        self._client = None

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            from openai import OpenAI

            self._client = OpenAI(api_key=openai_api_key)
            return

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            import anthropic

            self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            import google.generativeai as genai

            genai.configure(api_key=google_api_key)
            self._client = genai  # Store the module, not a model instance
            self._google_models = {}  # Cache models by system prompt hash
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client from an LLMConfig section"""
        provider = resolve_provider(
            llm_config.provider,
            llm_config.openai_api_key,
            llm_config.anthropic_api_key,
            llm_config.google_api_key,
        )
        models = {
            "openai": llm_config.openai_model,
            "anthropic": llm_config.anthropic_model,
            "google": llm_config.google_model,
        }
        return cls(
            provider=provider,
            model=models.get(provider, ""),
            openai_api_key=llm_config.openai_api_key or None,
            anthropic_api_key=llm_config.anthropic_api_key or None,
            google_api_key=llm_config.google_api_key or None,
            temperature=llm_config.temperature,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 30.0,
    ) -> str:
        """Single-turn completion."""
        return self.chat(
            [{"role": "user", "content": prompt}],
            system=system,
            max_tokens=max_tokens,
            timeout=timeout,
        )

    def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 30.0,
    ) -> str:
        """Multi-turn completion over user/assistant messages."""
        if not self.is_available:
            raise CompletionError("LLM client is not available")

        try:
            return self._complete(messages, system, max_tokens, timeout)
        except CompletionError:
            raise
        except Exception as e:
            raise CompletionError(f"{self.provider} completion failed: {e}") from e

    def _complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str],
        max_tokens: int,
        timeout: float,
    ) -> str:
        if self.provider == "openai":
            payload = []
            if system:
                payload.append({"role": "system", "content": system})
            payload.extend(messages)
            kwargs = {}
            if self.temperature is not None:
                kwargs["temperature"] = self.temperature
            response = self._client.chat.completions.create(
                model=self.model,
                n=1,
                max_tokens=max_tokens,
                messages=payload,
                timeout=timeout,
                **kwargs,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            if self.temperature is not None:
                kwargs["temperature"] = self.temperature
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        if self.provider == "google":
            cache_key = hashlib.md5((system or "").encode()).hexdigest()
            if cache_key not in self._google_models:
                kwargs = {"model_name": self.model}
                if system:
                    kwargs["system_instruction"] = system
                self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
            model = self._google_models[cache_key]
            contents = [
                {
                    "role": "model" if m["role"] == "assistant" else "user",
                    "parts": [m["content"]],
                }
                for m in messages
            ]
            generation_config = {"max_output_tokens": max_tokens}
            if self.temperature is not None:
                generation_config["temperature"] = self.temperature
            response = model.generate_content(
                contents,
                generation_config=generation_config,
                request_options={"timeout": timeout},
            )
            return response.text.strip()

        raise CompletionError(f"Unsupported LLM provider: {self.provider}")

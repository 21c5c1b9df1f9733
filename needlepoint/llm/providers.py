from __future__ import annotations
"""Thin async clients for the supported LLM providers.

Each provider exposes the same tiny surface::

    await provider.generate(GenerationRequest(prompt=..., system_prompt=...)) -> GenerationResponse

Anthropic and Ollama are spoken to directly over HTTP with httpx; OpenAI goes
through the official SDK. Every failure surfaces as :class:`ProviderError`.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import openai

from needlepoint.core.errors import ProviderError, ProviderNotConfiguredError
from needlepoint.core.model import LLMConfig, LLMProvider

__all__ = [
    "GenerationRequest",
    "GenerationResponse",
    "BaseProvider",
    "AnthropicProvider",
    "OpenAIProvider",
    "OllamaProvider",
    "create_provider",
]

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OLLAMA_DEFAULT_URL = "http://localhost:11434"


@dataclass(slots=True)
class GenerationRequest:  # noqa: D101
    prompt: str
    system_prompt: Optional[str] = None
    max_tokens: int = 4096
    temperature: Optional[float] = 0.7


@dataclass(slots=True)
class GenerationResponse:  # noqa: D101
    content: str
    model: str
    tokens_used: Optional[int] = None


def _http_error(resp: httpx.Response, model: str) -> ProviderError:
    if resp.status_code == 401:
        return ProviderError("Invalid API key")
    if resp.status_code == 429:
        return ProviderError("Rate limited")
    if resp.status_code == 404:
        return ProviderError(f"Model not found: {model}")
    return ProviderError(f"API request failed: HTTP {resp.status_code}: {resp.text}")


@dataclass
class BaseProvider:
    """Base contract for provider clients."""

    model: str
    api_key: Optional[str] = None
    timeout: float = 120.0

    name = "provider"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        if not self.is_configured:
            raise ProviderNotConfiguredError(self.name)
        try:
            return await self._generate(request)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Network error: {exc}") from exc

    async def _generate(self, request: GenerationRequest) -> GenerationResponse:
        """Backend-specific implementation."""
        raise NotImplementedError


@dataclass
class AnthropicProvider(BaseProvider):
    endpoint: str = ANTHROPIC_API_URL

    name = "Anthropic"

    async def _generate(self, request: GenerationRequest) -> GenerationResponse:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": request.max_tokens,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.endpoint, headers=headers, json=payload)
        if resp.status_code != 200:
            raise _http_error(resp, self.model)
        data = resp.json()
        text = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        if not text:
            raise ProviderError("Parse error: response contained no text content")
        usage = data.get("usage") or {}
        tokens = (usage.get("input_tokens") or 0) + (usage.get("output_tokens") or 0)
        return GenerationResponse(content=text, model=data.get("model", self.model), tokens_used=tokens or None)


@dataclass
class OpenAIProvider(BaseProvider):
    endpoint: Optional[str] = None

    name = "OpenAI"

    async def _generate(self, request: GenerationRequest) -> GenerationResponse:
        client = openai.AsyncOpenAI(api_key=self.api_key, base_url=self.endpoint, timeout=self.timeout)
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages, "max_tokens": request.max_tokens}
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        try:
            resp = await client.chat.completions.create(**kwargs)
        except openai.AuthenticationError as exc:
            raise ProviderError("Invalid API key") from exc
        except openai.RateLimitError as exc:
            raise ProviderError("Rate limited") from exc
        except openai.NotFoundError as exc:
            raise ProviderError(f"Model not found: {self.model}") from exc
        except openai.OpenAIError as exc:
            raise ProviderError(f"API request failed: {exc}") from exc
        finally:
            await client.close()
        if not resp.choices or resp.choices[0].message.content is None:
            raise ProviderError("Parse error: response contained no choices")
        tokens = resp.usage.total_tokens if resp.usage else None
        return GenerationResponse(content=resp.choices[0].message.content, model=resp.model, tokens_used=tokens)


@dataclass
class OllamaProvider(BaseProvider):
    endpoint: str = OLLAMA_DEFAULT_URL

    name = "Ollama"

    @property
    def is_configured(self) -> bool:
        return True

    async def _generate(self, request: GenerationRequest) -> GenerationResponse:
        options: Dict[str, Any] = {"num_predict": request.max_tokens}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": request.prompt,
            "stream": False,
            "options": options,
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        url = f"{self.endpoint.rstrip('/')}/api/generate"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload)
        except httpx.ConnectError as exc:
            raise ProviderError("Cannot connect to Ollama. Make sure Ollama is running.") from exc
        if resp.status_code != 200:
            raise _http_error(resp, self.model)
        data = resp.json()
        tokens = (data.get("eval_count") or 0) + (data.get("prompt_eval_count") or 0)
        return GenerationResponse(content=data.get("response", ""), model=data.get("model", self.model), tokens_used=tokens or None)


def create_provider(
    config: LLMConfig,
    api_key: Optional[str] = None,
    *,
    ollama_base_url: Optional[str] = None,
    timeout: float = 120.0,
) -> BaseProvider:
    """Instantiate the client matching ``config.provider``."""
    if config.provider is LLMProvider.ANTHROPIC:
        return AnthropicProvider(model=config.model, api_key=api_key, timeout=timeout)
    if config.provider is LLMProvider.OPENAI:
        return OpenAIProvider(model=config.model, api_key=api_key, timeout=timeout)
    if config.provider is LLMProvider.OLLAMA:
        return OllamaProvider(model=config.model, timeout=timeout, endpoint=ollama_base_url or OLLAMA_DEFAULT_URL)
    raise ValueError(f"Unsupported provider '{config.provider}'.")

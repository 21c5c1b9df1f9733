from __future__ import annotations
"""Builds the ``generate_one(node_id)`` callback consumed by the ExecutionDriver.

The callback reads the *live* graph at call time, so a node in wave k+1 sees
whatever its upstream nodes produced in wave k.
"""
from logging import getLogger
from typing import Awaitable, Callable, Optional

from needlepoint.core.errors import NeedlepointError, NodeNotFoundError, ProviderError
from needlepoint.core.graph import GraphModel
from needlepoint.core.result import Result
from needlepoint.settings import ApiKeys, Settings

from .context import build_prompt, build_system_prompt, strip_code_blocks
from .providers import BaseProvider, GenerationRequest, create_provider

__all__ = ["make_generator", "ProviderFactory"]

log = getLogger(__name__)

ProviderFactory = Callable[..., BaseProvider]


def make_generator(
    graph: GraphModel,
    settings: Optional[Settings] = None,
    *,
    api_keys: Optional[ApiKeys] = None,
    provider_factory: ProviderFactory = create_provider,
) -> Callable[[str], Awaitable[Result[str]]]:
    """Return an async ``generate_one(node_id) -> Result[str]`` bound to *graph*."""
    settings = settings if settings is not None else Settings.from_env()
    keys = api_keys or settings.api_keys

    async def generate_one(node_id: str) -> Result[str]:
        node = graph.node(node_id)
        if node is None:
            return Result.failure(NodeNotFoundError(node_id))
        prompt = build_prompt(graph, node_id)
        if prompt is None:
            return Result.failure(NeedlepointError("Failed to build prompt"))

        provider = provider_factory(
            node.llm_config,
            keys.for_provider(node.llm_config.provider),
            ollama_base_url=keys.ollama_base_url,
            timeout=settings.request_timeout,
        )
        request = GenerationRequest(
            prompt=prompt,
            system_prompt=build_system_prompt(node),
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
        try:
            response = await provider.generate(request)
        except ProviderError as exc:
            log.debug("provider %s failed for %s: %s", provider.name, node_id, exc)
            return Result.failure(exc)
        return Result.success(strip_code_blocks(response.content))

    return generate_one

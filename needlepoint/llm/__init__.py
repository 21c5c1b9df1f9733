# This file makes the 'llm' directory a Python package.

from __future__ import annotations

"""LLM sub-package public interface."""

from .context import build_prompt, build_system_prompt, strip_code_blocks  # noqa: F401 – re-export
from .generation import make_generator  # noqa: F401
from .providers import (  # noqa: F401
    AnthropicProvider,
    GenerationRequest,
    GenerationResponse,
    OllamaProvider,
    OpenAIProvider,
    create_provider,
)

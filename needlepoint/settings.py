from __future__ import annotations

"""Runtime configuration loaded from the environment."""

import os
from dataclasses import dataclass, field
from typing import Optional

from needlepoint.core.model import LLMProvider
from needlepoint.core.undo import DEFAULT_MAX_DEPTH
from needlepoint.io.storage import TRASH_DIR

__all__ = ["ApiKeys", "Settings"]

_LOG_LEVELS = {"debug", "info", "warning", "error"}


@dataclass(frozen=True)
class ApiKeys:
    """Credentials per provider. Ollama needs no key, only a base URL."""

    anthropic: Optional[str] = None
    openai: Optional[str] = None
    ollama_base_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ApiKeys":
        return cls(
            anthropic=os.getenv("ANTHROPIC_API_KEY") or None,
            openai=os.getenv("OPENAI_API_KEY") or None,
            ollama_base_url=os.getenv("OLLAMA_BASE_URL") or None,
        )

    def for_provider(self, provider: LLMProvider) -> Optional[str]:
        if provider is LLMProvider.ANTHROPIC:
            return self.anthropic
        if provider is LLMProvider.OPENAI:
            return self.openai
        return None


@dataclass(frozen=True)
class Settings:
    """Engine settings with fail-fast validation."""

    max_undo: int = DEFAULT_MAX_DEPTH
    max_concurrency: int = 0  # 0 = every node of a wave at once
    log_level: str = "info"
    trash_dir: str = TRASH_DIR
    max_tokens: int = 4096
    temperature: float = 0.7
    request_timeout: float = 120.0
    api_keys: ApiKeys = field(default_factory=ApiKeys)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            max_undo=_get_env_int("NEEDLEPOINT_MAX_UNDO", default=DEFAULT_MAX_DEPTH, minimum=1),
            max_concurrency=_get_env_int("NEEDLEPOINT_MAX_CONCURRENCY", default=0, minimum=0),
            log_level=os.getenv("NEEDLEPOINT_LOG_LEVEL", "info"),
            trash_dir=os.getenv("NEEDLEPOINT_TRASH_DIR", TRASH_DIR),
            max_tokens=_get_env_int("NEEDLEPOINT_MAX_TOKENS", default=4096, minimum=1),
            temperature=_get_env_float("NEEDLEPOINT_TEMPERATURE", default=0.7),
            request_timeout=_get_env_float("NEEDLEPOINT_REQUEST_TIMEOUT", default=120.0),
            api_keys=ApiKeys.from_env(),
        ).normalized()

    def normalized(self) -> "Settings":
        """Validate every field. Raises ValueError on invalid configuration."""
        level = self.log_level.strip().lower()
        if level not in _LOG_LEVELS:
            raise ValueError(f"NEEDLEPOINT_LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got: {self.log_level!r}")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"NEEDLEPOINT_TEMPERATURE must be within [0, 2], got: {self.temperature}")
        if self.request_timeout <= 0:
            raise ValueError(f"NEEDLEPOINT_REQUEST_TIMEOUT must be > 0, got: {self.request_timeout}")
        trash = self.trash_dir.strip().strip("/")
        if not trash or ".." in trash.split("/"):
            raise ValueError(f"NEEDLEPOINT_TRASH_DIR must be a relative path inside the project, got: {self.trash_dir!r}")
        return Settings(
            max_undo=self.max_undo,
            max_concurrency=self.max_concurrency,
            log_level=level,
            trash_dir=trash,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            request_timeout=self.request_timeout,
            api_keys=self.api_keys,
        )


def _get_env_int(name: str, *, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got: {value}")
    return value


def _get_env_float(name: str, *, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got: {raw!r}") from exc

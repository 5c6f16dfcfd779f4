"""Runtime settings for a research run."""

import os
from dataclasses import dataclass, fields

from .errors import ConfigError
from .modes import DEFAULT_MODEL


@dataclass(frozen=True)
class ResearchSettings:
    """Resource limits and model options shared by every node of a run.

    Follows the frozen, self-validating dataclass pattern of ResearchMode.
    """

    model: str = DEFAULT_MODEL
    max_tokens: int = 8192
    thinking_budget: int | None = None
    concurrency: int = 2  # Concurrent model/search calls across the whole tree
    max_concurrency: int | None = None  # Ceiling for recursion headroom; None grows freely
    max_search_results: int = 5
    num_learnings: int = 5
    context_size: int = 128_000  # Tokens allowed for search contents in one prompt

    def __post_init__(self) -> None:
        """Validate configuration."""
        errors = []

        if not self.model:
            errors.append("model cannot be empty")
        if self.max_tokens < 256:
            errors.append(f"max_tokens must be >= 256, got {self.max_tokens}")
        if self.thinking_budget is not None and self.thinking_budget >= self.max_tokens:
            errors.append(
                f"thinking_budget ({self.thinking_budget}) must be < "
                f"max_tokens ({self.max_tokens})"
            )
        if self.concurrency < 1:
            errors.append(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_concurrency is not None and self.max_concurrency < self.concurrency:
            errors.append(
                f"max_concurrency ({self.max_concurrency}) must be >= "
                f"concurrency ({self.concurrency})"
            )
        if self.max_search_results < 1:
            errors.append(f"max_search_results must be >= 1, got {self.max_search_results}")
        if self.num_learnings < 1:
            errors.append(f"num_learnings must be >= 1, got {self.num_learnings}")
        if self.context_size < 1000:
            errors.append(f"context_size must be >= 1000, got {self.context_size}")

        if errors:
            raise ValueError(f"Invalid ResearchSettings: {'; '.join(errors)}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "ResearchSettings":
        """Build settings from DEEP_RESEARCH_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ConfigError: If a variable is not a valid value for its setting.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(f"DEEP_RESEARCH_{f.name.upper()}")
            if raw is None or raw == "":
                continue
            if f.name == "model":
                overrides[f.name] = raw
                continue
            try:
                overrides[f.name] = int(raw)
            except ValueError:
                raise ConfigError(
                    f"DEEP_RESEARCH_{f.name.upper()} must be an integer, got {raw!r}"
                ) from None
        try:
            return cls(**overrides)
        except ValueError as e:
            raise ConfigError(str(e)) from e


def require_api_key(name: str = "ANTHROPIC_API_KEY") -> str:
    """Return an API key from the environment.

    Raises:
        ConfigError: If the variable is unset or empty.
    """
    key = os.environ.get(name)
    if not key:
        raise ConfigError(f"{name} environment variable is required")
    return key

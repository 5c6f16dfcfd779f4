"""Custom exceptions and shared constants for deep research."""

# Timeout for Anthropic API calls (seconds)
ANTHROPIC_TIMEOUT = 60.0


class ResearchError(Exception):
    """Base exception for deep research errors."""
    pass


class SearchError(ResearchError):
    """Raised when the web search provider fails."""
    pass


class ReportError(ResearchError):
    """Raised when final report generation fails."""
    pass


class ConfigError(ResearchError):
    """Missing API key or invalid environment configuration."""
    pass

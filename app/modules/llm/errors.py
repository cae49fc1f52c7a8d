from __future__ import annotations


class LLMCallError(RuntimeError):
    """Raised when a chat/completions call fails after its retry budget."""


class BackendConfigError(ValueError):
    """Raised when the configured provider cannot be turned into a backend."""

"""Error classification and handling."""

from .classifier import ErrorClassifier, UserPrompt, find_backend_error

__all__ = [
    "ErrorClassifier",
    "UserPrompt",
    "find_backend_error",
]

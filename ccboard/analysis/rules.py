"""Rule-based classification of agent error messages."""
from __future__ import annotations

from typing import NamedTuple

from ccboard.models import ErrorAnalysis, ErrorCategory


class ErrorRule(NamedTuple):
    patterns: tuple[str, ...]  # lowercase substrings, any one matches
    category: ErrorCategory
    retryable: bool
    suggestion: str


# Evaluated top-down; first match wins. Order matters where patterns overlap,
# e.g. "permission denied: file not found" is a Permission error.
ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(("permission denied",), "Permission", False, "Check file permissions"),
    ErrorRule(("access denied",), "Permission", False, "Check access rights"),
    ErrorRule(("connection refused",), "Network", True, "Check if service is running"),
    ErrorRule(("timeout", "timed out"), "Network", True, "Retry or increase timeout"),
    ErrorRule(("rate limit",), "Network", True, "Wait and retry"),
    ErrorRule(("dns", "resolve"), "Network", True, "Check network connection"),
    ErrorRule(("type error", "type mismatch"), "Type", False, "Fix type annotations"),
    ErrorRule(("cannot find", "not found"), "Type", False, "Check imports and paths"),
    ErrorRule(("undefined", "unresolved"), "Type", False, "Check variable/module names"),
    ErrorRule(("out of memory", "oom"), "Runtime", False, "Reduce memory usage"),
    ErrorRule(("stack overflow",), "Runtime", False, "Check for infinite recursion"),
    ErrorRule(("panic", "unwrap"), "Runtime", False, "Add proper error handling"),
)

UNKNOWN_SUGGESTION = "Investigate error details"


def classify_error(message: str | None) -> ErrorAnalysis:
    """Classify an error message by case-insensitive substring rules."""
    text = (message or "").lower()
    for rule in ERROR_RULES:
        if any(pattern in text for pattern in rule.patterns):
            return ErrorAnalysis(
                category=rule.category,
                retryable=rule.retryable,
                suggestion=rule.suggestion,
            )
    return ErrorAnalysis(category="Unknown", retryable=False, suggestion=UNKNOWN_SUGGESTION)

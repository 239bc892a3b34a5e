"""Secret redaction for log lines and error responses.

Two entry points:
- ``redact_for_logging`` masks values under sensitive-looking keys in a
  JSON-like structure (webhook payloads, Shopify error bodies).
- ``sanitize_error_message`` masks secrets embedded in free text such as
  exception messages, header dumps and ``key=value`` fragments.
"""

import re
from typing import Any

_REDACTED = "***REDACTED***"

# Matched case-insensitively as substrings of dict keys.
_DEFAULT_SENSITIVE_PATTERNS = frozenset({
    "secret", "token", "authorization", "api_key", "password",
    "credential", "hmac", "cookie",
})

# Keys whose whole value is masked, whatever its type.
_CONTAINER_KEYS = frozenset({"credentials", "headers"})


def _is_sensitive_key(key: str, sensitive_patterns: frozenset[str]) -> bool:
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in sensitive_patterns)


def _redact_value(value: Any, sensitive_patterns: frozenset[str]) -> Any:
    if isinstance(value, dict):
        return redact_for_logging(value, sensitive_patterns)
    if isinstance(value, list):
        return [_redact_value(item, sensitive_patterns) for item in value]
    return value


def redact_for_logging(
    obj: dict,
    sensitive_patterns: frozenset[str] = _DEFAULT_SENSITIVE_PATTERNS,
) -> dict:
    """Return a copy of ``obj`` with sensitive values replaced.

    Args:
        obj: Dict to redact. It is not mutated.
        sensitive_patterns: Key substrings whose values are masked.

    Returns:
        New dict. Nested dicts and lists (at any depth) are redacted too.
    """
    result = {}
    for key, value in obj.items():
        key_str = str(key)
        if key_str.lower() in _CONTAINER_KEYS or _is_sensitive_key(key_str, sensitive_patterns):
            result[key] = _REDACTED
        else:
            result[key] = _redact_value(value, sensitive_patterns)
    return result


_SENSITIVE_KEYWORDS = (
    r"secret|token|password|api_key|api_secret|"
    r"access_token|authorization|credential|session_token"
)
_SENSITIVE_VALUE_PATTERNS = re.compile(
    r"(?i)"
    r"(?:"
    r"Authorization\s*:\s*(?:Bearer|Basic)\s+\S+"
    r"|"
    r"X-Shopify-Access-Token\s*:\s*\S+"
    r"|"
    r"X-Shopify-Hmac-Sha256\s*:\s*\S+"
    r"|"
    r'"(?:' + _SENSITIVE_KEYWORDS + r')"\s*:\s*"[^"]*"'
    r"|"
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\"[^\"]*\""
    r"|"
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\S+"
    r")",
)


def sanitize_error_message(msg: str | None, max_length: int = 2000) -> str | None:
    """Mask embedded secrets and truncate to ``max_length``.

    None passes through unchanged.
    """
    if msg is None:
        return None
    sanitized = _SENSITIVE_VALUE_PATTERNS.sub(_REDACTED, msg)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."
    return sanitized

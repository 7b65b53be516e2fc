import re


def redact_secrets(text: str) -> str:
    """Redact API keys and bearer tokens from logs and error strings."""
    if not isinstance(text, str):
        return text

    redacted = text

    # Query params like key=, api_key=, token= (the YouTube Data API passes its key this way)
    redacted = re.sub(r"(?i)(api[_-]?key|key|token|secret)=([^&\s]+)", r"\1=***REDACTED***", redacted)

    # Authorization: Bearer <token>, with or without the header prefix
    redacted = re.sub(r"(?i)Bearer\s+[A-Za-z0-9._\-]+", "Bearer ***REDACTED***", redacted)

    # Perplexity keys echoed back in error bodies
    redacted = re.sub(r"pplx-[A-Za-z0-9]+", "pplx-***REDACTED***", redacted)

    return redacted


def is_configured_key(value: str) -> bool:
    """Return True if an env var-like key is configured (not empty or placeholder)."""
    if not value:
        return False
    s = value.strip()
    if not s:
        return False
    return ('YOUR_' not in s) and ('your_' not in s)

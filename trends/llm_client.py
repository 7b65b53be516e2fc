"""
Perplexity Sonar chat-completion client used for judgments and LLM-backed feeds.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from trends.http_client import HttpClient
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

SONAR_API_URL = "https://api.perplexity.ai/chat/completions"

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class LLMError(RuntimeError):
    """Raised when the completion endpoint is unconfigured or unreachable."""


@dataclass
class Completion:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").replace("```", "").strip()


class SonarClient:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "sonar",
        http: Optional[HttpClient] = None,
        endpoint: str = SONAR_API_URL,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint
        self.http = http or HttpClient(timeout=60, max_retries=1)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def complete(self, prompt: str, *, system: Optional[str] = None, purpose: str = "sonar-generic") -> Completion:
        if not self.api_key:
            raise LLMError("PERPLEXITY_API_KEY not configured")

        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            data = self.http.post_json(
                self.endpoint,
                {"model": self.model, "messages": messages},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except (requests.RequestException, ValueError) as exc:
            raise LLMError(f"Sonar request failed for {purpose}: {redact_secrets(str(exc))}") from exc

        usage: Dict[str, Any] = data.get("usage") or {}
        choices = data.get("choices") or [{}]
        text = ((choices[0] or {}).get("message") or {}).get("content") or ""
        completion = Completion(
            text=text,
            input_tokens=int(usage.get("prompt_tokens") or 0),
            output_tokens=int(usage.get("completion_tokens") or 0),
            model=data.get("model") or self.model,
        )
        logger.info(
            "Sonar %s completed (%s in / %s out tokens)",
            purpose,
            completion.input_tokens,
            completion.output_tokens,
        )
        return completion

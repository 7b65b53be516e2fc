"""
HTTP helper with retries + polite headers reused by adapters and the LLM client.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from utils.security import redact_secrets

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "TrendRanker/1.0"


class HttpClient:
    def __init__(self, timeout: int = 15, max_retries: int = 3, user_agent: Optional[str] = None):
        self.timeout = timeout
        self.session = requests.Session()
        retry = Retry(
            total=max_retries,
            backoff_factor=0.6,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update(
            {
                "User-Agent": user_agent or DEFAULT_USER_AGENT,
                "Accept": "application/json",
            }
        )

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        """GET and decode JSON; returns None (logged) on any failure."""
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            if resp.status_code == 200:
                return resp.json()
            logger.warning("HTTP GET %s failed %s %s", redact_secrets(url), resp.status_code, redact_secrets(resp.text[:200]))
        except (requests.RequestException, ValueError) as exc:
            logger.error("HTTP GET exception %s", redact_secrets(str(exc)))
        return None

    def post_json(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        """POST a JSON body; raises ``requests.HTTPError`` on non-2xx responses."""
        resp = self.session.post(url, json=payload, headers=headers or {}, timeout=self.timeout)
        if resp.status_code >= 400:
            raise requests.HTTPError(
                f"HTTP {resp.status_code}: {redact_secrets(resp.text[:200])}",
                response=resp,
            )
        return resp.json()

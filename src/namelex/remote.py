"""
HTTP client for a hosted text-generation model (Cloudflare Workers AI style).

The client only knows how to ask for nicknames and hand back the model's
text; turning that text into names is the provider's job.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from .errors import ConfigurationError, TransientRemoteError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "@cf/meta/llama-3-8b-instruct"
DEFAULT_BASE_URL = "https://api.cloudflare.com"
RETRY_SHAPES = ("prompt", "none")

SYSTEM_PROMPT = (
    "You expand personal names into common English nicknames and diminutives. "
    'Only output minified JSON: {"canonical": string, "nicknames": string[]}. No extra text.'
)


class InferenceClient:
    def __init__(
        self,
        account_id: Optional[str],
        api_token: Optional[str],
        model: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 12.0,
        retry_shape: str = "prompt",
        session: Optional[requests.Session] = None,
    ):
        if retry_shape not in RETRY_SHAPES:
            raise ValueError(f"retry_shape must be one of {RETRY_SHAPES}, got {retry_shape!r}")
        self.account_id = (account_id or "").strip() or None
        self.api_token = (api_token or "").strip() or None
        self.model = (model or "").strip() or DEFAULT_MODEL
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_shape = retry_shape
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.account_id and self.api_token)

    @property
    def url(self) -> str:
        return (
            f"{self.base_url}/client/v4/accounts/{self.account_id}"
            f"/ai/run/{quote(self.model, safe='@/')}"
        )

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_token}",
        }

    # ---------- payloads ----------

    @staticmethod
    def chat_payload(name: str) -> Dict[str, Any]:
        return {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Name: {name}. Return JSON only."},
            ],
            "temperature": 0.1,
            "max_tokens": 128,
        }

    @staticmethod
    def prompt_payload(name: str) -> Dict[str, Any]:
        prompt = (
            f"Expand common English nicknames for the personal name '{name}'. "
            'Only output minified JSON: {"canonical": string, "nicknames": string[]}.'
        )
        return {"input": prompt, "temperature": 0.1, "max_tokens": 128}

    # ---------- calls ----------

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        return self._session.post(
            self.url, headers=self._headers(), json=payload, timeout=self.timeout
        )

    def _attempt(self, payload: Dict[str, Any], label: str) -> Optional[str]:
        """Body text on a 2xx answer; None on any failed attempt."""
        try:
            resp = self._post(payload)
        except requests.RequestException as e:
            logger.warning("Inference %s call failed: %s", label, e)
            return None
        if not resp.ok:
            logger.warning(
                "Inference %s call failed: POST %s -> %s %s; body: %.200s",
                label, self.url, resp.status_code, resp.reason, resp.text,
            )
            return None
        return resp.text

    def complete_nicknames(self, name: str) -> str:
        """
        Ask the model for nicknames of `name` and return its answer text.

        Tries the chat payload, then the single-prompt payload once when
        `retry_shape` is "prompt".
        """
        if not self.configured:
            raise ConfigurationError("inference account id / API token not configured")

        body = self._attempt(self.chat_payload(name), "chat")
        if body is None and self.retry_shape == "prompt":
            body = self._attempt(self.prompt_payload(name), "prompt")
        if body is None:
            raise TransientRemoteError(f"inference endpoint unavailable for {name!r}")
        return unwrap_response_text(body)


def unwrap_response_text(body: str) -> str:
    """
    Pull the generated text out of a {"result": {"response": ...}} envelope.

    Falls back to the raw body when the envelope is absent or different.
    """
    try:
        doc = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body or ""
    result = doc.get("result") if isinstance(doc, dict) else None
    if isinstance(result, dict):
        for key in ("response", "output_text"):
            text = result.get(key)
            if isinstance(text, str):
                return text
            if isinstance(text, (dict, list)):
                # some models hand back structured output already parsed
                return json.dumps(text)
    return body

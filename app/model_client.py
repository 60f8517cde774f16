"""Chat-completions client for generating AI action output."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from app import settings
from errors import ModelInvocationError

logger = logging.getLogger("aiact.model")


@dataclass
class ModelResult:
    text: str
    raw_response: Any


class ChatCompletionsClient:
    """OpenAI-compatible ``/v1/chat/completions`` caller. One attempt per call."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        temperature: float | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.OPENAI_BASE_URL
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout if timeout is not None else settings.OPENAI_TIMEOUT
        self.temperature = temperature if temperature is not None else settings.TEMPERATURE
        self._http_client = http_client

    def configured(self) -> bool:
        return bool(self.api_key)

    def _url(self, path: str) -> str:
        base = self.base_url.rstrip("/")
        if base.endswith("/v1"):
            return f"{base}{path}"
        return f"{base}/v1{path}"

    def _post(self, payload: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        url = self._url("/chat/completions")
        if self._http_client is not None:
            return self._http_client.post(url, json=payload, headers=headers, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(url, json=payload, headers=headers)

    def generate(self, prompt: str, model: str | None = None, temperature: float | None = None) -> ModelResult:
        if not self.configured():
            raise ModelInvocationError("OpenAI API key is not configured", detail={"reason": "not_configured"})
        model_id = model or self.model
        payload = {
            "model": model_id,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature if temperature is None else temperature,
        }
        if settings.LOG_PROMPTS:
            logger.info("model_prompt model=%s prompt=%r", model_id, prompt)
        start = time.perf_counter()
        try:
            resp = self._post(payload)
        except httpx.TimeoutException as exc:
            raise ModelInvocationError("Model request timed out", detail={"error": str(exc)}) from exc
        except httpx.HTTPError as exc:
            raise ModelInvocationError("Model request failed", detail={"error": str(exc)}) from exc
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("model_call model=%s status=%s ms=%.1f", model_id, resp.status_code, elapsed_ms)
        if resp.status_code >= 400:
            raise ModelInvocationError(
                f"Model request failed: {resp.status_code}",
                detail={"status": resp.status_code, "body": resp.text[:2000]},
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise ModelInvocationError("Model returned invalid JSON", detail={"body": resp.text[:2000]}) from exc
        text = _first_message_text(data)
        if not text:
            raise ModelInvocationError("Model returned empty response", detail={"model": model_id})
        return ModelResult(text=text, raw_response=data)


def _first_message_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, list):
        content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
    if not isinstance(content, str) or not content.strip():
        return None
    return content

"""
Ollama API client wrapper.
"""
import httpx
from typing import Optional, List, Dict, Any

from core.config import (
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
    OLLAMA_FALLBACK_MODEL,
    LLM_TEMPERATURE,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT_SEC,
)
from core.errors import FormatError, TransientError, ValidationError

# HTTP statuses that mean the request itself was bad
CALLER_FAULT_STATUSES = {400, 404, 422}


class OllamaClient:
    """Async client for an Ollama-compatible text generation server."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model: str = OLLAMA_MODEL,
        fallback_model: Optional[str] = OLLAMA_FALLBACK_MODEL,
        timeout: float = LLM_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.fallback_model = fallback_model
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def model_for_attempt(self, attempt: int) -> str:
        """Primary model first, fallback model (if any) on later attempts."""
        if attempt > 0 and self.fallback_model:
            return self.fallback_model
        return self.model

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise TransientError(f"Ollama request timed out: {e}")
        except httpx.HTTPError as e:
            raise TransientError(f"Ollama API error: {e}")

        if response.status_code in CALLER_FAULT_STATUSES:
            raise ValidationError(
                f"Ollama rejected request ({response.status_code}): {response.text[:200]}"
            )
        if response.status_code >= 400:
            raise TransientError(
                f"Ollama API error ({response.status_code}): {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError:
            raise FormatError(f"Ollama returned non-JSON body: {response.text[:200]}")

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
    ) -> str:
        """Single-shot completion via /api/generate."""
        payload = {
            "model": model or self.model,
            "prompt": prompt,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
            "stream": False,
        }
        if system:
            payload["system"] = system

        result = await self._post("/api/generate", payload)
        text = result.get("response")
        if not isinstance(text, str):
            raise FormatError("Ollama response has no 'response' text")
        return text

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = LLM_TEMPERATURE,
    ) -> str:
        """Multi-turn completion via /api/chat."""
        payload = {
            "model": model or self.model,
            "messages": messages,
            "options": {"temperature": temperature},
            "stream": False,
        }
        result = await self._post("/api/chat", payload)
        message = result.get("message") or {}
        text = message.get("content")
        if not isinstance(text, str):
            raise FormatError("Ollama chat response has no message content")
        return text

    async def aclose(self) -> None:
        await self.client.aclose()

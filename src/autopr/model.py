"""Ollama model client used to draft PR titles and descriptions."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "qwen2.5-coder:7b"
OLLAMA_BASE_URL = "http://localhost:11434"
GENERATE_TIMEOUT = 300  # 5 minutes per generation


class ModelError(Exception):
    """Error communicating with the model."""


class OllamaClient:
    """Client for the Ollama REST API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = OLLAMA_BASE_URL,
        timeout: float = GENERATE_TIMEOUT,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OllamaClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def is_ollama_running(self) -> bool:
        """Check if the Ollama server is reachable."""
        try:
            resp = self._client.get(f"{self.base_url}/api/tags", timeout=5)
            return resp.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    def installed_models(self) -> list[str]:
        try:
            resp = self._client.get(f"{self.base_url}/api/tags", timeout=10)
        except httpx.HTTPError as e:
            logger.debug("Listing models failed: %s", e)
            return []
        if resp.status_code != 200:
            return []
        return [m.get("name", "") for m in resp.json().get("models", [])]

    def is_model_available(self) -> bool:
        """Check if the configured model is downloaded (exact, bare or :latest)."""
        return any(
            self.model == m
            or self.model == m.split(":")[0]
            or f"{self.model}:latest" == m
            for m in self.installed_models()
        )

    def _post_generate(self, payload: dict[str, Any]) -> str:
        logger.debug("Generating with %s (%d prompt chars)", self.model, len(payload["prompt"]))
        try:
            resp = self._client.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            raise ModelError(f"Model generation timed out after {self.timeout}s")
        except httpx.ConnectError:
            raise ModelError(
                "Cannot connect to Ollama. Is it running? Try: ollama serve"
            )
        if resp.status_code != 200:
            raise ModelError(f"Ollama returned {resp.status_code}: {resp.text[:200]}")
        return resp.json().get("response", "")

    def generate(
        self,
        prompt: str,
        system: str = "",
        temperature: float = 0.3,
        max_tokens: int = 2048,
    ) -> str:
        """Generate text from prompt. Returns raw text response."""
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if system:
            payload["system"] = system
        return self._post_generate(payload)

    def generate_json(
        self,
        prompt: str,
        system: str = "",
        temperature: float = 0.2,
    ) -> dict:
        """Generate and parse a JSON object response."""
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": temperature,
                "num_predict": 2048,
            },
        }
        if system:
            payload["system"] = system

        text = self._post_generate(payload)
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            raise ModelError(f"Model returned invalid JSON: {text[:200]}")
        if not isinstance(data, dict):
            raise ModelError(f"Model returned JSON {type(data).__name__}, expected object")
        return data

    def ensure_ready(self) -> None:
        """Raise ModelError unless Ollama is up and the model is installed."""
        if not self.is_ollama_running():
            raise ModelError(
                f"Ollama is not reachable at {self.base_url}.\n"
                "Install: https://ollama.com/download\n"
                "Then run: ollama serve"
            )
        if not self.is_model_available():
            raise ModelError(
                f"Model {self.model} is not installed. Run: ollama pull {self.model}"
            )

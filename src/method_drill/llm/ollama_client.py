"""
Ollama client for call-target disambiguation.

Ollama provides a REST API at http://localhost:11434
"""

import logging
from typing import Any, Dict, Optional

from .base import HTTPLLMClient, LLMResponse, LLMResponseError

logger = logging.getLogger(__name__)


class OllamaClient(HTTPLLMClient):
    """Ollama client using native Ollama API."""

    generate_path = "/api/generate"
    health_path = "/api/tags"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen2.5-coder:1.5b",
        timeout: float = 30.0
    ):
        """
        Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (default: http://localhost:11434)
            model: Model name (default: qwen2.5-coder:1.5b - fast, code-focused)
            timeout: Request timeout in seconds
        """
        super().__init__(base_url, model, timeout)

    def _build_payload(
        self,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                # Ollama calls it num_predict
                "num_predict": max_tokens or 256,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt
        return payload

    def _parse_response(self, response_data: Dict[str, Any]) -> LLMResponse:
        if "error" in response_data:
            raise LLMResponseError(f"Ollama error: {response_data['error']}")
        if "response" not in response_data:
            raise LLMResponseError("No response field in Ollama response")

        tokens_used = None
        if "eval_count" in response_data:
            # eval_count is output tokens, prompt_eval_count is input tokens
            tokens_used = response_data.get("eval_count", 0) + response_data.get("prompt_eval_count", 0)

        return LLMResponse(
            content=response_data["response"],
            model=self.model,
            tokens_used=tokens_used,
            raw_response=response_data,
        )

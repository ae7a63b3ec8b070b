"""
LMStudio client for call-target disambiguation.

LMStudio provides an OpenAI-compatible API at http://localhost:1234/v1
"""

import logging
from typing import Any, Dict, Optional

from .base import HTTPLLMClient, LLMResponse, LLMResponseError

logger = logging.getLogger(__name__)


class LMStudioClient(HTTPLLMClient):
    """LMStudio client using OpenAI-compatible API."""

    generate_path = "/chat/completions"
    health_path = "/models"

    def __init__(
        self,
        base_url: str = "http://localhost:1234/v1",
        model: str = "auto",
        timeout: float = 30.0
    ):
        """
        Initialize LMStudio client.

        Args:
            base_url: LMStudio API base URL (default: http://localhost:1234/v1)
            model: Model name or "auto" to use currently loaded model
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
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens or 256,
            "stream": False,
        }

    def _parse_response(self, response_data: Dict[str, Any]) -> LLMResponse:
        if "choices" not in response_data or not response_data["choices"]:
            raise LLMResponseError("No choices in LMStudio response")

        choice = response_data["choices"][0]
        if "message" not in choice or "content" not in choice["message"]:
            raise LLMResponseError("Invalid message format in LMStudio response")

        tokens_used = None
        if "usage" in response_data and "total_tokens" in response_data["usage"]:
            tokens_used = response_data["usage"]["total_tokens"]

        return LLMResponse(
            content=choice["message"]["content"],
            model=response_data.get("model", self.model),
            tokens_used=tokens_used,
            raw_response=response_data,
        )

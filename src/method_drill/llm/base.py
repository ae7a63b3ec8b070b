"""
Base LLM client interface used by the disambiguation oracle.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM-related errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to LLM service."""
    pass


class LLMResponseError(LLMError):
    """Raised when LLM returns invalid or error response."""
    pass


@dataclass
class LLMResponse:
    """Response from LLM service."""
    content: str
    model: str
    tokens_used: Optional[int] = None
    response_time_ms: Optional[float] = None
    raw_response: Optional[Dict[str, Any]] = None


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    def __init__(self, base_url: str, model: str, timeout: float = 30.0):
        """
        Initialize LLM client.

        Args:
            base_url: Base URL for the LLM service
            model: Model name to use
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """
        Generate text using the LLM.

        Raises:
            LLMConnectionError: If unable to connect to service
            LLMResponseError: If response is invalid or contains error
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the LLM service is available."""
        pass

    async def close(self) -> None:
        """Release any held connections."""
        pass

    def get_provider_name(self) -> str:
        """Get the name of this LLM provider."""
        return self.__class__.__name__.replace('Client', '').lower()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class HTTPLLMClient(LLMClient):
    """
    LLM client speaking JSON over HTTP with a reusable aiohttp session.

    Subclasses build the provider payload and pick the generated text out of
    the provider response.
    """

    def __init__(self, base_url: str, model: str, timeout: float = 30.0):
        super().__init__(base_url, model, timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session for the running loop.

        Timeouts are enforced per request with asyncio.wait_for() rather than
        aiohttp's ClientTimeout, which requires running inside a Task.
        """
        current_loop = asyncio.get_running_loop()

        if self._session is not None and not self._session.closed:
            if self._session_loop is current_loop:
                return self._session
            # Session belongs to another loop; it cannot be reused here
            try:
                await self._session.close()
            except RuntimeError:
                logger.debug("Could not close session from a different event loop")

        self._session = aiohttp.ClientSession()
        self._session_loop = current_loop
        return self._session

    async def _request_json(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Send one request and decode the JSON reply.

        Raises:
            LLMConnectionError: On transport failure or timeout
            LLMResponseError: On a non-200 status or undecodable body
        """
        provider = self.get_provider_name()
        url = f"{self.base_url}{path}"
        timeout = timeout if timeout is not None else self.timeout

        async def do_request():
            session = await self._get_session()
            async with session.request(method, url, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise LLMResponseError(f"{provider} API error {response.status}: {error_text}")
                return await response.json(content_type=None)

        try:
            return await asyncio.wait_for(do_request(), timeout=timeout)
        except asyncio.TimeoutError:
            raise LLMConnectionError(f"{provider} request timed out after {timeout}s")
        except aiohttp.ClientError as e:
            raise LLMConnectionError(f"Failed to connect to {provider}: {e}")
        except ValueError as e:
            raise LLMResponseError(f"Invalid JSON response from {provider}: {e}")

    @abstractmethod
    def _build_payload(
        self,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _parse_response(self, response_data: Dict[str, Any]) -> LLMResponse:
        pass

    generate_path = ""
    health_path = ""

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        start_time = time.time()
        payload = self._build_payload(prompt, system_prompt, temperature, max_tokens)
        response_data = await self._request_json("POST", self.generate_path, payload)
        result = self._parse_response(response_data)
        result.response_time_ms = (time.time() - start_time) * 1000
        return result

    async def health_check(self) -> bool:
        try:
            await self._request_json("GET", self.health_path, timeout=10.0)
            return True
        except LLMError as e:
            logger.debug(f"{self.get_provider_name()} health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

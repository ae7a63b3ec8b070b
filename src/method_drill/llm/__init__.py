"""
LLM integration package for call-target disambiguation.

Supports multiple LLM providers:
- Ollama (default)
- LMStudio
"""

from .base import LLMClient, LLMConnectionError, LLMError, LLMResponse, LLMResponseError
from .lmstudio_client import LMStudioClient
from .ollama_client import OllamaClient
from .oracle import LLMDisambiguationOracle, build_disambiguation_prompt, parse_oracle_reply

__all__ = [
    'LLMClient',
    'LLMConnectionError',
    'LLMError',
    'LLMResponse',
    'LLMResponseError',
    'LMStudioClient',
    'OllamaClient',
    'LLMDisambiguationOracle',
    'build_disambiguation_prompt',
    'parse_oracle_reply',
]

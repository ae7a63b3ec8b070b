"""
LLM-backed disambiguation oracle.

When an interface call has several concrete implementations, the model is
shown the interface method, the call site and the candidates, and asked to
name the one the call most likely reaches at runtime.
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

from ..core.interfaces import DisambiguationOracle
from ..core.models import DisambiguationRequest
from .base import LLMClient

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a C# and .NET static analysis assistant.
Given an interface or abstract method call and its concrete implementations,
pick the implementation the call most likely dispatches to at runtime.
Respond with JSON only: {"implementation": "<FullTypeName>"}"""


_JSON_OBJECT = re.compile(r"\{.*?\}", re.DOTALL)
_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def build_disambiguation_prompt(request: DisambiguationRequest) -> str:
    """Render the user prompt for one disambiguation request."""
    abstract = request.abstract_method
    if abstract is not None:
        target = f"Interface method: {abstract.return_type} {abstract.full_type_name}.{abstract.name}({abstract.params_info})"
    else:
        target = "Call target: ambiguous, the call site binds to one of the implementations below"
    lines = [
        target,
        f"Call site: {request.call_site_text or '(unknown)'}",
    ]
    if request.caller is not None:
        lines.append(f"Calling method: {request.caller.qualified_name}({request.caller.params_info})")
    lines.append("")
    lines.append("Available implementations:")
    for number, candidate in enumerate(request.candidates, start=1):
        lines.append(f"{number}. {candidate.full_type_name} - {candidate.signature}")
    lines.append("")
    lines.append("Which implementation is called? Answer with its full type name.")
    return "\n".join(lines)


def parse_oracle_reply(content: str) -> Optional[str]:
    """
    Extract the chosen name from a model reply.

    Accepts plain JSON, JSON inside a markdown code fence, or a bare name on
    the first non-empty line.
    """
    if not content:
        return None

    text = content.strip()
    fenced = _CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    candidates = [text]
    match = _JSON_OBJECT.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            value = data.get("implementation") or data.get("type") or data.get("name")
            return value.strip() if isinstance(value, str) and value.strip() else None
        if isinstance(data, str):
            return data.strip() or None

    for line in text.splitlines():
        line = line.strip().strip('`"\'').rstrip('.')
        if line:
            return line
    return None


class LLMDisambiguationOracle(DisambiguationOracle):
    """
    Disambiguation oracle asking an LLM to choose.

    Decisions are cached per request fingerprint (interface method, call
    site, caller, candidates) so repeated traversals do not pay for the same
    round-trip twice. Failures are not cached and propagate to the resolver,
    which falls back deterministically.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.0,
        max_tokens: int = 128,
        cache_decisions: bool = True,
    ):
        """
        Initialize the oracle.

        Args:
            llm_client: Client used for generation
            temperature: Sampling temperature
            max_tokens: Maximum tokens in the reply
            cache_decisions: Reuse answers for identical requests
        """
        self.llm_client = llm_client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.cache_decisions = cache_decisions
        self._cache: Dict[Tuple, Optional[str]] = {}
        self.requests = 0
        self.cache_hits = 0

    async def choose(self, request: DisambiguationRequest) -> Optional[str]:
        key = request.fingerprint()
        if self.cache_decisions and key in self._cache:
            self.cache_hits += 1
            return self._cache[key]

        self.requests += 1
        response = await self.llm_client.generate(
            prompt=build_disambiguation_prompt(request),
            system_prompt=SYSTEM_PROMPT,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        answer = parse_oracle_reply(response.content)
        logger.debug(
            f"Oracle chose {answer!r} for {request.describe_target()} "
            f"among {request.candidate_names()}"
        )

        if self.cache_decisions:
            self._cache[key] = answer
        return answer

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "provider": self.llm_client.get_provider_name(),
            "model": self.llm_client.model,
            "requests": self.requests,
            "cache_hits": self.cache_hits,
            "cached_decisions": len(self._cache),
        }

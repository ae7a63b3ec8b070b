"""
Resolution of abstract and interface call targets to concrete methods.

Handles three cases for an abstract target:
- no implementers: the abstract method itself is the target
- one implementer: that implementer, labelled with the abstract type
- several implementers: the disambiguation oracle picks one, falling back
  to the first candidate in index order whenever it cannot
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from ..core.interfaces import ConcreteImplementationIndex, DisambiguationOracle
from ..core.models import CallSite, DisambiguationRequest, MethodDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of resolving one call target.

    Attributes:
        method: The method the call is attributed to
        resolved_from: Name of the abstract type the call was dispatched
                       through, or None if no abstraction boundary was crossed
        used_fallback: True if several candidates existed and the
                       deterministic fallback made the choice
    """
    method: MethodDescriptor
    resolved_from: Optional[str] = None
    used_fallback: bool = False


class ImplementationResolver:
    """
    Resolves call targets to concrete implementations.

    The oracle is optional. Without one, every multi-candidate decision takes
    the first candidate. Oracle failures of any kind are logged and absorbed.
    """

    def __init__(
        self,
        implementation_index: ConcreteImplementationIndex,
        oracle: Optional[DisambiguationOracle] = None,
    ):
        """
        Initialize the resolver.

        Args:
            implementation_index: Source of concrete implementers
            oracle: Optional external chooser for multi-candidate calls
        """
        self.implementation_index = implementation_index
        self.oracle = oracle

    async def resolve(
        self,
        target: MethodDescriptor,
        call_site: Optional[CallSite] = None,
        caller: Optional[MethodDescriptor] = None,
    ) -> Resolution:
        """
        Resolve a call target to the method the call should be attributed to.

        Args:
            target: Statically bound target of the call
            call_site: The call site, for the oracle's context
            caller: Method containing the call site

        Returns:
            Resolution with the chosen method and its interface label
        """
        if not target.is_abstract:
            return Resolution(method=target)

        implementers = await self.implementation_index.find(target.method_id)

        if not implementers:
            logger.debug(f"No implementers for {target.qualified_name}, keeping abstract target")
            return Resolution(method=target)

        if len(implementers) == 1:
            return Resolution(method=implementers[0], resolved_from=target.class_name)

        chosen = await self._choose(target, implementers, call_site, caller)
        if chosen is None:
            logger.debug(
                f"Falling back to first implementer {implementers[0].qualified_name} "
                f"for {target.qualified_name}"
            )
            return Resolution(
                method=implementers[0], resolved_from=target.class_name, used_fallback=True
            )
        return Resolution(method=chosen, resolved_from=target.class_name)

    async def choose_among(
        self,
        candidates: Sequence[MethodDescriptor],
        call_site: Optional[CallSite] = None,
        caller: Optional[MethodDescriptor] = None,
    ) -> Optional[Resolution]:
        """
        Pick one of an ambiguous call site's candidate targets.

        The chosen candidate is then resolved like any other target, so an
        abstract candidate still goes through implementation lookup.

        Returns:
            Resolution, or None if there are no candidates
        """
        candidates = list(candidates)
        if not candidates:
            return None
        if len(candidates) == 1:
            return await self.resolve(candidates[0], call_site, caller)

        chosen = await self._choose(None, candidates, call_site, caller)
        if chosen is None:
            chosen = candidates[0]
        return await self.resolve(chosen, call_site, caller)

    async def _choose(
        self,
        abstract_method: Optional[MethodDescriptor],
        candidates: List[MethodDescriptor],
        call_site: Optional[CallSite],
        caller: Optional[MethodDescriptor],
    ) -> Optional[MethodDescriptor]:
        """Ask the oracle; None means use the fallback."""
        if self.oracle is None:
            return None

        request = DisambiguationRequest(
            abstract_method=abstract_method,
            call_site_text=call_site.text if call_site else "",
            candidates=candidates,
            caller=caller,
        )

        try:
            answer = await self.oracle.choose(request)
        except Exception as e:
            logger.warning(f"Disambiguation failed for {request.describe_target()}: {e}")
            return None

        if answer is None:
            return None

        chosen = match_candidate(answer, candidates)
        if chosen is None:
            logger.warning(
                f"Oracle answer {answer!r} matches no candidate of "
                f"{request.describe_target()}: {request.candidate_names()}"
            )
        return chosen


def match_candidate(
    answer: Union[str, MethodDescriptor],
    candidates: Sequence[MethodDescriptor],
) -> Optional[MethodDescriptor]:
    """
    Map an oracle answer onto one of the candidates.

    Strings are matched by method id, then full type name, then simple type
    name, then qualified method name. Matching is exact after stripping
    whitespace; the first candidate that matches wins.
    """
    if isinstance(answer, MethodDescriptor):
        for candidate in candidates:
            if candidate == answer:
                return candidate
        return None

    if not isinstance(answer, str):
        return None

    name = answer.strip()
    if not name:
        return None

    for attr in ("method_id", "full_type_name", "class_name", "qualified_name"):
        for candidate in candidates:
            if getattr(candidate, attr) == name:
                return candidate
    return None

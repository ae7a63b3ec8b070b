"""
Forward call tree extraction.

Starting from one method, discovers every method it transitively invokes
and returns the result as a CallNode tree. Answers "what does X call?"
across abstraction boundaries, with interface calls resolved to concrete
implementations.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..core.interfaces import MethodNotFoundError, SourceSymbolProvider
from ..core.models import CallNode, CallSite, MethodDescriptor
from .dependency_index import DependencyIndexAggregator
from .resolver import ImplementationResolver, Resolution

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    """One method being expanded on the explicit traversal stack."""
    node: CallNode
    call_sites: List[CallSite]
    position: int = 0

    @property
    def method(self) -> MethodDescriptor:
        return self.node.method

    @property
    def exhausted(self) -> bool:
        return self.position >= len(self.call_sites)


@dataclass
class ExtractionStats:
    """Counters for one extract() run, mostly for logging."""
    expanded: int = 0
    truncated: int = 0
    external_skipped: int = 0
    unresolved: int = 0
    fallbacks: int = 0
    visited: Set[MethodDescriptor] = field(default_factory=set)


class CallGraphBuilder:
    """
    Builds a forward call tree for a root method.

    Cycle policy is first-visit-wins: a method's subtree is expanded only the
    first time the traversal reaches it. Later occurrences anywhere in the
    tree become childless terminal nodes. Multiple call sites to the same
    target stay as separate siblings.

    Each extract() call owns a fresh seen-set and a fresh
    DependencyIndexAggregator, so independent runs never interfere.

    Usage:
        builder = CallGraphBuilder(provider, resolver)
        tree = await builder.extract(root)
        counts = builder.dependency_index.snapshot()
    """

    def __init__(self, provider: SourceSymbolProvider, resolver: ImplementationResolver):
        """
        Initialize the builder.

        Args:
            provider: Source of descriptors and call sites
            resolver: Resolves abstract targets to concrete methods
        """
        self.provider = provider
        self.resolver = resolver
        self.dependency_index = DependencyIndexAggregator()
        self.last_stats: Optional[ExtractionStats] = None

    async def extract(self, root: MethodDescriptor) -> CallNode:
        """
        Extract the call tree rooted at a method.

        Args:
            root: Method to start from

        Returns:
            Root CallNode of the extracted tree

        Raises:
            MethodNotFoundError: If the provider does not know the root method
        """
        descriptor = await self.provider.get_descriptor(root.method_id)
        if descriptor is None:
            raise MethodNotFoundError(f"Method not found: {root.method_id}")

        self.dependency_index = DependencyIndexAggregator()
        stats = ExtractionStats()
        seen = stats.visited

        root_frame = await self._open(descriptor, None, seen, stats)
        stack = [root_frame]

        while stack:
            frame = stack[-1]

            if frame.exhausted:
                stack.pop()
                self.dependency_index.record(frame.method.project, frame.method.namespace)
                continue

            call_site = frame.call_sites[frame.position]
            frame.position += 1

            resolution = await self._resolve_call_site(call_site, frame.method, stats)
            if resolution is None:
                continue

            target = resolution.method
            if not target.source_available:
                stats.external_skipped += 1
                logger.debug(f"Skipping external target {target.qualified_name}")
                continue

            if target in seen:
                stats.truncated += 1
                logger.debug(f"Already visited {target.qualified_name}, adding terminal node")
                frame.node.children.append(
                    CallNode(method=target, resolved_from_interface=resolution.resolved_from)
                )
                continue

            child = await self._open(target, resolution.resolved_from, seen, stats)
            frame.node.children.append(child.node)
            stack.append(child)

        self.last_stats = stats
        logger.debug(
            f"Extracted call tree for {descriptor.qualified_name}: {stats.expanded} expanded, "
            f"{stats.truncated} truncated, {stats.external_skipped} external, "
            f"{stats.unresolved} unresolved, {stats.fallbacks} fallbacks"
        )
        return root_frame.node

    async def _open(
        self,
        method: MethodDescriptor,
        resolved_from: Optional[str],
        seen: Set[MethodDescriptor],
        stats: ExtractionStats,
    ) -> _Frame:
        """Mark a method seen and fetch its call sites."""
        seen.add(method)
        stats.expanded += 1
        call_sites = await self.provider.get_call_sites(method.method_id)
        node = CallNode(method=method, resolved_from_interface=resolved_from)
        return _Frame(node=node, call_sites=list(call_sites))

    async def _resolve_call_site(
        self,
        call_site: CallSite,
        caller: MethodDescriptor,
        stats: ExtractionStats,
    ) -> Optional[Resolution]:
        """
        Turn a call site into a resolved target.

        Returns:
            Resolution, or None if the target cannot be determined at all
        """
        if call_site.target_id is not None:
            target = await self.provider.get_descriptor(call_site.target_id)
            if target is None:
                stats.unresolved += 1
                logger.debug(f"Unresolvable call target {call_site.target_id} in {caller.qualified_name}")
                return None
            resolution = await self.resolver.resolve(target, call_site, caller)
        elif call_site.candidate_ids:
            candidates = []
            for candidate_id in call_site.candidate_ids:
                candidate = await self.provider.get_descriptor(candidate_id)
                if candidate is not None:
                    candidates.append(candidate)
            resolution = await self.resolver.choose_among(candidates, call_site, caller)
            if resolution is None:
                stats.unresolved += 1
                logger.debug(f"No known candidates for '{call_site.text}' in {caller.qualified_name}")
                return None
        else:
            stats.unresolved += 1
            logger.debug(f"Unbound call site '{call_site.text}' in {caller.qualified_name}")
            return None

        if resolution.used_fallback:
            stats.fallbacks += 1
        return resolution

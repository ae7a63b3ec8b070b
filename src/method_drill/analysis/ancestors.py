"""
Backward search from a method to the entry points that reach it.

Answers "what calls X?" transitively: every caller chain from the queried
method up to a method nobody calls.
"""

import logging
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..core.interfaces import MethodNotFoundError, ReferenceIndex, SourceSymbolProvider
from ..core.models import AncestorPath, MethodDescriptor

logger = logging.getLogger(__name__)


class AncestorPathFinder:
    """
    Depth-first search of caller chains.

    Each branch carries its own path and visited set. A method may appear on
    several paths but never twice on one path; a branch that would revisit a
    method is a cycle and is dropped without producing a path.

    The number of paths can grow exponentially with fan-in. The search is
    unbounded unless max_paths is given.
    """

    def __init__(
        self,
        reference_index: ReferenceIndex,
        provider: SourceSymbolProvider,
        max_paths: Optional[int] = None,
    ):
        """
        Initialize the finder.

        Args:
            reference_index: Backward reference lookups
            provider: Used to confirm the queried method exists
            max_paths: Stop after this many completed paths (None = unbounded)
        """
        self.reference_index = reference_index
        self.provider = provider
        self.max_paths = max_paths
        self.dropped_cycles = 0

    async def find_ancestor_paths(self, target: MethodDescriptor) -> List[AncestorPath]:
        """
        Find every caller path from target to an entry point.

        Args:
            target: Method to search upward from

        Returns:
            Paths ordered from target outward; [[target]] if target has no callers

        Raises:
            MethodNotFoundError: If the provider does not know the target
        """
        descriptor = await self.provider.get_descriptor(target.method_id)
        if descriptor is None:
            raise MethodNotFoundError(f"Method not found: {target.method_id}")

        self.dropped_cycles = 0
        results: List[AncestorPath] = []
        callers_cache: Dict[MethodDescriptor, List[MethodDescriptor]] = {}

        # Branch state is immutable, so every push is an independent copy
        stack: List[Tuple[MethodDescriptor, Tuple[MethodDescriptor, ...], FrozenSet[MethodDescriptor]]] = [
            (descriptor, (), frozenset())
        ]

        while stack:
            current, path, visited = stack.pop()

            if current in visited:
                self.dropped_cycles += 1
                logger.debug(f"Cycle at {current.qualified_name}, dropping branch")
                continue

            path = path + (current,)
            visited = visited | {current}

            callers = callers_cache.get(current)
            if callers is None:
                callers = await self._distinct_callers(current)
                callers_cache[current] = callers

            if not callers:
                results.append(list(path))
                if self.max_paths is not None and len(results) >= self.max_paths:
                    logger.warning(
                        f"Stopped ancestor search for {descriptor.qualified_name} "
                        f"after {len(results)} paths"
                    )
                    break
                continue

            for caller in reversed(callers):
                stack.append((caller, path, visited))

        logger.debug(
            f"Found {len(results)} ancestor paths for {descriptor.qualified_name} "
            f"({self.dropped_cycles} cyclic branches dropped)"
        )
        return results

    async def _distinct_callers(self, method: MethodDescriptor) -> List[MethodDescriptor]:
        """Enclosing callables of every reference to method, deduplicated, in index order."""
        locations = await self.reference_index.find_callers(method.method_id)
        callers: List[MethodDescriptor] = []
        seen = set()
        for location in locations:
            enclosing = await self.reference_index.location_to_enclosing_method(location)
            if enclosing is None:
                logger.debug(f"Reference at {location.container_id} has no enclosing callable")
                continue
            if enclosing in seen:
                continue
            seen.add(enclosing)
            callers.append(enclosing)
        return callers


def distinct_entry_points(paths: Sequence[AncestorPath]) -> List[AncestorPath]:
    """
    Keep only the first path for each terminal entry point.

    A presentation-level reduction; find_ancestor_paths itself never
    deduplicates.
    """
    reduced: List[AncestorPath] = []
    seen_entry_points = set()
    for path in paths:
        if not path:
            continue
        entry_point = path[-1]
        if entry_point in seen_entry_points:
            continue
        seen_entry_points.add(entry_point)
        reduced.append(path)
    return reduced


def format_ancestor_path(path: AncestorPath) -> List[str]:
    """Render a path as Class.Method labels."""
    return [method.display_name for method in path]

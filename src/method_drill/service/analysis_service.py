"""
AnalysisService - single entry point for method analysis.

Wires the codebase index, resolver, oracle and the two traversals together.
The MCP server and the CLI script are thin wrappers around this service.
"""

import asyncio
import concurrent.futures
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..analysis.ancestors import AncestorPathFinder, distinct_entry_points, format_ancestor_path
from ..analysis.call_graph import CallGraphBuilder
from ..analysis.resolver import ImplementationResolver
from ..analysis.serializer import call_node_to_dict, render_method_context
from ..config.analysis import AnalysisConfig, OracleConfig
from ..core.interfaces import DisambiguationOracle, MethodNotFoundError
from ..core.models import AncestorPath, CallNode, DependencyIndexItem, MethodDescriptor
from ..index.codebase_index import CodebaseIndex
from ..llm.base import LLMClient
from ..llm.lmstudio_client import LMStudioClient
from ..llm.ollama_client import OllamaClient
from ..llm.oracle import LLMDisambiguationOracle

logger = logging.getLogger(__name__)


def _run_sync(coro):
    """
    Run an async coroutine synchronously, handling the case where
    an event loop may or may not already be running.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop, safe to use asyncio.run directly
        return asyncio.run(coro)
    # We're in an async context - run in a thread pool
    with concurrent.futures.ThreadPoolExecutor() as executor:
        future = executor.submit(asyncio.run, coro)
        return future.result()


def create_llm_client(config: OracleConfig) -> LLMClient:
    """Create the LLM client named by the oracle configuration."""
    if config.provider == "lmstudio":
        return LMStudioClient(base_url=config.base_url, model=config.model, timeout=config.timeout_seconds)
    return OllamaClient(base_url=config.base_url, model=config.model, timeout=config.timeout_seconds)


def create_oracle(config: OracleConfig) -> Optional[DisambiguationOracle]:
    """Create the disambiguation oracle, or None when disabled."""
    if not config.enabled:
        return None
    return LLMDisambiguationOracle(
        create_llm_client(config),
        temperature=config.temperature,
        max_tokens=config.max_response_tokens,
        cache_decisions=config.cache_decisions,
    )


class AnalysisService:
    """
    Method analysis over one codebase index.

    Provides both sync and async versions of the public operations:
    - analyze() / analyze_async()
    - extract_call_tree() / extract_call_tree_async()
    - find_ancestor_paths() / find_ancestor_paths_async()

    Every extraction uses a fresh CallGraphBuilder, so concurrent requests
    never share a seen-set or dependency counters.
    """

    def __init__(
        self,
        config: AnalysisConfig,
        index: Optional[CodebaseIndex] = None,
        oracle: Optional[DisambiguationOracle] = None,
    ):
        """
        Initialize the AnalysisService.

        Args:
            config: Analysis configuration
            index: Prebuilt index; loaded from config.index_path if omitted
            oracle: Disambiguation oracle; built from config.oracle if omitted
        """
        self.config = config

        if index is not None:
            self.index = index
        elif config.index_path:
            self.index = CodebaseIndex.from_file(config.index_path)
        else:
            logger.warning("No codebase index configured, starting with an empty index")
            self.index = CodebaseIndex()

        self.oracle = oracle if oracle is not None else create_oracle(config.oracle)
        self.resolver = ImplementationResolver(self.index, self.oracle)

        logger.info(
            f"AnalysisService initialized with {len(self.index.nodes)} methods, "
            f"oracle {'enabled' if self.oracle else 'disabled'}"
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def list_overloads(self, namespace: str, class_name: str, method_name: str) -> List[MethodDescriptor]:
        return self.index.find_overloads(namespace, class_name, method_name)

    def locate_method(
        self, namespace: str, class_name: str, method_name: str, overload: int = 1
    ) -> MethodDescriptor:
        """
        Find one overload of Namespace.Class.Method.

        Args:
            overload: 1-based overload number; values below 1 mean 1

        Raises:
            MethodNotFoundError: If no overload exists or the number is out of range
        """
        overload = max(overload, 1)
        overloads = self.list_overloads(namespace, class_name, method_name)
        if not overloads or overload > len(overloads):
            raise MethodNotFoundError(
                f"Method not found: {namespace}.{class_name}.{method_name} (overload {overload})"
            )
        return overloads[overload - 1]

    # ------------------------------------------------------------------
    # Traversals
    # ------------------------------------------------------------------

    async def extract_call_tree_async(
        self, method: MethodDescriptor
    ) -> Tuple[CallNode, List[DependencyIndexItem]]:
        """Forward call tree plus the dependency index gathered while building it."""
        builder = CallGraphBuilder(self.index, self.resolver)
        tree = await builder.extract(method)
        return tree, builder.dependency_index.snapshot()

    def extract_call_tree(self, method: MethodDescriptor) -> Tuple[CallNode, List[DependencyIndexItem]]:
        return _run_sync(self.extract_call_tree_async(method))

    async def find_ancestor_paths_async(self, method: MethodDescriptor) -> List[AncestorPath]:
        finder = AncestorPathFinder(self.index, self.index, max_paths=self.config.max_ancestor_paths)
        return await finder.find_ancestor_paths(method)

    def find_ancestor_paths(self, method: MethodDescriptor) -> List[AncestorPath]:
        return _run_sync(self.find_ancestor_paths_async(method))

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def analyze_async(
        self,
        namespace: str,
        class_name: str,
        method_name: str,
        overload: int = 1,
        include_context: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Full analysis report for one method.

        Returns:
            Dictionary with the method, its call tree in exchange format, the
            dependency index, ancestor paths reduced to one per entry point,
            and optionally the method-body context text

        Raises:
            MethodNotFoundError: If the method cannot be located
        """
        method = self.locate_method(namespace, class_name, method_name, overload)
        logger.info(f"Analyzing {method.qualified_name}({method.params_info})")

        tree, dependencies = await self.extract_call_tree_async(method)
        paths = await self.find_ancestor_paths_async(method)
        reduced = distinct_entry_points(paths)

        report: Dict[str, Any] = {
            "method": method.to_dict(),
            "signature": method.signature,
            "call_tree": call_node_to_dict(tree),
            "call_tree_size": tree.count_nodes(),
            "dependency_index": [item.to_dict() for item in dependencies],
            "ancestor_paths": [format_ancestor_path(path) for path in reduced],
            "total_ancestor_paths": len(paths),
            "entry_points": [path[-1].qualified_name for path in reduced],
        }

        if include_context is None:
            include_context = self.config.include_method_context
        if include_context:
            report["context"] = await render_method_context(tree, self.index)

        return report

    def analyze(
        self,
        namespace: str,
        class_name: str,
        method_name: str,
        overload: int = 1,
        include_context: Optional[bool] = None,
    ) -> Dict[str, Any]:
        return _run_sync(self.analyze_async(namespace, class_name, method_name, overload, include_context))

    def get_status(self) -> Dict[str, Any]:
        """Index statistics and oracle state."""
        status: Dict[str, Any] = {
            "index_path": self.config.index_path,
            "index": self.index.get_stats(),
            "oracle": {"enabled": self.oracle is not None},
        }
        if isinstance(self.oracle, LLMDisambiguationOracle):
            status["oracle"].update(self.oracle.get_stats())
        return status

    async def close(self) -> None:
        """Close the oracle's LLM connection, if any."""
        if isinstance(self.oracle, LLMDisambiguationOracle):
            await self.oracle.llm_client.close()

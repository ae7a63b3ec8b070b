"""
Method Drill - call-graph extraction for C#/.NET codebases

This package provides:
- Forward call trees with interface calls resolved to concrete implementations
- Per-project/namespace dependency counts for a method
- Backward caller paths from a method to its entry points
- Optional LLM oracle for choosing between several implementations
- MCP server integration for AI agent tools

Quick Start:
    from method_drill import AnalysisConfig, get_analysis_service

    AnalysisService = get_analysis_service()
    service = AnalysisService(AnalysisConfig(index_path="index.json"))

    report = service.analyze("Shop.Orders", "OrderService", "PlaceOrder")
"""

from typing import TYPE_CHECKING

# Core types - lightweight, always available
from .core.models import (
    AncestorPath,
    CallNode,
    CallSite,
    DependencyIndexItem,
    MethodDescriptor,
    MethodKind,
    Parameter,
)
from .core.interfaces import AnalysisError, MethodNotFoundError

# Analysis
from .analysis.resolver import ImplementationResolver
from .analysis.call_graph import CallGraphBuilder
from .analysis.dependency_index import DependencyIndexAggregator
from .analysis.ancestors import AncestorPathFinder
from .index.codebase_index import CodebaseIndex

# Configuration
from .config.analysis import AnalysisConfig, OracleConfig

# Type hints only - not imported at runtime for faster startup
if TYPE_CHECKING:
    from .service.analysis_service import AnalysisService


def get_analysis_service():
    """Lazy import of AnalysisService (loads aiohttp LLM clients)"""
    from .service.analysis_service import AnalysisService
    return AnalysisService


def __getattr__(name):
    """Module-level __getattr__ for lazy loading"""
    if name == "AnalysisService":
        return get_analysis_service()
    raise AttributeError(f"module 'method_drill' has no attribute '{name}'")


__version__ = "1.0.0"

__all__ = [
    # Version
    "__version__",

    # Core types
    "AncestorPath", "CallNode", "CallSite", "DependencyIndexItem",
    "MethodDescriptor", "MethodKind", "Parameter",
    "AnalysisError", "MethodNotFoundError",

    # Analysis
    "ImplementationResolver", "CallGraphBuilder", "DependencyIndexAggregator",
    "AncestorPathFinder", "CodebaseIndex",

    # Configuration
    "AnalysisConfig", "OracleConfig",

    # Lazy-loaded
    "get_analysis_service",
    "AnalysisService",
]

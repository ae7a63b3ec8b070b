"""Call-graph extraction: forward trees, backward paths, dependency counts"""

from .resolver import ImplementationResolver, Resolution, match_candidate
from .dependency_index import DependencyIndexAggregator
from .call_graph import CallGraphBuilder, ExtractionStats
from .ancestors import AncestorPathFinder, distinct_entry_points, format_ancestor_path
from .serializer import call_node_to_dict, call_tree_to_json, render_method_context

__all__ = [
    "ImplementationResolver",
    "Resolution",
    "match_candidate",
    "DependencyIndexAggregator",
    "CallGraphBuilder",
    "ExtractionStats",
    "AncestorPathFinder",
    "distinct_entry_points",
    "format_ancestor_path",
    "call_node_to_dict",
    "call_tree_to_json",
    "render_method_context",
]

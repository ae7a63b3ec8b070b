"""
Projection of call trees to the exchange format and to plain-text context.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..core.interfaces import SourceSymbolProvider
from ..core.models import CallNode

logger = logging.getLogger(__name__)


def call_node_to_dict(node: CallNode) -> Dict[str, Any]:
    """
    Serialize a call tree to the exchange dictionary.

    Keys: name, className, namespace, returnType, paramsInfo, resolvedFrom,
    internalCalls (recursively).
    """
    # Iterative post-order so very deep trees serialize without recursion
    converted: Dict[int, Dict[str, Any]] = {}
    stack = [(node, False)]
    while stack:
        current, children_done = stack.pop()
        if not children_done:
            stack.append((current, True))
            for child in reversed(current.children):
                stack.append((child, False))
            continue
        method = current.method
        converted[id(current)] = {
            "name": method.name,
            "className": method.class_name,
            "namespace": method.namespace,
            "returnType": method.return_type,
            "paramsInfo": method.params_info,
            "resolvedFrom": current.resolved_from_interface,
            "internalCalls": [converted[id(child)] for child in current.children],
        }
    return converted[id(node)]


def call_tree_to_json(node: CallNode, indent: Optional[int] = 2) -> str:
    """Serialize a call tree to a JSON string."""
    return json.dumps(call_node_to_dict(node), indent=indent, ensure_ascii=False)


async def render_method_context(root: CallNode, provider: SourceSymbolProvider) -> str:
    """
    Render the tree as indented text with each method's body.

    Intended as context for chat/LLM consumers: a header and signature per
    method, its interface label, its body (or a marker when the body is not
    available), then its called methods one indentation level deeper.
    """
    lines: List[str] = []
    stack = [(root, 0)]
    while stack:
        node, level = stack.pop()
        indent = "  " * level
        method = node.method

        lines.append(f"{indent}=== {method.qualified_name} ===")
        lines.append(f"{indent}Signature: {method.signature}")
        if node.resolved_from_interface:
            lines.append(f"{indent}Interface: {node.resolved_from_interface}")
        lines.append("")

        body = await provider.get_method_body(method.method_id)
        if body:
            lines.append(f"{indent}Implementation:")
            for body_line in body.split("\n"):
                lines.append(f"{indent}{body_line.rstrip()}")
        else:
            lines.append(f"{indent}// Implementation not available in source")
        lines.append("")

        if node.children:
            lines.append(f"{indent}--- Called Methods ---")
            for child in reversed(node.children):
                stack.append((child, level + 1))

    return "\n".join(lines) + "\n"

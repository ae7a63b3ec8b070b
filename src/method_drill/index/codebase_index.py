"""
In-memory codebase index backing every analysis collaborator.

Holds declared methods, their call sites, nesting of local/anonymous
functions and the abstract-to-concrete implementation map, and answers
both forward ("what does X call?") and backward ("what calls X?") lookups.
Snapshots load from and save to JSON or YAML.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import networkx as nx

from ..core.interfaces import ConcreteImplementationIndex, ReferenceIndex, SourceSymbolProvider
from ..core.models import CallSite, MethodDescriptor, MethodKind, ReferenceLocation

logger = logging.getLogger(__name__)


# Operator symbols as typed by users, mapped to their metadata method names
OPERATOR_METHOD_NAMES = {
    "+": "op_Addition",
    "-": "op_Subtraction",
    "*": "op_Multiply",
    "/": "op_Division",
    "==": "op_Equality",
    "!=": "op_Inequality",
    "<": "op_LessThan",
    ">": "op_GreaterThan",
}

_GENERIC_ARITY = re.compile(r"`\d+$")


def simple_type_name(class_name: str) -> str:
    """Strip a generic arity suffix: "Repository`1" -> "Repository"."""
    return _GENERIC_ARITY.sub("", class_name)


class CodebaseIndex(SourceSymbolProvider, ConcreteImplementationIndex, ReferenceIndex):
    """
    Method declarations, call sites and implementations of one codebase.

    Methods are keyed by their canonical method_id. A snapshot may also give
    each method a short alias id; call sites and implementation entries may
    refer to either form.

    Attributes:
        nodes: Canonical method id -> MethodDescriptor, in declaration order
        call_sites: Method id -> its own call sites, in source order
        parents: Method id -> id of the enclosing scope (nested functions)
        implementations: Abstract method id -> implementer ids, in index order
    """

    def __init__(self):
        self.nodes: Dict[str, MethodDescriptor] = {}
        self.call_sites: Dict[str, List[CallSite]] = {}
        self.parents: Dict[str, Optional[str]] = {}
        self.bodies: Dict[str, str] = {}
        self.implementations: Dict[str, List[str]] = {}
        self._aliases: Dict[str, str] = {}
        self._callers: Optional[Dict[str, List[ReferenceLocation]]] = None
        self._nested: Optional[Dict[str, List[str]]] = None
        self._graph: Optional[nx.MultiDiGraph] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_method(
        self,
        descriptor: MethodDescriptor,
        parent_id: Optional[str] = None,
        body: Optional[str] = None,
        alias: Optional[str] = None,
    ) -> str:
        """
        Add a declared method (or non-callable scope) to the index.

        Args:
            descriptor: The declaration
            parent_id: Enclosing scope for local/anonymous functions
            body: Source text of the body, if available
            alias: Optional short id that call sites may use

        Returns:
            The canonical method id
        """
        method_id = descriptor.method_id
        if method_id not in self.nodes:
            self.nodes[method_id] = descriptor
            self.call_sites[method_id] = []
            logger.debug(f"Added method: {method_id}")
        self.parents[method_id] = parent_id
        if body is not None:
            self.bodies[method_id] = body
        if alias and alias != method_id:
            self._aliases[alias] = method_id
        self._invalidate()
        return method_id

    def add_call_site(self, caller_id: str, call_site: CallSite) -> None:
        """Append a call site to a method body (source order is append order)."""
        caller_id = self.canonical_id(caller_id)
        self.call_sites.setdefault(caller_id, []).append(call_site)
        self._invalidate()

    def add_implementation(self, abstract_id: str, implementation_id: str) -> None:
        """Record a concrete implementer of an abstract/interface method."""
        implementers = self.implementations.setdefault(abstract_id, [])
        if implementation_id not in implementers:
            implementers.append(implementation_id)
            self._invalidate()

    def canonical_id(self, method_id: str) -> str:
        return self._aliases.get(method_id, method_id)

    def _parent_of(self, method_id: str) -> Optional[str]:
        parent_id = self.parents.get(method_id)
        return self.canonical_id(parent_id) if parent_id is not None else None

    def _invalidate(self) -> None:
        self._callers = None
        self._nested = None
        self._graph = None

    # ------------------------------------------------------------------
    # SourceSymbolProvider
    # ------------------------------------------------------------------

    async def get_descriptor(self, method_id: str) -> Optional[MethodDescriptor]:
        return self.nodes.get(self.canonical_id(method_id))

    async def get_call_sites(self, method_id: str) -> List[CallSite]:
        """
        Call sites in a method body, including those inside its nested local
        and anonymous functions.

        Sites are sorted by (line, column) when every site carries a line;
        otherwise the method's own sites come first, then nested ones in
        declaration order.
        """
        method_id = self.canonical_id(method_id)
        if method_id not in self.nodes:
            return []

        sites = list(self.call_sites.get(method_id, []))
        for nested_id in self._nested_functions(method_id):
            sites.extend(self.call_sites.get(nested_id, []))

        if sites and all(site.line is not None for site in sites):
            sites.sort(key=lambda site: (site.line, site.column or 0))
        return sites

    async def get_method_body(self, method_id: str) -> Optional[str]:
        return self.bodies.get(self.canonical_id(method_id))

    def _nested_functions(self, method_id: str) -> List[str]:
        """Local/anonymous functions whose body is textually inside method_id."""
        return self._build_nested_index().get(method_id, [])

    def _build_nested_index(self) -> Dict[str, List[str]]:
        """Scope id -> nested functions declared within it, in declaration order."""
        if self._nested is not None:
            return self._nested

        nested: Dict[str, List[str]] = {}
        for candidate_id, descriptor in self.nodes.items():
            if not descriptor.kind.is_nested:
                continue
            scope = self._parent_of(candidate_id)
            seen = set()
            while scope is not None and scope not in seen:
                seen.add(scope)
                nested.setdefault(scope, []).append(candidate_id)
                parent = self.nodes.get(scope)
                if parent is None or not parent.kind.is_nested:
                    break
                scope = self._parent_of(scope)
        self._nested = nested
        return nested

    # ------------------------------------------------------------------
    # ConcreteImplementationIndex
    # ------------------------------------------------------------------

    async def find(self, abstract_method_id: str) -> List[MethodDescriptor]:
        abstract_method_id = self.canonical_id(abstract_method_id)
        implementers = []
        for raw_id, ids in self.implementations.items():
            if self.canonical_id(raw_id) != abstract_method_id:
                continue
            for implementation_id in ids:
                descriptor = self.nodes.get(self.canonical_id(implementation_id))
                if descriptor is not None and descriptor not in implementers:
                    implementers.append(descriptor)
        return implementers

    # ------------------------------------------------------------------
    # ReferenceIndex
    # ------------------------------------------------------------------

    async def find_callers(self, method_id: str) -> List[ReferenceLocation]:
        return list(self._build_caller_index().get(self.canonical_id(method_id), []))

    async def location_to_enclosing_method(
        self, location: ReferenceLocation
    ) -> Optional[MethodDescriptor]:
        """Walk outward from the location's scope to the nearest callable."""
        scope = self.canonical_id(location.container_id)
        visited = set()
        while scope is not None and scope not in visited:
            visited.add(scope)
            descriptor = self.nodes.get(scope)
            if descriptor is not None and descriptor.kind.is_callable:
                return descriptor
            scope = self._parent_of(scope)
        return None

    def _build_caller_index(self) -> Dict[str, List[ReferenceLocation]]:
        """
        Reverse map: target id -> locations of the call sites that may bind to it.

        A site calling an abstract method is also recorded against each of its
        implementers, and an ambiguous site against each of its candidates.
        """
        if self._callers is not None:
            return self._callers

        implementers: Dict[str, List[str]] = {}
        for raw_id, ids in self.implementations.items():
            targets = implementers.setdefault(self.canonical_id(raw_id), [])
            for implementation_id in ids:
                implementation_id = self.canonical_id(implementation_id)
                if implementation_id not in targets:
                    targets.append(implementation_id)

        callers: Dict[str, List[ReferenceLocation]] = {}
        for container_id, sites in self.call_sites.items():
            file_path = self.nodes[container_id].file_path if container_id in self.nodes else None
            for site in sites:
                if site.target_id is not None:
                    target_id = self.canonical_id(site.target_id)
                    target_ids = [target_id] + implementers.get(target_id, [])
                else:
                    target_ids = [self.canonical_id(c) for c in site.candidate_ids]

                location = ReferenceLocation(
                    container_id=container_id,
                    file_path=file_path,
                    line=site.line,
                    column=site.column,
                    text=site.text,
                )
                for target_id in dict.fromkeys(target_ids):
                    callers.setdefault(target_id, []).append(location)
        self._callers = callers
        return callers

    # ------------------------------------------------------------------
    # Lookup by name
    # ------------------------------------------------------------------

    def find_overloads(
        self, namespace: str, class_name: str, method_name: str
    ) -> List[MethodDescriptor]:
        """
        Find every overload of Namespace.Class.Method across all projects.

        Operator symbols ("+", "==", ...) are accepted in place of their
        metadata names, and generic arity suffixes on type names are ignored.
        """
        method_name = OPERATOR_METHOD_NAMES.get(method_name, method_name)
        class_name = simple_type_name(class_name)
        return [
            descriptor for descriptor in self.nodes.values()
            if descriptor.namespace == namespace
            and simple_type_name(descriptor.class_name) == class_name
            and descriptor.name == method_name
            and descriptor.kind.is_callable
        ]

    # ------------------------------------------------------------------
    # Graph views
    # ------------------------------------------------------------------

    def _build_networkx_graph(self) -> nx.MultiDiGraph:
        """Build a NetworkX multigraph of direct call edges (one edge per site)."""
        if self._graph is not None:
            return self._graph

        self._graph = nx.MultiDiGraph()
        for method_id, descriptor in self.nodes.items():
            self._graph.add_node(method_id, qualified_name=descriptor.qualified_name)

        for caller_id, sites in self.call_sites.items():
            for site in sites:
                if site.target_id is None:
                    continue
                target_id = self.canonical_id(site.target_id)
                if target_id in self.nodes:
                    self._graph.add_edge(caller_id, target_id, text=site.text)

        logger.debug(
            f"Built NetworkX graph: {self._graph.number_of_nodes()} nodes, "
            f"{self._graph.number_of_edges()} edges"
        )
        return self._graph

    def find_cycles(self) -> List[List[str]]:
        """
        Find all elementary cycles among direct call edges.

        Returns:
            List of cycles, each a list of method ids
        """
        graph = nx.DiGraph(self._build_networkx_graph())
        try:
            return list(nx.simple_cycles(graph))
        except nx.NetworkXException as e:
            logger.warning(f"Failed to find cycles: {e}")
            return []

    def has_cycles(self) -> bool:
        return not nx.is_directed_acyclic_graph(self._build_networkx_graph())

    def get_stats(self) -> Dict[str, Any]:
        """Overall index statistics."""
        graph = self._build_networkx_graph()
        callable_ids = [mid for mid, d in self.nodes.items() if d.kind.is_callable]
        return {
            "total_methods": len(callable_ids),
            "total_call_sites": sum(len(sites) for sites in self.call_sites.values()),
            "call_edges": graph.number_of_edges(),
            "abstract_methods": sum(1 for d in self.nodes.values() if d.is_abstract),
            "external_methods": sum(1 for d in self.nodes.values() if not d.source_available),
            "implemented_abstractions": len(self.implementations),
            "projects": sorted({d.project for d in self.nodes.values()}),
        }

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the index to a snapshot dictionary."""
        aliases_by_id = {canonical: alias for alias, canonical in self._aliases.items()}
        methods = []
        for method_id, descriptor in self.nodes.items():
            entry = descriptor.to_dict()
            if method_id in aliases_by_id:
                entry["id"] = aliases_by_id[method_id]
            if self.parents.get(method_id):
                entry["parent"] = self.parents[method_id]
            if method_id in self.bodies:
                entry["body"] = self.bodies[method_id]
            entry["calls"] = [_call_site_to_dict(site) for site in self.call_sites.get(method_id, [])]
            methods.append(entry)
        return {
            "methods": methods,
            "implementations": {k: list(v) for k, v in self.implementations.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodebaseIndex":
        """
        Build an index from a snapshot dictionary.

        Snapshot shape:
            {
              "methods": [
                {"id": "svc.run", "name": "Run", "class_name": "Service",
                 "namespace": "App", "project": "App.Core",
                 "return_type": "void", "parameters": [["int", "count"]],
                 "kind": "method", "is_abstract": false,
                 "source_available": true, "parent": null, "body": "...",
                 "calls": [{"target": "repo.save", "text": "repo.Save()", "line": 12},
                           {"candidates": ["a.f", "b.f"], "text": "x.F()"}]}
              ],
              "implementations": {"irepo.save": ["repo.save"]}
            }
        """
        index = cls()
        for entry in data.get("methods", []):
            descriptor = MethodDescriptor.from_dict(entry)
            method_id = index.add_method(
                descriptor,
                parent_id=entry.get("parent"),
                body=entry.get("body"),
                alias=entry.get("id"),
            )
            for call in entry.get("calls", []):
                index.add_call_site(method_id, _call_site_from_dict(call))

        for abstract_id, implementation_ids in data.get("implementations", {}).items():
            for implementation_id in implementation_ids:
                index.add_implementation(abstract_id, implementation_id)

        logger.info(f"Loaded codebase index with {len(index.nodes)} methods")
        return index

    @classmethod
    def from_file(cls, snapshot_path: str) -> "CodebaseIndex":
        """Load an index snapshot from a JSON or YAML file."""
        snapshot_path = Path(snapshot_path)

        if not snapshot_path.exists():
            raise FileNotFoundError(f"Index snapshot not found: {snapshot_path}")

        with open(snapshot_path, 'r', encoding='utf-8') as f:
            content = f.read()

        if snapshot_path.suffix in ('.yaml', '.yml'):
            import yaml
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)

        return cls.from_dict(data or {})

    def save_to_file(self, snapshot_path: str) -> None:
        """Save the index snapshot to a JSON or YAML file."""
        snapshot_path = Path(snapshot_path)
        data = self.to_dict()

        with open(snapshot_path, 'w', encoding='utf-8') as f:
            if snapshot_path.suffix in ('.yaml', '.yml'):
                import yaml
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(data, f, indent=2)

        logger.info(f"Saved codebase index to: {snapshot_path}")

    def clear(self) -> None:
        """Remove every method, call site and implementation."""
        self.nodes.clear()
        self.call_sites.clear()
        self.parents.clear()
        self.bodies.clear()
        self.implementations.clear()
        self._aliases.clear()
        self._invalidate()
        logger.debug("Cleared codebase index")


def _call_site_from_dict(data: Dict[str, Any]) -> CallSite:
    return CallSite(
        target_id=data.get("target"),
        candidate_ids=tuple(data.get("candidates", ())),
        text=data.get("text", ""),
        line=data.get("line"),
        column=data.get("column"),
    )


def _call_site_to_dict(site: CallSite) -> Dict[str, Any]:
    data: Dict[str, Any] = {"text": site.text}
    if site.target_id is not None:
        data["target"] = site.target_id
    if site.candidate_ids:
        data["candidates"] = list(site.candidate_ids)
    if site.line is not None:
        data["line"] = site.line
    if site.column is not None:
        data["column"] = site.column
    return data

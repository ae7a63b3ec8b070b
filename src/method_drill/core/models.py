"""
Core data types for call-graph extraction.

MethodDescriptor is the identity every traversal keys on; CallNode is the
forward tree, AncestorPath the backward result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class MethodKind(str, Enum):
    """
    Kind of declaration a descriptor or scope refers to.

    Everything except INITIALIZER is a callable that can enclose a call site.
    """
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    ACCESSOR = "accessor"
    LOCAL_FUNCTION = "local_function"
    ANONYMOUS_FUNCTION = "anonymous_function"
    INITIALIZER = "initializer"

    @property
    def is_callable(self) -> bool:
        return self is not MethodKind.INITIALIZER

    @property
    def is_nested(self) -> bool:
        """Local and anonymous functions live inside another callable's body."""
        return self in (MethodKind.LOCAL_FUNCTION, MethodKind.ANONYMOUS_FUNCTION)


@dataclass(frozen=True)
class Parameter:
    """A single (type, name) parameter pair."""
    type: str
    name: str

    def __str__(self) -> str:
        return f"{self.type} {self.name}"


@dataclass(frozen=True, eq=False)
class MethodDescriptor:
    """
    Identity plus signature of a declared method.

    Equality and hashing use only the identity key (project, namespace,
    class, name, parameter types), so two descriptors built from different
    call sites for the same declaration compare equal.

    Attributes:
        name: Simple method name, e.g. "Process"
        class_name: Containing type name, e.g. "OrderService"
        namespace: Containing namespace, e.g. "Shop.Orders"
        project: Project (assembly) the declaration belongs to
        return_type: Declared return type
        parameters: Ordered parameters
        source_available: False for external/library methods without a body
        is_abstract: True for abstract and interface members
        kind: Declaration kind
        file_path: Source file, when known
        line: Declaration line, when known
    """
    name: str
    class_name: str
    namespace: str
    project: str
    return_type: str = "void"
    parameters: Tuple[Parameter, ...] = ()
    source_available: bool = True
    is_abstract: bool = False
    kind: MethodKind = MethodKind.METHOD
    file_path: Optional[str] = None
    line: Optional[int] = None

    @property
    def key(self) -> Tuple[str, str, str, str, Tuple[str, ...]]:
        return (
            self.project,
            self.namespace,
            self.class_name,
            self.name,
            tuple(p.type for p in self.parameters),
        )

    def __hash__(self):
        return hash(self.key)

    def __eq__(self, other):
        if not isinstance(other, MethodDescriptor):
            return False
        return self.key == other.key

    @property
    def qualified_name(self) -> str:
        parts = [p for p in (self.namespace, self.class_name, self.name) if p]
        return ".".join(parts)

    @property
    def full_type_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}.{self.class_name}"
        return self.class_name

    @property
    def method_id(self) -> str:
        """Stable string id used when talking to collaborators."""
        param_types = ",".join(p.type for p in self.parameters)
        return f"{self.project}::{self.qualified_name}({param_types})"

    @property
    def params_info(self) -> str:
        return ", ".join(str(p) for p in self.parameters)

    @property
    def signature(self) -> str:
        return f"{self.return_type} {self.name}({self.params_info})"

    @property
    def display_name(self) -> str:
        return f"{self.class_name}.{self.name}"

    def __repr__(self) -> str:
        return f"MethodDescriptor({self.method_id})"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the descriptor for storage/transmission."""
        return {
            "name": self.name,
            "class_name": self.class_name,
            "namespace": self.namespace,
            "project": self.project,
            "return_type": self.return_type,
            "parameters": [[p.type, p.name] for p in self.parameters],
            "source_available": self.source_available,
            "is_abstract": self.is_abstract,
            "kind": self.kind.value,
            "file_path": self.file_path,
            "line": self.line,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MethodDescriptor":
        """Deserialize a descriptor. Parameters may be [type, name] pairs or dicts."""
        parameters = []
        for param in data.get("parameters", []):
            if isinstance(param, dict):
                parameters.append(Parameter(type=param["type"], name=param.get("name", "")))
            else:
                parameters.append(Parameter(type=param[0], name=param[1] if len(param) > 1 else ""))
        return cls(
            name=data["name"],
            class_name=data.get("class_name", ""),
            namespace=data.get("namespace", ""),
            project=data.get("project", ""),
            return_type=data.get("return_type", "void"),
            parameters=tuple(parameters),
            source_available=data.get("source_available", True),
            is_abstract=data.get("is_abstract", False),
            kind=MethodKind(data.get("kind", MethodKind.METHOD.value)),
            file_path=data.get("file_path"),
            line=data.get("line"),
        )


@dataclass(frozen=True)
class CallSite:
    """
    One invocation inside a method body.

    Exactly one of target_id / candidate_ids is normally set. A site with
    neither could not be bound to any method at all.
    """
    target_id: Optional[str] = None
    candidate_ids: Tuple[str, ...] = ()
    text: str = ""
    line: Optional[int] = None
    column: Optional[int] = None

    @property
    def is_ambiguous(self) -> bool:
        return self.target_id is None and len(self.candidate_ids) > 0


@dataclass(frozen=True)
class ReferenceLocation:
    """Where a call site referencing some method lives."""
    container_id: str
    file_path: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    text: str = ""


@dataclass
class CallNode:
    """
    A method in the forward call tree.

    Children appear once per call site in source order; a childless node for
    an already-visited method marks a truncated re-entry.
    """
    method: MethodDescriptor
    children: List["CallNode"] = field(default_factory=list)
    resolved_from_interface: Optional[str] = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def iter_nodes(self):
        """Pre-order iteration over this node and all descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def count_nodes(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def shape(self) -> Tuple:
        """Structural fingerprint (identity + label + children) for comparisons."""
        return (
            self.method.key,
            self.resolved_from_interface,
            tuple(child.shape() for child in self.children),
        )


@dataclass
class DisambiguationRequest:
    """
    What the oracle sees when a call has several concrete targets.

    abstract_method is None for an ambiguous call site, where the candidates
    are the possible bindings rather than implementers of one declaration.
    """
    abstract_method: Optional[MethodDescriptor]
    call_site_text: str
    candidates: List[MethodDescriptor]
    caller: Optional[MethodDescriptor] = None

    def candidate_names(self) -> List[str]:
        return [c.full_type_name for c in self.candidates]

    def describe_target(self) -> str:
        if self.abstract_method is not None:
            return self.abstract_method.qualified_name
        return f"ambiguous call {self.call_site_text or '(unknown)'}"

    def fingerprint(self) -> Tuple:
        return (
            self.abstract_method.key if self.abstract_method else None,
            self.call_site_text,
            self.caller.key if self.caller else None,
            tuple(c.key for c in self.candidates),
        )


@dataclass(frozen=True)
class DependencyIndexItem:
    """One row of the dependency index: how often a (project, namespace) was entered."""
    project_name: str
    namespace: str
    times_referenced: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_name": self.project_name,
            "namespace": self.namespace,
            "times_referenced": self.times_referenced,
        }


# Ordered from the queried method outward to an entry point
AncestorPath = List[MethodDescriptor]

"""Core types and collaborator interfaces for method-drill"""

from .models import (
    AncestorPath,
    CallNode,
    CallSite,
    DependencyIndexItem,
    DisambiguationRequest,
    MethodDescriptor,
    MethodKind,
    Parameter,
    ReferenceLocation,
)
from .interfaces import (
    AnalysisError,
    ConcreteImplementationIndex,
    DisambiguationOracle,
    MethodNotFoundError,
    ProviderUnavailableError,
    ReferenceIndex,
    SourceSymbolProvider,
)

__all__ = [
    "AncestorPath",
    "CallNode",
    "CallSite",
    "DependencyIndexItem",
    "DisambiguationRequest",
    "MethodDescriptor",
    "MethodKind",
    "Parameter",
    "ReferenceLocation",
    "AnalysisError",
    "ConcreteImplementationIndex",
    "DisambiguationOracle",
    "MethodNotFoundError",
    "ProviderUnavailableError",
    "ReferenceIndex",
    "SourceSymbolProvider",
]

"""
Abstract collaborators consumed by the analysis engine, and its error taxonomy.

Every collaborator call is async: implementations may sit on a compiler
workspace, a database, or a network service.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from .models import CallSite, DisambiguationRequest, MethodDescriptor, ReferenceLocation


class AnalysisError(Exception):
    """Base exception for analysis failures."""
    pass


class MethodNotFoundError(AnalysisError):
    """Raised when the requested method cannot be located."""
    pass


class ProviderUnavailableError(AnalysisError):
    """Raised by a collaborator that cannot serve requests at all."""
    pass


class SourceSymbolProvider(ABC):
    """Descriptor lookup and call-site enumeration for declared methods."""

    @abstractmethod
    async def get_descriptor(self, method_id: str) -> Optional[MethodDescriptor]:
        """
        Look up a method by id.

        Returns:
            The descriptor, or None if no such method is known
        """
        pass

    @abstractmethod
    async def get_call_sites(self, method_id: str) -> List[CallSite]:
        """
        List the call sites in a method body, in source order.

        Returns:
            Ordered call sites; empty for methods without a body
        """
        pass

    async def get_method_body(self, method_id: str) -> Optional[str]:
        """Source text of a method body, if the provider keeps it."""
        return None


class ConcreteImplementationIndex(ABC):
    """Maps abstract/interface methods to their concrete implementations."""

    @abstractmethod
    async def find(self, abstract_method_id: str) -> List[MethodDescriptor]:
        """
        Find concrete implementers of an abstract method.

        Returns:
            Implementers in stable index iteration order
        """
        pass


class ReferenceIndex(ABC):
    """Backward lookups: who references a method, and from where."""

    @abstractmethod
    async def find_callers(self, method_id: str) -> List[ReferenceLocation]:
        """Return every call-site location that references the method."""
        pass

    @abstractmethod
    async def location_to_enclosing_method(
        self, location: ReferenceLocation
    ) -> Optional[MethodDescriptor]:
        """
        Map a location to its nearest enclosing callable.

        Returns:
            The enclosing method/constructor/accessor/local or anonymous
            function, or None if the location is outside any callable
        """
        pass


class DisambiguationOracle(ABC):
    """External decision service choosing among several concrete targets."""

    @abstractmethod
    async def choose(
        self, request: DisambiguationRequest
    ) -> Optional[Union[str, MethodDescriptor]]:
        """
        Pick one candidate.

        Returns:
            A candidate name (method id, full type name or type name), a
            candidate descriptor, or None for no choice. May raise; callers
            treat any exception as "no choice".
        """
        pass

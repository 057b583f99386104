"""Base classes for resource providers."""

from abc import ABC, abstractmethod
from typing import Optional

from azure_tui.models import NodeKind, NodeRef, NodeSpec


class ResourceProvider(ABC):
    """Lists the children of one or more expandable node kinds."""

    @property
    @abstractmethod
    def expands(self) -> tuple[NodeKind, ...]:
        """Node kinds this provider can expand."""
        pass

    @abstractmethod
    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        """Return the children of ``node`` in display order."""
        pass


class RootProvider(ABC):
    """Lists the first level of a tree."""

    @abstractmethod
    def list_roots(self, timeout: float) -> list[NodeSpec]:
        """Return the root nodes in display order."""
        pass


class ProviderRegistry:
    """Registry of providers, keyed by the node kind they expand."""

    def __init__(self, roots: Optional[RootProvider] = None) -> None:
        self.roots = roots
        self._providers: dict[NodeKind, ResourceProvider] = {}

    def register(self, provider: ResourceProvider) -> None:
        """Register a provider for every kind it expands."""
        for kind in provider.expands:
            self._providers[kind] = provider

    def get(self, kind: NodeKind) -> Optional[ResourceProvider]:
        return self._providers.get(kind)

    def has(self, kind: NodeKind) -> bool:
        return kind in self._providers

    @property
    def expandable_kinds(self) -> set[NodeKind]:
        return set(self._providers)

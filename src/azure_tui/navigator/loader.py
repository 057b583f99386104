"""Lazy loading of children, tagged with the tree generation.

``begin`` and ``apply`` run on the UI loop and mutate the store. ``fetch``
is the only blocking step; hosts run it on a background worker and hand the
outcome back to the loop.
"""

import subprocess
from dataclasses import dataclass, field
from typing import Optional

import httpx
import structlog

from azure_tui.config import DEFAULT_LOAD_TIMEOUT
from azure_tui.models import ChildState, NodeKind, NodeRef, NodeSpec
from azure_tui.navigator.store import NodeStore
from azure_tui.providers.base import ProviderRegistry


logger = structlog.get_logger()


@dataclass(frozen=True)
class LoadRequest:
    """A request to list the children of one node."""

    node: NodeRef
    generation: int

    @property
    def handle(self) -> int:
        return self.node.handle


@dataclass(frozen=True)
class RootRequest:
    """A request to rebuild the forest from the root listing."""

    generation: int


@dataclass
class LoadOutcome:
    """Result of a fetch: child specs on success, a message on failure."""

    request: LoadRequest | RootRequest
    specs: list[NodeSpec] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def describe_error(exc: BaseException, timeout: float) -> str:
    """Human-readable message for a provider failure."""
    if isinstance(exc, (TimeoutError, subprocess.TimeoutExpired, httpx.TimeoutException)):
        return f"Timed out after {timeout:g}s"
    message = str(exc).strip()
    return message or exc.__class__.__name__


class LazyLoader:
    """Drives the NOT_LOADED -> LOADING -> LOADED/FAILED state machine."""

    def __init__(self, registry: ProviderRegistry, timeout: float = DEFAULT_LOAD_TIMEOUT):
        self.registry = registry
        self.timeout = timeout

    def can_load(self, kind: NodeKind) -> bool:
        return self.registry.has(kind)

    # -- UI loop ----------------------------------------------------------------

    def begin(self, store: NodeStore, handle: int) -> Optional[LoadRequest]:
        """Mark ``handle`` as loading and build its request.

        Returns None when a load is already in flight, the children are
        already loaded, or no provider expands this kind.
        """
        node = store.get(handle)
        if not self.can_load(node.kind):
            return None
        if node.child_state not in (ChildState.NOT_LOADED, ChildState.FAILED):
            return None

        if node.child_state == ChildState.FAILED:
            store.remove_children(handle)
        node.child_state = ChildState.LOADING
        return LoadRequest(node=store.ref(handle), generation=store.generation)

    def apply(self, store: NodeStore, outcome: LoadOutcome) -> bool:
        """Merge a finished load into the store.

        Returns False when the outcome was discarded as stale.
        """
        request = outcome.request
        if not isinstance(request, LoadRequest):
            raise TypeError("apply() expects a child load outcome")

        if request.generation != store.generation or request.handle not in store:
            logger.debug(
                "stale_load_discarded",
                node=request.node.node_id,
                generation=request.generation,
                current=store.generation,
            )
            return False

        node = store.get(request.handle)
        if node.child_state != ChildState.LOADING:
            return False

        if outcome.ok:
            store.replace_children(node.handle, outcome.specs)
            node.child_state = ChildState.LOADED
        else:
            store.remove_children(node.handle)
            store.add_error_child(node.handle, outcome.error)
            node.child_state = ChildState.FAILED
        return True

    def begin_roots(self, store: NodeStore) -> RootRequest:
        """Discard the forest and build a request for fresh roots."""
        store.set_roots([])
        return RootRequest(generation=store.generation)

    def apply_roots(self, store: NodeStore, outcome: LoadOutcome) -> bool:
        request = outcome.request
        if not isinstance(request, RootRequest):
            raise TypeError("apply_roots() expects a root load outcome")
        if request.generation != store.generation:
            logger.debug("stale_roots_discarded", generation=request.generation)
            return False

        if outcome.ok:
            store.set_roots(outcome.specs)
        else:
            store.set_roots(
                [
                    NodeSpec(
                        node_id=f"error-roots-{store.generation}",
                        kind=NodeKind.ERROR,
                        label=outcome.error,
                    )
                ]
            )
        return True

    # -- background worker ----------------------------------------------------

    def fetch(self, request: LoadRequest) -> LoadOutcome:
        """Call the provider for ``request``. Never raises."""
        provider = self.registry.get(request.node.kind)
        if provider is None:
            return LoadOutcome(request, error=f"No provider for {request.node.kind.value}")
        try:
            specs = provider.list_children(request.node, self.timeout)
        except Exception as e:
            message = describe_error(e, self.timeout)
            logger.warning(
                "load_failed",
                kind=request.node.kind.value,
                node=request.node.node_id,
                error=message,
            )
            return LoadOutcome(request, error=message)
        logger.debug("load_finished", node=request.node.node_id, count=len(specs))
        return LoadOutcome(request, specs=list(specs))

    def fetch_roots(self, request: RootRequest) -> LoadOutcome:
        """Call the root provider. Never raises."""
        if self.registry.roots is None:
            return LoadOutcome(request, error="No root provider configured")
        try:
            specs = self.registry.roots.list_roots(self.timeout)
        except Exception as e:
            message = describe_error(e, self.timeout)
            logger.warning("root_load_failed", error=message)
            return LoadOutcome(request, error=message)
        return LoadOutcome(request, specs=list(specs))

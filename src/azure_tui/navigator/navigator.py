"""Tree navigator: selection, expansion and action invocation.

Every method here runs on the UI loop. Methods that need the outside world
return a request object; the host runs the blocking half (``LazyLoader.fetch``
or ``ActionRouter.execute``) on a worker and passes the outcome back through
``apply_load``, ``apply_roots`` or ``apply_action_result``.
"""

from typing import Any, Optional, Union

import structlog

from azure_tui.models import ActionResult, ChildState, NodeKind, NodeRef
from azure_tui.navigator.actions import ActionRequest, ActionRouter, ActionSpec
from azure_tui.navigator.loader import (
    DEFAULT_LOAD_TIMEOUT,
    LazyLoader,
    LoadOutcome,
    LoadRequest,
    RootRequest,
)
from azure_tui.navigator.search import SearchResult, search_tree, suggestions
from azure_tui.navigator.store import Node, NodeStore
from azure_tui.navigator.viewport import Row, build_rows, flatten_visible, visible_window
from azure_tui.providers.base import ProviderRegistry


logger = structlog.get_logger()


class TreeNavigator:
    """Owns one navigable tree and the actions that apply to it."""

    def __init__(
        self,
        registry: ProviderRegistry,
        router: Optional[ActionRouter] = None,
        max_visible_rows: int = 20,
        load_timeout: float = DEFAULT_LOAD_TIMEOUT,
    ):
        self.store = NodeStore()
        self.registry = registry
        self.loader = LazyLoader(registry, timeout=load_timeout)
        self.router = router or ActionRouter()
        self.max_visible_rows = max(1, max_visible_rows)
        self.status = ""
        self._query = ""
        self._matches: list[SearchResult] = []
        self._match_index = 0
        self._match_generation = -1

    # -- views --------------------------------------------------------------

    def flat(self) -> list[Node]:
        return flatten_visible(self.store)

    def selected(self) -> Optional[Node]:
        flat = self.flat()
        if not flat:
            return None
        return flat[self.store.selected_index]

    def is_expandable(self, node: Node) -> bool:
        if node.is_error:
            return False
        return bool(node.children) or self.loader.can_load(node.kind)

    def window(self) -> list[Row]:
        """Rows to render, updating the stored scroll offset."""
        flat = self.flat()
        window, offset = visible_window(
            flat, self.store.selected_index, self.store.scroll_offset, self.max_visible_rows
        )
        self.store.scroll_offset = offset
        selected = flat[self.store.selected_index] if flat else None
        return build_rows(window, selected, self.registry.expandable_kinds)

    def resize(self, max_visible_rows: int) -> None:
        self.max_visible_rows = max(1, max_visible_rows)

    def header_context(self) -> dict[str, str]:
        """Breadcrumb for the header: organization and current project."""
        context: dict[str, str] = {}
        org = self.store.find_by_kind(NodeKind.ORGANIZATION)
        if org is not None:
            context["organization"] = org.label
        project = self.store.find_first_expanded_of_kind(NodeKind.PROJECT)
        if project is not None:
            context["project"] = project.label
        return context

    # -- selection ----------------------------------------------------------

    def move_up(self) -> None:
        if self.store.selected_index > 0:
            self.store.selected_index -= 1

    def move_down(self) -> None:
        if self.store.selected_index < len(self.flat()) - 1:
            self.store.selected_index += 1

    def _clamp_selection(self, flat: list[Node]) -> None:
        if not flat:
            self.store.selected_index = 0
        else:
            self.store.selected_index = max(0, min(self.store.selected_index, len(flat) - 1))

    def _anchor_selection(self, handle: Optional[int]) -> None:
        """Keep the cursor on ``handle`` if it is still visible."""
        flat = self.flat()
        if handle is not None:
            for index, node in enumerate(flat):
                if node.handle == handle:
                    self.store.selected_index = index
                    return
        self._clamp_selection(flat)

    def activate(self) -> Optional[NodeRef]:
        """Select the node under the cursor for the detail pane."""
        node = self.selected()
        if node is None:
            return None
        if node.is_error:
            self.status = node.label
        return self.store.ref(node.handle)

    # -- search -------------------------------------------------------------

    def search(self, text: str) -> list[SearchResult]:
        return search_tree(self.store, text)

    def suggest(self, partial: str) -> list[str]:
        return suggestions(self.store, partial)

    def reveal(self, handle: int) -> None:
        """Expand the path to ``handle`` and move the cursor onto it."""
        self.store.expand_ancestors(handle)
        self._anchor_selection(handle)

    def find(self, text: str) -> Optional[SearchResult]:
        """Jump to the best match for ``text``.

        Repeating the same query moves to the next match, wrapping around.
        Matches are recomputed when the query changes or the tree was
        refreshed since the last search.
        """
        query = text.strip()
        repeat = (
            query == self._query
            and self._matches
            and self._match_generation == self.store.generation
            and all(match.handle in self.store for match in self._matches)
        )
        if repeat:
            self._match_index = (self._match_index + 1) % len(self._matches)
        else:
            self._query = query
            self._matches = self.search(query)
            self._match_index = 0
            self._match_generation = self.store.generation

        if not self._matches:
            self.status = f"No matches for '{query}'" if query else ""
            return None
        match = self._matches[self._match_index]
        self.reveal(match.handle)
        self.status = f"Match {self._match_index + 1} of {len(self._matches)}: {match.label}"
        return match

    # -- loading ------------------------------------------------------------

    def refresh(self) -> RootRequest:
        """Discard the tree and ask for a fresh root listing."""
        self.status = "Refreshing..."
        return self.loader.begin_roots(self.store)

    def apply_roots(self, outcome: LoadOutcome) -> bool:
        applied = self.loader.apply_roots(self.store, outcome)
        if applied:
            self.status = "" if outcome.ok else outcome.error
        return applied

    def toggle_expand(self) -> Optional[LoadRequest]:
        """Expand or collapse the selected node.

        Returns a load request when expansion needs children that are not
        loaded yet (or failed last time). Collapsing keeps the children.
        """
        node = self.selected()
        if node is None or not self.is_expandable(node):
            return None

        expanded = self.store.toggle_expansion(node.handle)
        if not expanded:
            self._clamp_selection(self.flat())
            return None

        if node.child_state in (ChildState.NOT_LOADED, ChildState.FAILED):
            request = self.loader.begin(self.store, node.handle)
            if request is not None:
                self.status = f"Loading {node.label}..."
                logger.debug("load_started", node=node.node_id, generation=request.generation)
            return request
        return None

    def apply_load(self, outcome: LoadOutcome) -> bool:
        """Merge a finished load, keeping the cursor on the same node."""
        current = self.selected()
        anchor = current.handle if current else None
        applied = self.loader.apply(self.store, outcome)
        if not applied:
            return False

        if outcome.ok:
            self.status = ""
        else:
            self.status = outcome.error
        self._anchor_selection(anchor)
        return True

    # -- actions ------------------------------------------------------------

    def available_actions(self) -> list[ActionSpec]:
        node = self.selected()
        if node is None:
            return []
        return self.router.specs_for(node.kind)

    def resolve_action(self, key: str) -> Optional[ActionSpec]:
        """Find the action bound to ``key`` (or named ``key``) on the selection."""
        node = self.selected()
        if node is None:
            return None
        return self.router.action_for_key(node.kind, key) or self.router.get(node.kind, key)

    def invoke_action(
        self, key: str, params: Optional[dict[str, Any]] = None
    ) -> Union[ActionRequest, ActionResult]:
        """Validate an action on the selected node.

        A failed ActionResult comes back immediately when nothing is
        selected, the action is unknown, or parameters are missing.
        """
        node = self.selected()
        if node is None:
            result = ActionResult.failed("No resource selected")
            self.status = result.message
            return result

        spec = self.resolve_action(key)
        name = spec.name if spec else key
        prepared = self.router.prepare(
            self.store.ref(node.handle), name, params, generation=self.store.generation
        )
        if isinstance(prepared, ActionResult):
            self.status = prepared.message
        else:
            self.status = f"Running {prepared.label}..."
        return prepared

    def apply_action_result(self, request: ActionRequest, result: ActionResult) -> bool:
        """Surface an action result, unless the tree was refreshed meanwhile."""
        if request.generation != self.store.generation:
            logger.debug("stale_action_result", action=request.spec.name)
            return False
        self.status = result.message
        return True

"""Node store: the resource forest as a flat arena of nodes.

Nodes refer to each other by integer handles (arena indices) instead of
object references. Replacing the forest discards the whole arena and bumps
the generation counter, which invalidates every handle issued before.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from azure_tui.models import ChildState, NodeKind, NodeRef, NodeSpec


class InvalidParent(Exception):
    """Raised when attaching a child to a node that is not in the store."""


class TreeInvariantError(Exception):
    """Raised by NodeStore.verify when the forest is inconsistent."""


@dataclass(eq=False)
class Node:
    """One entry in the resource tree."""

    handle: int
    node_id: str
    kind: NodeKind
    label: str
    status_text: str = ""
    last_activity_text: str = ""
    payload: Any = None
    parent: Optional[int] = None
    children: list[int] = field(default_factory=list)
    depth: int = 0
    expanded: bool = False
    child_state: ChildState = ChildState.NOT_LOADED

    @property
    def is_error(self) -> bool:
        return self.kind == NodeKind.ERROR


class NodeStore:
    """Owns the forest, the selection cursor and the generation token."""

    def __init__(self) -> None:
        self._arena: list[Optional[Node]] = []
        self.roots: list[int] = []
        self.generation = 0
        self.selected_index = 0
        self.scroll_offset = 0
        self._error_serial = 0

    def __contains__(self, handle: object) -> bool:
        return (
            isinstance(handle, int)
            and 0 <= handle < len(self._arena)
            and self._arena[handle] is not None
        )

    def __len__(self) -> int:
        return sum(1 for node in self._arena if node is not None)

    def get(self, handle: int) -> Node:
        """Return the live node for ``handle``."""
        if handle not in self:
            raise KeyError(handle)
        return self._arena[handle]

    # -- structural mutation ------------------------------------------------

    def _allocate(self, spec: NodeSpec, parent: Optional[Node]) -> Node:
        node = Node(
            handle=len(self._arena),
            node_id=spec.node_id,
            kind=spec.kind,
            label=spec.label,
            status_text=spec.status_text,
            last_activity_text=spec.last_activity_text,
            payload=spec.payload,
            parent=parent.handle if parent else None,
            depth=parent.depth + 1 if parent else 0,
        )
        # Error nodes are leaves; nothing to load under them
        if node.kind == NodeKind.ERROR:
            node.child_state = ChildState.LOADED
        self._arena.append(node)
        return node

    def set_roots(self, specs: list[NodeSpec]) -> list[Node]:
        """Replace the whole forest with new roots.

        Invalidates every existing handle, increments the generation and
        resets the selection and scroll position.
        """
        self._arena = []
        self.roots = []
        self.generation += 1
        self.selected_index = 0
        self.scroll_offset = 0

        nodes = [self._allocate(spec, None) for spec in specs]
        self.roots = [node.handle for node in nodes]
        return nodes

    def add_child(self, parent: int, spec: NodeSpec) -> Node:
        """Append a child under ``parent``."""
        if parent not in self:
            raise InvalidParent(f"Node {parent} is not in the store")
        parent_node = self._arena[parent]
        child = self._allocate(spec, parent_node)
        parent_node.children.append(child.handle)
        return child

    def add_error_child(self, parent: int, message: str) -> Node:
        """Attach a synthetic error node carrying ``message``."""
        self._error_serial += 1
        spec = NodeSpec(
            node_id=f"error-{self.generation}-{self._error_serial}",
            kind=NodeKind.ERROR,
            label=message,
        )
        return self.add_child(parent, spec)

    def remove_children(self, handle: int) -> None:
        """Drop every descendant of ``handle`` from the arena."""
        node = self.get(handle)
        stack = list(node.children)
        while stack:
            child = self._arena[stack.pop()]
            if child is None:
                continue
            stack.extend(child.children)
            self._arena[child.handle] = None
        node.children = []

    def replace_children(self, handle: int, specs: list[NodeSpec]) -> list[Node]:
        """Swap the children of ``handle`` for nodes built from ``specs``."""
        self.remove_children(handle)
        return [self.add_child(handle, spec) for spec in specs]

    def toggle_expansion(self, handle: int) -> bool:
        """Flip the expanded flag. Never loads children."""
        node = self.get(handle)
        node.expanded = not node.expanded
        return node.expanded

    def expand_ancestors(self, handle: int) -> None:
        """Expand every ancestor of ``handle`` so it becomes visible."""
        for node in self.ancestors(handle):
            node.expanded = True

    # -- traversal ------------------------------------------------------------

    def walk(self) -> Iterator[Node]:
        """All live nodes in pre-order, ignoring expansion."""
        stack = [self._arena[h] for h in reversed(self.roots)]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(self._arena[h] for h in reversed(node.children))

    def ancestors(self, handle: int) -> Iterator[Node]:
        """Parent chain of ``handle``, nearest first."""
        node = self.get(handle)
        while node.parent is not None:
            node = self._arena[node.parent]
            yield node

    def find_by_kind(self, kind: NodeKind) -> Optional[Node]:
        for node in self.walk():
            if node.kind == kind:
                return node
        return None

    def find_first_expanded_of_kind(self, kind: NodeKind) -> Optional[Node]:
        for node in self.walk():
            if node.kind == kind and node.expanded:
                return node
        return None

    def find_first_expanded_ancestor_of_kind(
        self, handle: int, kind: NodeKind
    ) -> Optional[Node]:
        """Nearest expanded node of ``kind`` from ``handle`` upward (inclusive)."""
        node = self.get(handle)
        chain = [node, *self.ancestors(handle)]
        for candidate in chain:
            if candidate.kind == kind and candidate.expanded:
                return candidate
        return None

    def lineage(self, handle: int) -> dict[NodeKind, Any]:
        """Payload of the nearest node of each kind, ``handle`` included."""
        node = self.get(handle)
        result: dict[NodeKind, Any] = {}
        for candidate in [node, *self.ancestors(handle)]:
            result.setdefault(candidate.kind, candidate.payload)
        return result

    def ref(self, handle: int) -> NodeRef:
        node = self.get(handle)
        return NodeRef(
            handle=node.handle,
            node_id=node.node_id,
            kind=node.kind,
            label=node.label,
            payload=node.payload,
            lineage=self.lineage(handle),
        )

    def verify(self) -> None:
        """Check the structural invariants of the forest."""
        seen: set[int] = set()
        for node in self.walk():
            if node.handle in seen:
                raise TreeInvariantError(f"Node {node.handle} reachable twice")
            seen.add(node.handle)

            if node.parent is None:
                if node.depth != 0 or node.handle not in self.roots:
                    raise TreeInvariantError(f"Root {node.handle} has depth {node.depth}")
            else:
                parent = self._arena[node.parent]
                if parent is None or node.handle not in parent.children:
                    raise TreeInvariantError(f"Node {node.handle} detached from parent")
                if node.depth != parent.depth + 1:
                    raise TreeInvariantError(f"Node {node.handle} has wrong depth")

            if node.child_state == ChildState.NOT_LOADED and node.children:
                raise TreeInvariantError(f"Unloaded node {node.handle} has children")
            if node.child_state == ChildState.FAILED:
                kids = [self._arena[h] for h in node.children]
                if len(kids) != 1 or not kids[0].is_error:
                    raise TreeInvariantError(
                        f"Failed node {node.handle} must hold exactly one error child"
                    )

        if len(seen) != len(self):
            raise TreeInvariantError("Arena holds unreachable nodes")

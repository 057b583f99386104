"""Flattening and the scroll window over the visible rows."""

from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

from azure_tui.models import ChildState, KIND_ICONS, NodeKind, normalize_status
from azure_tui.navigator.store import Node, NodeStore


T = TypeVar("T")

# Kinds whose status text is a pipeline/run status
_RUN_STATUS_KINDS = {NodeKind.PIPELINE, NodeKind.RUN}


@dataclass(frozen=True)
class Row:
    """Render input for one visible line."""

    handle: int
    depth: int
    kind: NodeKind
    kind_icon: str
    label: str
    status_indicator: str
    last_activity: str
    expandable: bool
    expanded: bool
    selected: bool


def flatten_visible(store: NodeStore) -> list[Node]:
    """Pre-order list of the rows a user can currently see.

    Children appear only under expanded nodes. A collapsed node hides its
    whole subtree, whatever the descendants' own expanded flags say.
    """
    result: list[Node] = []
    stack = [store.get(h) for h in reversed(store.roots)]
    while stack:
        node = stack.pop()
        result.append(node)
        if node.expanded:
            stack.extend(store.get(h) for h in reversed(node.children))
    return result


def visible_window(
    flat: Sequence[T],
    selected_index: int,
    scroll_offset: int,
    max_visible_rows: int,
) -> tuple[list[T], int]:
    """Slice of ``flat`` to display and the adjusted scroll offset."""
    rows = max(1, max_visible_rows)

    if selected_index < scroll_offset:
        scroll_offset = selected_index
    elif selected_index >= scroll_offset + rows:
        scroll_offset = selected_index - rows + 1

    scroll_offset = max(0, min(scroll_offset, max(0, len(flat) - rows)))
    return list(flat[scroll_offset : scroll_offset + rows]), scroll_offset


def status_indicator(node: Node) -> str:
    if node.child_state == ChildState.LOADING:
        return "loading..."
    if node.kind in _RUN_STATUS_KINDS:
        return normalize_status(node.status_text)
    return node.status_text


def build_rows(
    window: Sequence[Node],
    selected: Optional[Node],
    expandable_kinds: Optional[set[NodeKind]] = None,
) -> list[Row]:
    """Turn a window of nodes into render rows."""
    rows = []
    for node in window:
        if expandable_kinds is None:
            expandable = bool(node.children)
        else:
            expandable = node.kind in expandable_kinds or bool(node.children)
        rows.append(
            Row(
                handle=node.handle,
                depth=node.depth,
                kind=node.kind,
                kind_icon=KIND_ICONS.get(node.kind, "•"),
                label=node.label,
                status_indicator=status_indicator(node),
                last_activity=node.last_activity_text,
                expandable=expandable and not node.is_error,
                expanded=node.expanded,
                selected=selected is not None and node.handle == selected.handle,
            )
        )
    return rows

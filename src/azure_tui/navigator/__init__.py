"""Lazy-loading resource tree and action routing."""

from .actions import ActionRequest, ActionRouter, ActionSpec
from .loader import LazyLoader, LoadOutcome, LoadRequest, RootRequest
from .navigator import TreeNavigator
from .search import SearchQuery, SearchResult, parse_query, search_tree, suggestions
from .store import InvalidParent, Node, NodeStore, TreeInvariantError
from .viewport import Row, build_rows, flatten_visible, visible_window

__all__ = [
    "ActionRequest",
    "ActionRouter",
    "ActionSpec",
    "InvalidParent",
    "LazyLoader",
    "LoadOutcome",
    "LoadRequest",
    "Node",
    "NodeStore",
    "RootRequest",
    "Row",
    "SearchQuery",
    "SearchResult",
    "TreeInvariantError",
    "TreeNavigator",
    "build_rows",
    "flatten_visible",
    "parse_query",
    "search_tree",
    "suggestions",
    "visible_window",
]

"""Search over the loaded part of the resource tree.

Queries are free text, optionally mixed with field filters::

    web prod                  nodes whose name, type, group, location or tags contain a term
    type:vm location:westeu   filters only; every node passing them matches
    rg:platform tag:env=prod  group and tag filters, combined with terms
    web-*-prod                ``*`` and ``?`` wildcards

Only nodes already in the store are searched; nothing is loaded.
"""

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Optional

from azure_tui.models import AzureResource, NodeKind
from azure_tui.navigator.store import Node, NodeStore


MAX_SUGGESTIONS = 10

# Short names accepted by ``type:`` filters
TYPE_ALIASES = {
    "vm": ("microsoft.compute/virtualmachines", "virtualmachine"),
    "storage": ("microsoft.storage/storageaccounts", "storageaccount"),
    "aks": ("microsoft.containerservice/managedclusters", "managedcluster"),
    "network": ("microsoft.network/virtualnetworks", "virtualnetwork"),
    "keyvault": ("microsoft.keyvault/vaults", "vault"),
    "sql": ("microsoft.sql/servers",),
    "acr": ("microsoft.containerregistry/registries", "registry"),
    "aci": ("microsoft.containerinstance/containergroups", "containergroup"),
    "webapp": ("microsoft.web/sites", "web-app"),
    "function": ("microsoft.web/sites", "functionapp"),
}

# Bonus per field a term was found in
FIELD_SCORES = {
    "name": 800,
    "type": 600,
    "resource_group": 400,
    "location": 300,
    "tag": 200,
}

FILTER_KEYS = {
    "type": "resource_type",
    "location": "location",
    "loc": "location",
    "rg": "resource_group",
    "resourcegroup": "resource_group",
    "resource-group": "resource_group",
}

BOOLEAN_WORDS = {"AND", "OR", "NOT"}


@dataclass
class SearchQuery:
    """A parsed query: free-text terms plus field filters."""

    raw: str
    terms: list[str] = field(default_factory=list)
    resource_type: str = ""
    location: str = ""
    resource_group: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def has_filters(self) -> bool:
        return bool(self.resource_type or self.location or self.resource_group or self.tags)

    @property
    def empty(self) -> bool:
        return not self.terms and not self.has_filters


@dataclass(frozen=True)
class SearchResult:
    """One matching node, with the field that scored best."""

    handle: int
    label: str
    kind: NodeKind
    match_type: str
    match_value: str
    score: int


@dataclass(frozen=True)
class Searchable:
    """The text fields of a node that queries look at."""

    name: str
    type: str
    location: str
    resource_group: str
    tags: dict[str, str]

    @classmethod
    def from_node(cls, store: NodeStore, node: Node) -> "Searchable":
        payload = node.payload
        if isinstance(payload, AzureResource):
            resource_type = payload.type
        else:
            resource_type = node.kind.value
        group = getattr(payload, "resource_group", None)
        if not group:
            enclosing = store.lineage(node.handle).get(NodeKind.RESOURCE_GROUP)
            group = getattr(enclosing, "name", "")
        return cls(
            name=node.label,
            type=resource_type,
            location=getattr(payload, "location", None) or "",
            resource_group=group or "",
            tags=dict(getattr(payload, "tags", None) or {}),
        )

    def fields(self) -> list[tuple[str, str]]:
        pairs = [
            ("name", self.name),
            ("type", self.type),
            ("resource_group", self.resource_group),
            ("location", self.location),
        ]
        for key, value in self.tags.items():
            pairs += [("tag", key), ("tag", value)]
        return pairs


def parse_query(text: str) -> SearchQuery:
    """Split ``text`` into terms and ``key:value`` filters."""
    query = SearchQuery(raw=text)
    for part in text.split():
        if part.upper() in BOOLEAN_WORDS:
            continue
        key, sep, value = part.partition(":")
        if not sep or not value:
            query.terms.append(part.lower())
            continue
        key, value = key.lower(), value.lower()
        if key in FILTER_KEYS:
            setattr(query, FILTER_KEYS[key], value)
        elif key == "tag":
            tag_key, _, tag_value = value.partition("=")
            query.tags[tag_key] = tag_value
        elif key == "name":
            query.terms.append(value)
        else:
            query.terms.append(part.lower())
    return query


def text_matches(text: str, term: str) -> bool:
    """Case-insensitive containment; ``*`` and ``?`` act as wildcards."""
    text, term = text.lower(), term.lower()
    if "*" in term or "?" in term:
        return fnmatchcase(text, f"*{term}*")
    return term in text


def type_matches(searchable: Searchable, term: str) -> bool:
    resource_type = searchable.type.lower()
    if text_matches(resource_type, term):
        return True
    if any(alias in resource_type for alias in TYPE_ALIASES.get(term, ())):
        return True
    return text_matches(resource_type.rsplit("/", 1)[-1], term)


def passes_filters(searchable: Searchable, query: SearchQuery) -> bool:
    if query.resource_type and not type_matches(searchable, query.resource_type):
        return False
    if query.location and not text_matches(searchable.location, query.location):
        return False
    if query.resource_group and not text_matches(searchable.resource_group, query.resource_group):
        return False
    for tag_key, tag_value in query.tags.items():
        if not any(
            text_matches(key, tag_key) and (not tag_value or text_matches(value, tag_value))
            for key, value in searchable.tags.items()
        ):
            return False
    return True


def score_match(match_type: str, term: str, text: str) -> int:
    """Relevance of ``term`` found in ``text``: exact beats prefix beats substring."""
    score = 100 + FIELD_SCORES.get(match_type, 0)
    if term == text.lower():
        score += 1000
    if text.lower().startswith(term):
        score += 500
    return max(1, score - len(text) // 10)


def match_node(searchable: Searchable, query: SearchQuery) -> Optional[tuple[int, str, str]]:
    """Score, field and value of the best match, or None.

    A node matches when it passes every filter and at least one term is
    found in one of its fields. Each matched term adds its best field score.
    """
    if not passes_filters(searchable, query):
        return None
    if not query.terms:
        return 100, "filter", searchable.name

    total = 0
    best: Optional[tuple[int, str, str]] = None
    for term in query.terms:
        term_best: Optional[tuple[int, str, str]] = None
        for match_type, text in searchable.fields():
            if not text or not text_matches(text, term):
                continue
            candidate = (score_match(match_type, term, text), match_type, text)
            if term_best is None or candidate[0] > term_best[0]:
                term_best = candidate
        if term_best is None:
            continue
        total += term_best[0]
        if best is None or term_best[0] > best[0]:
            best = term_best
    if best is None:
        return None
    return total, best[1], best[2]


def search_tree(store: NodeStore, text: str) -> list[SearchResult]:
    """Loaded nodes matching ``text``, best first, ties in tree order."""
    query = parse_query(text)
    if query.empty:
        return []

    results = []
    for node in store.walk():
        if node.is_error:
            continue
        matched = match_node(Searchable.from_node(store, node), query)
        if matched is None:
            continue
        score, match_type, value = matched
        results.append(
            SearchResult(
                handle=node.handle,
                label=node.label,
                kind=node.kind,
                match_type=match_type,
                match_value=value,
                score=score,
            )
        )
    results.sort(key=lambda result: -result.score)
    return results


def suggestions(store: NodeStore, partial: str) -> list[str]:
    """Names, locations, short types and tag keys starting with ``partial``."""
    prefix = partial.lower()
    if len(prefix) < 2:
        return []

    found: set[str] = set()
    for node in store.walk():
        if node.is_error:
            continue
        searchable = Searchable.from_node(store, node)
        candidates = [
            searchable.name,
            searchable.location,
            searchable.type.rsplit("/", 1)[-1].lower(),
            *searchable.tags,
        ]
        found.update(c for c in candidates if c and c.lower().startswith(prefix))
    return sorted(found)[:MAX_SUGGESTIONS]

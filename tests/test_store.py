"""Tests for the node store."""

import pytest

from azure_tui.models import ChildState, NodeKind, Organization, ResourceGroup
from azure_tui.navigator import InvalidParent, NodeStore, TreeInvariantError

from tests.fakes import make_spec


@pytest.fixture
def store() -> NodeStore:
    store = NodeStore()
    store.set_roots(
        [
            make_spec("org-a", NodeKind.ORGANIZATION, "alpha"),
            make_spec("org-b", NodeKind.ORGANIZATION, "beta"),
        ]
    )
    return store


class TestSetRoots:
    """Tests for replacing the forest."""

    def test_roots_at_depth_zero(self, store):
        """Test roots are created at depth zero in order."""
        assert [store.get(h).label for h in store.roots] == ["alpha", "beta"]
        assert all(store.get(h).depth == 0 for h in store.roots)
        assert all(store.get(h).child_state == ChildState.NOT_LOADED for h in store.roots)

    def test_generation_increments(self, store):
        """Test every set_roots bumps the generation."""
        before = store.generation
        store.set_roots([])
        assert store.generation == before + 1
        store.set_roots([make_spec("x")])
        assert store.generation == before + 2

    def test_resets_selection_and_scroll(self, store):
        """Test selection and scroll are reset."""
        store.selected_index = 1
        store.scroll_offset = 3
        store.set_roots([make_spec("x")])
        assert store.selected_index == 0
        assert store.scroll_offset == 0

    def test_old_handles_invalid(self, store):
        """Test handles from a previous forest are no longer valid."""
        old = store.roots[1]
        store.set_roots([make_spec("only")])
        assert old not in store
        with pytest.raises(KeyError):
            store.get(old)


class TestAddChild:
    """Tests for attaching children."""

    def test_child_depth_and_parent(self, store):
        """Test a child sits one level below its parent."""
        parent = store.roots[0]
        child = store.add_child(parent, make_spec("project-web", NodeKind.PROJECT, "web"))
        grandchild = store.add_child(child.handle, make_spec("cat", NodeKind.PIPELINE_CATEGORY))

        assert child.depth == 1
        assert child.parent == parent
        assert grandchild.depth == 2
        assert store.get(parent).children == [child.handle]

    def test_unknown_parent(self, store):
        """Test attaching to a missing handle raises InvalidParent."""
        with pytest.raises(InvalidParent):
            store.add_child(999, make_spec("orphan"))
        assert len(store) == 2

    def test_error_child_is_leaf(self, store):
        """Test error children are created already loaded."""
        error = store.add_error_child(store.roots[0], "403 Forbidden")
        assert error.kind == NodeKind.ERROR
        assert error.label == "403 Forbidden"
        assert error.child_state == ChildState.LOADED
        assert error.is_error

    def test_error_ids_unique(self, store):
        """Test each error child gets its own id."""
        first = store.add_error_child(store.roots[0], "boom")
        second = store.add_error_child(store.roots[1], "boom")
        assert first.node_id != second.node_id


class TestRemoveAndReplace:
    """Tests for removing and replacing subtrees."""

    def test_remove_children_drops_descendants(self, store):
        """Test removing children frees the whole subtree."""
        root = store.roots[0]
        child = store.add_child(root, make_spec("c1"))
        store.add_child(child.handle, make_spec("g1"))
        assert len(store) == 4

        store.remove_children(root)

        assert store.get(root).children == []
        assert child.handle not in store
        assert len(store) == 2

    def test_replace_children_preserves_order(self, store):
        """Test replacement keeps provider order."""
        root = store.roots[0]
        store.add_child(root, make_spec("old"))
        nodes = store.replace_children(root, [make_spec("b"), make_spec("a"), make_spec("c")])
        assert [n.label for n in nodes] == ["b", "a", "c"]
        assert [store.get(h).label for h in store.get(root).children] == ["b", "a", "c"]

    def test_handles_not_reused(self, store):
        """Test fresh children never reuse a freed handle."""
        root = store.roots[0]
        old = store.add_child(root, make_spec("old"))
        new = store.replace_children(root, [make_spec("new")])[0]
        assert new.handle != old.handle


class TestToggleExpansion:
    """Tests for expansion flags."""

    def test_toggle_flips_flag(self, store):
        """Test toggling flips expanded without loading."""
        root = store.roots[0]
        assert store.toggle_expansion(root) is True
        assert store.get(root).child_state == ChildState.NOT_LOADED
        assert store.toggle_expansion(root) is False


class TestLineage:
    """Tests for ancestor lookups."""

    def test_lineage_collects_nearest_payloads(self):
        """Test lineage maps each ancestor kind to its payload."""
        store = NodeStore()
        org = Organization(accountName="contoso")
        group = ResourceGroup(name="rg-web", location="westeurope")
        (root,) = store.set_roots([make_spec("org", NodeKind.ORGANIZATION, payload=org)])
        rg = store.add_child(root.handle, make_spec("rg", NodeKind.RESOURCE_GROUP, payload=group))
        vm = store.add_child(rg.handle, make_spec("vm", NodeKind.VIRTUAL_MACHINE))

        ref = store.ref(vm.handle)

        assert ref.context(NodeKind.ORGANIZATION) is org
        assert ref.context(NodeKind.RESOURCE_GROUP) is group
        assert ref.context(NodeKind.PROJECT) is None
        assert ref.resource_group == "rg-web"

    def test_first_expanded_ancestor(self, store):
        """Test the search only matches expanded nodes of the kind."""
        root = store.roots[0]
        project = store.add_child(root, make_spec("p", NodeKind.PROJECT, "web"))
        category = store.add_child(project.handle, make_spec("c", NodeKind.PIPELINE_CATEGORY))

        assert store.find_first_expanded_ancestor_of_kind(category.handle, NodeKind.PROJECT) is None
        store.toggle_expansion(project.handle)
        found = store.find_first_expanded_ancestor_of_kind(category.handle, NodeKind.PROJECT)
        assert found is project

    def test_find_by_kind(self, store):
        """Test find_by_kind returns the first match in pre-order."""
        assert store.find_by_kind(NodeKind.ORGANIZATION).label == "alpha"
        assert store.find_by_kind(NodeKind.BLOB) is None


class TestVerify:
    """Tests for structural invariant checks."""

    def test_valid_forest(self, store):
        """Test a consistent forest passes."""
        root = store.roots[0]
        store.add_child(root, make_spec("c"))
        store.get(root).child_state = ChildState.LOADED
        store.verify()

    def test_unloaded_with_children(self, store):
        """Test an unloaded node may not hold children."""
        store.add_child(store.roots[0], make_spec("c"))
        with pytest.raises(TreeInvariantError):
            store.verify()

    def test_failed_needs_single_error_child(self, store):
        """Test a failed node must hold exactly one error child."""
        root = store.roots[0]
        store.get(root).child_state = ChildState.FAILED
        with pytest.raises(TreeInvariantError):
            store.verify()

        store.add_error_child(root, "boom")
        store.verify()

    def test_wrong_depth(self, store):
        """Test a corrupted depth is reported."""
        root = store.roots[0]
        child = store.add_child(root, make_spec("c"))
        store.get(root).child_state = ChildState.LOADED
        child.depth = 5
        with pytest.raises(TreeInvariantError):
            store.verify()

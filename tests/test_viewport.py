"""Tests for flattening and the scroll window."""

from azure_tui.models import ChildState, NodeKind
from azure_tui.navigator import NodeStore, build_rows, flatten_visible, visible_window

from tests.fakes import make_spec


def build_store() -> NodeStore:
    """org > (web > build, release), api"""
    store = NodeStore()
    (org,) = store.set_roots([make_spec("org", NodeKind.ORGANIZATION, "contoso")])
    web = store.add_child(org.handle, make_spec("web", NodeKind.PROJECT))
    store.add_child(org.handle, make_spec("api", NodeKind.PROJECT))
    store.add_child(web.handle, make_spec("build", NodeKind.PIPELINE_CATEGORY))
    store.add_child(web.handle, make_spec("release", NodeKind.PIPELINE_CATEGORY))
    return store


class TestFlattenVisible:
    """Tests for the visible pre-order listing."""

    def test_collapsed_roots_only(self):
        """Test a collapsed forest shows only roots."""
        store = build_store()
        assert [n.label for n in flatten_visible(store)] == ["contoso"]

    def test_expanded_preorder(self):
        """Test expanded nodes show children in pre-order."""
        store = build_store()
        org = store.roots[0]
        store.toggle_expansion(org)
        web = store.get(org).children[0]
        store.toggle_expansion(web)

        assert [n.label for n in flatten_visible(store)] == [
            "contoso",
            "web",
            "build",
            "release",
            "api",
        ]

    def test_collapsed_ancestor_hides_expanded_descendant(self):
        """Test a collapsed ancestor hides its subtree entirely."""
        store = build_store()
        org = store.roots[0]
        web = store.get(org).children[0]
        store.toggle_expansion(web)
        assert [n.label for n in flatten_visible(store)] == ["contoso"]

    def test_empty_store(self):
        """Test an empty forest flattens to nothing."""
        assert flatten_visible(NodeStore()) == []


class TestVisibleWindow:
    """Tests for the scroll window."""

    def test_fits_entirely(self):
        """Test a short list is returned whole."""
        rows, offset = visible_window(list(range(3)), 2, 0, 5)
        assert rows == [0, 1, 2]
        assert offset == 0

    def test_scrolls_down_to_selection(self):
        """Test selecting past the bottom scrolls down."""
        rows, offset = visible_window(list(range(10)), 7, 0, 3)
        assert rows == [5, 6, 7]
        assert offset == 5

    def test_scrolls_up_to_selection(self):
        """Test selecting above the top scrolls up."""
        rows, offset = visible_window(list(range(10)), 2, 6, 3)
        assert rows == [2, 3, 4]
        assert offset == 2

    def test_offset_kept_when_selection_visible(self):
        """Test the window does not move while the selection is in view."""
        rows, offset = visible_window(list(range(10)), 4, 3, 3)
        assert rows == [3, 4, 5]
        assert offset == 3

    def test_offset_clamped_after_shrink(self):
        """Test the offset is clamped when the list got shorter."""
        rows, offset = visible_window(list(range(4)), 3, 8, 3)
        assert rows == [1, 2, 3]
        assert offset == 1

    def test_zero_rows_treated_as_one(self):
        """Test a non-positive height still shows the selection."""
        rows, offset = visible_window(list(range(5)), 3, 0, 0)
        assert rows == [3]
        assert offset == 3

    def test_empty(self):
        """Test an empty list yields an empty window."""
        assert visible_window([], 0, 0, 5) == ([], 0)


class TestBuildRows:
    """Tests for render rows."""

    def test_row_fields(self):
        """Test rows carry depth, icon, selection and expandability."""
        store = build_store()
        org = store.roots[0]
        store.toggle_expansion(org)
        flat = flatten_visible(store)

        rows = build_rows(flat, flat[1], {NodeKind.ORGANIZATION, NodeKind.PROJECT})

        assert [r.depth for r in rows] == [0, 1, 1]
        assert rows[0].expanded is True
        assert rows[1].selected is True
        assert rows[0].selected is False
        assert rows[2].expandable is True
        assert rows[0].kind_icon == "🏢"

    def test_loading_indicator(self):
        """Test a loading node shows the loading indicator."""
        store = build_store()
        node = store.get(store.roots[0])
        node.child_state = ChildState.LOADING
        (row,) = build_rows([node], node)
        assert row.status_indicator == "loading..."

    def test_run_status_normalized(self):
        """Test run statuses are mapped to display words."""
        store = NodeStore()
        (run,) = store.set_roots([make_spec("run", NodeKind.RUN, status_text="inProgress")])
        (row,) = build_rows([run], None)
        assert row.status_indicator == "Running"

    def test_error_rows_not_expandable(self):
        """Test error nodes never render as expandable."""
        store = build_store()
        error = store.add_error_child(store.roots[0], "boom")
        (row,) = build_rows([error], None, {NodeKind.ERROR})
        assert row.expandable is False

"""Tests for the tree navigator."""

from azure_tui.models import ActionResult, ChildState, NodeKind
from azure_tui.navigator import ActionRequest

from tests.fakes import SpyExecutor, expand_selected, labels, load_roots, select_label


class TestBrowsing:
    """Tests for loading and expanding the DevOps tree."""

    def test_roots_collapsed(self, navigator, org_roots):
        """Test a refresh shows the organization collapsed."""
        load_roots(navigator)
        assert labels(navigator) == ["contoso"]
        assert org_roots.calls == 1
        assert navigator.status == ""

    def test_expand_organization(self, navigator):
        """Test expanding the organization lists its projects."""
        load_roots(navigator)
        assert expand_selected(navigator) is True
        assert labels(navigator) == ["contoso", "web", "api"]
        navigator.store.verify()

    def test_forbidden_project(self, navigator):
        """Test a failing project shows one error child and the status."""
        load_roots(navigator)
        expand_selected(navigator)
        select_label(navigator, "api")
        expand_selected(navigator)

        assert labels(navigator) == ["contoso", "web", "api", "403 Forbidden"]
        assert navigator.status == "403 Forbidden"
        api = navigator.selected()
        assert api.label == "api"
        assert api.child_state == ChildState.FAILED
        navigator.store.verify()

    def test_retry_failed_project(self, navigator, org_provider):
        """Test collapsing and expanding a failed node loads it again."""
        load_roots(navigator)
        expand_selected(navigator)
        select_label(navigator, "api")
        expand_selected(navigator)

        org_provider.children["project-api"] = []
        navigator.toggle_expand()
        assert expand_selected(navigator) is True

        assert labels(navigator) == ["contoso", "web", "api"]
        assert navigator.selected().child_state == ChildState.LOADED
        assert navigator.status == ""

    def test_error_node_not_expandable(self, navigator):
        """Test toggling an error node does nothing."""
        load_roots(navigator)
        expand_selected(navigator)
        select_label(navigator, "api")
        expand_selected(navigator)
        select_label(navigator, "403 Forbidden")

        assert navigator.toggle_expand() is None
        assert navigator.selected().expanded is False

    def test_single_load_in_flight(self, navigator, org_provider):
        """Test toggling a loading node issues no second request."""
        load_roots(navigator)
        request = navigator.toggle_expand()
        assert request is not None

        assert navigator.toggle_expand() is None  # collapse while loading
        assert navigator.toggle_expand() is None  # expand again, still loading
        navigator.apply_load(navigator.loader.fetch(request))

        assert len(org_provider.calls) == 1
        assert labels(navigator) == ["contoso", "web", "api"]

    def test_collapse_keeps_children(self, navigator, org_provider):
        """Test collapsing then expanding does not refetch."""
        load_roots(navigator)
        expand_selected(navigator)
        assert navigator.toggle_expand() is None
        assert labels(navigator) == ["contoso"]
        assert expand_selected(navigator) is False
        assert labels(navigator) == ["contoso", "web", "api"]
        assert len(org_provider.calls) == 1

    def test_refresh_discards_inflight_load(self, navigator):
        """Test a load started before a refresh is dropped."""
        load_roots(navigator)
        request = navigator.toggle_expand()
        outcome = navigator.loader.fetch(request)

        load_roots(navigator)
        assert navigator.apply_load(outcome) is False
        assert labels(navigator) == ["contoso"]
        assert navigator.selected().child_state == ChildState.NOT_LOADED

    def test_root_failure(self, navigator, org_roots):
        """Test a failing root listing shows one error row."""
        org_roots.error = RuntimeError("Please run 'az login'")
        load_roots(navigator)
        assert labels(navigator) == ["Please run 'az login'"]
        assert navigator.status == "Please run 'az login'"


class TestSelection:
    """Tests for cursor movement."""

    def test_bounds(self, navigator):
        """Test the cursor stays within the visible rows."""
        load_roots(navigator)
        expand_selected(navigator)

        navigator.move_up()
        assert navigator.store.selected_index == 0
        for _ in range(10):
            navigator.move_down()
        assert navigator.store.selected_index == 2
        assert navigator.selected().label == "api"

    def test_empty_tree(self, navigator, org_roots):
        """Test movement on an empty tree is harmless."""
        org_roots.specs = []
        load_roots(navigator)
        navigator.move_down()
        navigator.move_up()
        assert navigator.selected() is None
        assert navigator.window() == []
        assert navigator.toggle_expand() is None

    def test_collapse_clamps_selection(self, navigator):
        """Test collapsing above the cursor keeps it in range."""
        load_roots(navigator)
        expand_selected(navigator)
        navigator.store.selected_index = 0
        navigator.toggle_expand()
        assert navigator.store.selected_index == 0
        assert navigator.selected().label == "contoso"

    def test_selection_anchored_after_load(self, navigator):
        """Test the cursor stays on the loading node after its children arrive."""
        load_roots(navigator)
        expand_selected(navigator)
        select_label(navigator, "web")
        request = navigator.toggle_expand()

        navigator.move_down()
        assert navigator.selected().label == "api"
        navigator.apply_load(navigator.loader.fetch(request))

        assert navigator.selected().label == "api"
        assert labels(navigator) == [
            "contoso",
            "web",
            "Build Pipelines",
            "Release Pipelines",
            "api",
        ]

    def test_window_follows_selection(self, navigator):
        """Test the window scrolls with the cursor."""
        load_roots(navigator)
        expand_selected(navigator)
        select_label(navigator, "web")
        expand_selected(navigator)
        navigator.resize(2)

        for _ in range(4):
            navigator.move_down()
        rows = navigator.window()

        assert [r.label for r in rows] == ["Release Pipelines", "api"]
        assert rows[-1].selected is True
        assert navigator.store.scroll_offset == 3

    def test_activate_error_sets_status(self, navigator):
        """Test activating an error row surfaces its message."""
        load_roots(navigator)
        expand_selected(navigator)
        select_label(navigator, "api")
        expand_selected(navigator)
        navigator.status = ""
        select_label(navigator, "403 Forbidden")

        ref = navigator.activate()

        assert ref.kind == NodeKind.ERROR
        assert navigator.status == "403 Forbidden"


class TestHeaderContext:
    """Tests for the breadcrumb."""

    def test_organization_and_project(self, navigator):
        """Test the breadcrumb names the organization and open project."""
        load_roots(navigator)
        assert navigator.header_context() == {"organization": "contoso"}

        expand_selected(navigator)
        select_label(navigator, "web")
        expand_selected(navigator)
        assert navigator.header_context() == {"organization": "contoso", "project": "web"}

    def test_collapsed_project_not_reported(self, navigator):
        """Test a collapsed project is left out."""
        load_roots(navigator)
        expand_selected(navigator)
        select_label(navigator, "web")
        expand_selected(navigator)
        navigator.toggle_expand()
        assert "project" not in navigator.header_context()


class TestActions:
    """Tests for invoking actions through the navigator."""

    def test_nothing_selected(self, navigator):
        """Test invoking with an empty tree fails cleanly."""
        result = navigator.invoke_action("run")
        assert isinstance(result, ActionResult)
        assert result.message == "No resource selected"

    def test_unsupported_action(self, navigator, router):
        """Test an unknown pair fails without calling any handler."""
        spy = SpyExecutor()
        router.register(NodeKind.PROJECT, "run", spy)
        load_roots(navigator)

        result = navigator.invoke_action("run")

        assert isinstance(result, ActionResult)
        assert not result.success
        assert result.message == "unsupported action"
        assert navigator.status == "unsupported action"
        assert spy.calls == []

    def test_missing_parameter(self, navigator, router):
        """Test a missing required parameter is reported."""
        spy = SpyExecutor()
        router.register(NodeKind.ORGANIZATION, "rename", spy, required_params=("name",))
        load_roots(navigator)

        result = navigator.invoke_action("rename")

        assert result.message == "Missing required parameter: name"
        assert spy.calls == []

    def test_invoke_by_key(self, navigator, router):
        """Test an action can be invoked by its key binding."""
        spy = SpyExecutor(ActionResult(success=True, message="Queued"))
        router.register(NodeKind.ORGANIZATION, "sync", spy, key="S")
        load_roots(navigator)

        request = navigator.invoke_action("S")
        assert isinstance(request, ActionRequest)
        assert navigator.status == "Running sync contoso..."

        result = router.execute(request)
        assert navigator.apply_action_result(request, result) is True
        assert navigator.status == "Queued"
        assert spy.calls[0][0].label == "contoso"
        assert spy.calls[0][3] == 5.0

    def test_stale_action_result(self, navigator, router):
        """Test results for an older tree do not overwrite the status."""
        router.register(NodeKind.ORGANIZATION, "sync", SpyExecutor())
        load_roots(navigator)
        request = navigator.invoke_action("sync")

        load_roots(navigator)
        navigator.status = "fresh"
        assert navigator.apply_action_result(request, ActionResult(True, "done")) is False
        assert navigator.status == "fresh"

    def test_available_actions(self, navigator, router):
        """Test available actions follow the selected kind."""
        router.register(NodeKind.ORGANIZATION, "sync", SpyExecutor())
        router.register(NodeKind.PROJECT, "open", SpyExecutor())
        load_roots(navigator)
        assert [s.name for s in navigator.available_actions()] == ["sync"]

"""Tests for the azure-tui Textual application."""

import pytest

from azure_tui.config import AppConfig
from azure_tui.models import ActionResult, NodeKind, NodeRef, PipelineRun, ResourceGroup
from azure_tui.navigator import Row, TreeNavigator
from azure_tui.providers.base import ProviderRegistry
from azure_tui.tui import AzureTuiApp
from azure_tui.tui.app import (
    ConfirmModal,
    HelpScreen,
    ResourceTree,
    SearchModal,
    describe_node,
    render_row,
)

from tests.fakes import GatedProvider, SpyExecutor, labels


def make_row(**overrides) -> Row:
    values = dict(
        handle=0,
        depth=1,
        kind=NodeKind.PROJECT,
        kind_icon="📁",
        label="web",
        status_indicator="",
        last_activity="",
        expandable=True,
        expanded=False,
        selected=False,
    )
    values.update(overrides)
    return Row(**values)


class TestTUIModule:
    """Tests for TUI module attributes."""

    def test_app_class_attributes(self) -> None:
        """Test AzureTuiApp has required attributes."""
        assert AzureTuiApp.TITLE == "azure-tui"
        assert hasattr(AzureTuiApp, "BINDINGS")
        assert hasattr(AzureTuiApp, "CSS")

    def test_app_bindings(self) -> None:
        """Test AzureTuiApp has expected key bindings."""
        binding_keys = [b.key for b in AzureTuiApp.BINDINGS]
        assert "q" in binding_keys  # Quit
        assert "r" in binding_keys  # Refresh
        assert "space" in binding_keys  # Expand
        assert "enter" in binding_keys  # Details
        assert "j" in binding_keys and "k" in binding_keys


class TestRendering:
    """Tests for row and detail rendering."""

    def test_collapsed_marker(self) -> None:
        """Test expandable rows show a marker and indent."""
        text = render_row(make_row())
        assert text.plain == "  ▶ 📁 web"

    def test_expanded_with_status(self) -> None:
        """Test status and activity follow the label."""
        text = render_row(
            make_row(depth=0, expanded=True, status_indicator="Running", last_activity="5m ago")
        )
        assert text.plain == "▼ 📁 web  Running  5m ago"

    def test_leaf_has_no_marker(self) -> None:
        """Test leaves are padded instead of marked."""
        text = render_row(make_row(depth=0, expandable=False, kind=NodeKind.ERROR, kind_icon="❌"))
        assert text.plain == "  ❌ web"

    def test_describe_node(self) -> None:
        """Test payload fields appear in the details."""
        node = NodeRef(
            handle=0,
            node_id="/g/rg-web",
            kind=NodeKind.RESOURCE_GROUP,
            label="rg-web",
            payload=ResourceGroup(name="rg-web", location="westeurope"),
        )
        text = describe_node(node)
        assert "**Kind:** resource-group" in text
        assert "**Location:** westeurope" in text

    def test_describe_run_duration(self) -> None:
        """Test runs show how long they took."""
        run = PipelineRun.model_validate(
            {
                "id": 7,
                "createdDate": "2024-03-01T12:00:00Z",
                "finishedDate": "2024-03-01T12:01:30Z",
                "result": "succeeded",
            }
        )
        node = NodeRef(handle=0, node_id="run-7", kind=NodeKind.RUN, label="#7", payload=run)
        assert "**Duration:** 1m 30s" in describe_node(node)


async def settle(app, pilot) -> None:
    """Wait for background workers and the resulting UI updates."""
    await pilot.pause()
    await app.workers.wait_for_complete()
    await pilot.pause()


class TestDashboard:
    """Pilot tests against in-memory providers."""

    @pytest.mark.asyncio
    async def test_loads_roots_on_mount(self, navigator) -> None:
        """Test the roots are listed once the app starts."""
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            assert labels(navigator) == ["contoso"]

    @pytest.mark.asyncio
    async def test_keys_move_and_expand(self, navigator) -> None:
        """Test j moves the cursor and space expands the selected node."""
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            await pilot.press("space")
            await settle(app, pilot)
            await pilot.press("j")
            await pilot.pause()
            assert navigator.selected().label == "web"

            await pilot.press("space")
            await settle(app, pilot)
            expected = ["contoso", "web", "Build Pipelines", "Release Pipelines", "api"]
            assert labels(navigator) == expected
            tree = app.query_one("#tree", ResourceTree)
            assert [row.label for row in tree.visible_rows] == expected
            assert [row.selected for row in tree.visible_rows] == [False, True, False, False, False]

            await pilot.press("k")
            await pilot.pause()
            assert navigator.selected().label == "contoso"

    @pytest.mark.asyncio
    async def test_load_after_refresh_is_dropped(self, org_roots, org_provider, router) -> None:
        """Test a load finishing after r leaves the refreshed rows alone."""
        provider = GatedProvider(org_provider.expands, org_provider.children)
        registry = ProviderRegistry(org_roots)
        registry.register(provider)
        navigator = TreeNavigator(registry, router, max_visible_rows=5, load_timeout=2.0)
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            await pilot.press("space")
            await pilot.pause()
            assert provider.started.wait(2.0)

            await pilot.press("r")
            await pilot.pause()
            provider.gate.set()
            await settle(app, pilot)

            tree = app.query_one("#tree", ResourceTree)
            assert [row.label for row in tree.visible_rows] == ["contoso"]
            assert labels(navigator) == ["contoso"]
            assert org_roots.calls == 2

    @pytest.mark.asyncio
    async def test_search_jumps_to_match(self, navigator) -> None:
        """Test / opens the search box and Enter selects the match."""
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            await pilot.press("space")
            await settle(app, pilot)
            await pilot.press("/")
            await pilot.pause()
            assert isinstance(app.screen, SearchModal)

            await pilot.press("a", "p", "i", "enter")
            await settle(app, pilot)
            assert not isinstance(app.screen, SearchModal)
            assert navigator.selected().label == "api"
            assert navigator.status == "Match 1 of 1: api"

    @pytest.mark.asyncio
    async def test_expand_and_error_row(self, navigator) -> None:
        """Test expanding loads children and a failure shows an error row."""
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            await pilot.press("space")
            await settle(app, pilot)
            assert labels(navigator) == ["contoso", "web", "api"]

            await pilot.press("j", "j", "space")
            await settle(app, pilot)
            assert labels(navigator) == ["contoso", "web", "api", "403 Forbidden"]
            assert navigator.status == "403 Forbidden"

    @pytest.mark.asyncio
    async def test_action_key_runs_action(self, navigator, router) -> None:
        """Test an action key runs the action and shows its result."""
        spy = SpyExecutor(ActionResult(success=True, message="Synced contoso"))
        router.register(NodeKind.ORGANIZATION, "sync", spy, key="s")
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            await pilot.press("s")
            await settle(app, pilot)
            assert len(spy.calls) == 1
            assert navigator.status == "Synced contoso"

    @pytest.mark.asyncio
    async def test_destructive_action_needs_confirmation(self, navigator, router) -> None:
        """Test declining the confirmation runs nothing."""
        spy = SpyExecutor()
        router.register(NodeKind.ORGANIZATION, "purge", spy, key="x", destructive=True)
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            await pilot.press("x")
            await pilot.pause()
            assert isinstance(app.screen, ConfirmModal)

            await pilot.press("n")
            await settle(app, pilot)
            assert spy.calls == []

    @pytest.mark.asyncio
    async def test_help_screen(self, navigator) -> None:
        """Test ? opens the help screen and escape closes it."""
        app = AzureTuiApp(config=AppConfig(), navigator=navigator)
        async with app.run_test(size=(100, 30)) as pilot:
            await settle(app, pilot)
            await pilot.press("?")
            await pilot.pause()
            assert isinstance(app.screen, HelpScreen)
            await pilot.press("escape")
            await pilot.pause()
            assert not isinstance(app.screen, HelpScreen)

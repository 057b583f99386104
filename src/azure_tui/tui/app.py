"""Main azure-tui Textual application."""

from typing import Any, Optional

from pydantic import BaseModel
from rich.text import Text
from textual import events, on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.suggester import Suggester
from textual.widgets import Button, Footer, Header, Input, Label, Markdown, Rule, Static

from azure_tui.config import AppConfig
from azure_tui.models import ActionResult, NodeKind, NodeRef, PipelineRun, format_duration
from azure_tui.navigator import (
    ActionRequest,
    ActionSpec,
    LoadOutcome,
    LoadRequest,
    Row,
    RootRequest,
    TreeNavigator,
)
from azure_tui.views import VIEW_TITLES, Tools, build_navigator


STATUS_STYLES = {
    "Running": "bold yellow",
    "Success": "green",
    "Partial": "yellow",
    "Failed": "bold red",
    "Canceled": "dim",
    "Queued": "cyan",
    "loading...": "italic cyan",
}


def render_row(row: Row) -> Text:
    """One tree line: indent, expand marker, icon, label, status, age."""
    if row.expandable:
        marker = "▼ " if row.expanded else "▶ "
    else:
        marker = "  "
    text = Text("  " * row.depth + marker)
    label_style = "bold red" if row.kind == NodeKind.ERROR else ""
    text.append(f"{row.kind_icon} ")
    text.append(row.label, style=label_style)
    if row.status_indicator:
        text.append("  ")
        text.append(row.status_indicator, style=STATUS_STYLES.get(row.status_indicator, "dim"))
    if row.last_activity:
        text.append(f"  {row.last_activity}", style="dim")
    if row.selected:
        text.stylize("reverse")
    return text


def describe_node(node: NodeRef) -> str:
    """Markdown summary of a node for the detail panel."""
    lines = [f"**Kind:** {node.kind.value}", f"**ID:** `{node.node_id}`"]
    payload = node.payload
    if isinstance(payload, BaseModel):
        for name, value in payload.model_dump(exclude_none=True).items():
            if isinstance(value, (dict, list)) or value in ("", None):
                continue
            lines.append(f"**{name.replace('_', ' ').title()}:** {value}")
    elif payload:
        lines.append(f"**Value:** {payload}")
    if isinstance(payload, PipelineRun):
        lines.append(f"**Duration:** {format_duration(payload.duration)}")
    return "  \n".join(lines)


class ResourceTree(Static, can_focus=True):
    """The flattened resource tree, one row per visible node."""

    def __init__(self, navigator: TreeNavigator, **kwargs) -> None:
        super().__init__("", **kwargs)
        self.navigator = navigator
        self.visible_rows: list[Row] = []

    def refresh_rows(self) -> None:
        rows = self.navigator.window()
        self.visible_rows = rows
        if not rows:
            self.update(Text("No resources. Press r to refresh.", style="dim"))
            return
        self.update(Text("\n").join(render_row(row) for row in rows))

    def on_resize(self, event: events.Resize) -> None:
        self.navigator.resize(self.content_size.height)
        self.refresh_rows()

    def on_key(self, event: events.Key) -> None:
        if event.character and self.navigator.resolve_action(event.character):
            event.stop()
            event.prevent_default()
            self.app.start_action(event.character)


class DetailPanel(Vertical):
    """Details of the selected node and the output of the last action."""

    node: reactive[Optional[NodeRef]] = reactive(None)

    def __init__(self, navigator: TreeNavigator, **kwargs) -> None:
        super().__init__(**kwargs)
        self.navigator = navigator

    def compose(self) -> ComposeResult:
        yield Label("Select a resource", id="detail-title", classes="title")
        yield Rule()
        yield VerticalScroll(
            Markdown("", id="detail-info"),
            Static("", id="detail-actions", markup=False),
            Static("", id="detail-output", markup=False),
            id="detail-scroll",
        )

    def watch_node(self, node: Optional[NodeRef]) -> None:
        if node is None:
            self.query_one("#detail-title", Label).update("Select a resource")
            self.query_one("#detail-info", Markdown).update("")
            self.query_one("#detail-actions", Static).update("")
            return

        self.query_one("#detail-title", Label).update(node.label)
        self.query_one("#detail-info", Markdown).update(describe_node(node))
        specs = self.navigator.router.specs_for(node.kind)
        if specs:
            lines = ["Actions:"]
            lines += [f"  [{spec.key or '-'}] {spec.name}  {spec.description}" for spec in specs]
            self.query_one("#detail-actions", Static).update("\n".join(lines))
        else:
            self.query_one("#detail-actions", Static).update("")
        self.query_one("#detail-output", Static).update("")

    def show_output(self, result: ActionResult) -> None:
        self.query_one("#detail-output", Static).update(result.output or "")


class ActionParamsModal(ModalScreen[Optional[dict[str, str]]]):
    """Modal asking for the parameters of an action."""

    CSS = """
    ActionParamsModal {
        align: center middle;
    }

    #params-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: solid $primary;
    }

    #params-dialog Input {
        margin: 1 0 0 0;
    }

    #params-dialog Horizontal {
        margin-top: 1;
        align: right middle;
        height: auto;
    }

    #params-dialog Button {
        margin-left: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, spec: ActionSpec, target: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.spec = spec
        self.target = target
        self.names = list(spec.required_params) + [
            name for name in spec.defaults if name not in spec.required_params
        ]

    def compose(self) -> ComposeResult:
        with Vertical(id="params-dialog"):
            yield Label(f"{self.spec.name}: {self.target}", classes="title")
            for name in self.names:
                required = name in self.spec.required_params
                yield Input(
                    value=self.spec.defaults.get(name, ""),
                    placeholder=f"{name}{'' if required else ' (optional)'}",
                    id=f"param-{name}",
                )
            with Horizontal():
                yield Button("Cancel", id="cancel-btn")
                yield Button("Run", id="run-btn", variant="primary")

    @on(Button.Pressed, "#run-btn")
    @on(Input.Submitted)
    def on_run(self) -> None:
        params = {
            name: self.query_one(f"#param-{name}", Input).value.strip() for name in self.names
        }
        missing = [name for name in self.spec.required_params if not params.get(name)]
        if missing:
            self.notify(f"Required: {', '.join(missing)}", severity="warning")
            return
        self.dismiss(params)

    @on(Button.Pressed, "#cancel-btn")
    def on_cancel(self) -> None:
        self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class ConfirmModal(ModalScreen[bool]):
    """Yes/no confirmation before a destructive action."""

    CSS = """
    ConfirmModal {
        align: center middle;
    }

    #confirm-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: solid $error;
    }

    #confirm-dialog Horizontal {
        margin-top: 1;
        align: right middle;
        height: auto;
    }

    #confirm-dialog Button {
        margin-left: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("y", "confirm", "Yes", show=False),
        Binding("n", "cancel", "No", show=False),
    ]

    def __init__(self, question: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.question = question

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.question)
            with Horizontal():
                yield Button("Cancel", id="cancel-btn")
                yield Button("Confirm", id="confirm-btn", variant="error")

    @on(Button.Pressed, "#confirm-btn")
    def on_confirm(self) -> None:
        self.dismiss(True)

    @on(Button.Pressed, "#cancel-btn")
    def on_cancel(self) -> None:
        self.dismiss(False)

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class TreeSuggester(Suggester):
    """Completes the last word of a search from the loaded tree."""

    def __init__(self, navigator: TreeNavigator) -> None:
        super().__init__(use_cache=False, case_sensitive=False)
        self.navigator = navigator

    async def get_suggestion(self, value: str) -> Optional[str]:
        word = value.rsplit(" ", 1)[-1]
        _, _, partial = word.rpartition(":")
        for candidate in self.navigator.suggest(partial):
            if len(candidate) > len(partial):
                return value + candidate[len(partial):]
        return None


class SearchModal(ModalScreen[Optional[str]]):
    """Search box over the loaded tree."""

    CSS = """
    SearchModal {
        align: center top;
    }

    #search-dialog {
        width: 70;
        height: auto;
        margin-top: 3;
        padding: 1 2;
        background: $surface;
        border: solid $primary;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, navigator: TreeNavigator, query: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.navigator = navigator
        self.query_text = query

    def compose(self) -> ComposeResult:
        with Vertical(id="search-dialog"):
            yield Label("Search loaded resources", classes="title")
            yield Input(
                value=self.query_text,
                placeholder="name, type:vm, location:westeurope, rg:web, tag:env=prod",
                suggester=TreeSuggester(self.navigator),
                id="search-input",
            )
            yield Label("Enter again to jump to the next match", classes="hint")

    @on(Input.Submitted, "#search-input")
    def on_search_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value.strip())

    def action_cancel(self) -> None:
        self.dismiss(None)


class HelpScreen(ModalScreen):
    """Keyboard reference."""

    CSS = """
    HelpScreen {
        align: center middle;
    }

    #help-dialog {
        width: 70;
        height: 80%;
        padding: 1 2;
        background: $surface;
        border: solid $primary;
    }

    #help-scroll {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("q", "close", "Close"),
    ]

    HELP = """
# azure-tui Help

## Navigation

| Key | Action |
|-----|--------|
| `j` / `Down` | Move down |
| `k` / `Up` | Move up |
| `Space` | Expand / collapse (loads children on first expand) |
| `Enter` | Show details of the selected resource |
| `r` | Refresh the whole tree |
| `a` | List actions for the selected resource |
| `/` | Search loaded resources (Enter again for the next match) |
| `?` | Show this help |
| `q` | Quit |

## Actions

Each resource kind has its own action keys, shown in the detail panel
after pressing `Enter`. Destructive actions ask for confirmation first.
Actions that need input (node count, pod name, file path) open a form.

Failed loads appear as a red error row under the node; expand the node
again to retry.

## Search

Search looks at resources that are already loaded. Plain words match
names, types, resource groups, locations and tags; `*` and `?` are
wildcards. Filters narrow the matches: `type:vm`, `location:westeurope`,
`rg:platform`, `tag:env=prod`.
"""

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            with VerticalScroll(id="help-scroll"):
                yield Markdown(self.HELP)
            yield Button("Close", id="close-btn")

    @on(Button.Pressed, "#close-btn")
    def on_close(self) -> None:
        self.dismiss()

    def action_close(self) -> None:
        self.dismiss()


class AzureTuiApp(App):
    """Terminal dashboard for browsing and operating on Azure resources."""

    TITLE = "azure-tui"
    SUB_TITLE = "Azure Resource Dashboard"

    CSS = """
    Screen {
        layout: vertical;
    }

    #breadcrumb {
        height: 1;
        padding: 0 1;
        background: $primary-darken-2;
    }

    #main-layout {
        height: 1fr;
    }

    #tree {
        width: 3fr;
        height: 1fr;
        padding: 0 1;
        border: solid $primary;
    }

    #tree:focus {
        border: solid $accent;
    }

    #detail {
        width: 2fr;
        height: 1fr;
        padding: 0 1;
        border: solid $primary-darken-2;
    }

    #detail-scroll {
        height: 1fr;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-1;
    }

    .title {
        text-style: bold;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("r", "refresh", "Refresh", show=True),
        Binding("space", "toggle_expand", "Expand", show=True),
        Binding("enter", "select", "Details", show=True),
        Binding("a", "show_actions", "Actions", show=True),
        Binding("/", "search", "Search", show=True),
        Binding("?", "help", "Help", show=True),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("down", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("up", "cursor_up", "Up", show=False),
    ]

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        view: Optional[str] = None,
        navigator: Optional[TreeNavigator] = None,
        tools: Optional[Tools] = None,
    ):
        super().__init__()
        self._config = config or AppConfig.load()
        self.view = view or self._config.default_view
        self.tools = tools
        if navigator is None:
            self.tools = tools or Tools.from_config(self._config)
            navigator = build_navigator(self.view, self._config, self.tools)
        self.navigator = navigator
        self.theme = self._config.theme
        self.sub_title = VIEW_TITLES.get(self.view, self.view)
        self.last_query = ""

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("", id="breadcrumb")
        with Horizontal(id="main-layout"):
            yield ResourceTree(self.navigator, id="tree")
            yield DetailPanel(self.navigator, id="detail")
        yield Static("", id="status-bar", markup=False)
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#tree", ResourceTree).focus()
        self.action_refresh()

    def on_unmount(self) -> None:
        if self.tools is not None:
            self.tools.close()

    # -- rendering -------------------------------------------------------------

    def refresh_view(self) -> None:
        """Re-render the tree, header breadcrumb and status line."""
        self.query_one("#tree", ResourceTree).refresh_rows()
        context = self.navigator.header_context()
        crumbs = [VIEW_TITLES.get(self.view, self.view)]
        crumbs += [context[key] for key in ("organization", "project") if key in context]
        self.query_one("#breadcrumb", Static).update(" › ".join(crumbs))
        self.query_one("#status-bar", Static).update(self.navigator.status)

    # -- navigation ------------------------------------------------------------

    def action_cursor_down(self) -> None:
        self.navigator.move_down()
        self.refresh_view()

    def action_cursor_up(self) -> None:
        self.navigator.move_up()
        self.refresh_view()

    def action_select(self) -> None:
        node = self.navigator.activate()
        self.query_one("#detail", DetailPanel).node = node
        self.refresh_view()

    def action_toggle_expand(self) -> None:
        request = self.navigator.toggle_expand()
        self.refresh_view()
        if request is not None:
            self.load_children(request)

    def action_refresh(self) -> None:
        request = self.navigator.refresh()
        self.query_one("#detail", DetailPanel).node = None
        self.refresh_view()
        self.load_roots(request)

    def action_show_actions(self) -> None:
        specs = self.navigator.available_actions()
        if not specs:
            self.notify("No actions for this resource", severity="warning")
            return
        self.notify(
            "\n".join(f"[{spec.key or '-'}] {spec.name}" for spec in specs),
            title="Actions",
        )

    def action_search(self) -> None:
        self.push_screen(SearchModal(self.navigator, self.last_query), self.run_search)

    def run_search(self, query: Optional[str]) -> None:
        if query is None:
            return
        self.last_query = query
        match = self.navigator.find(query)
        if match is None and query:
            self.notify(self.navigator.status, severity="warning")
        self.refresh_view()

    def action_help(self) -> None:
        self.push_screen(HelpScreen())

    # -- background work ---------------------------------------------------------

    @work(thread=True, group="loads")
    def load_children(self, request: LoadRequest) -> None:
        """Fetch children off the UI loop."""
        outcome = self.navigator.loader.fetch(request)
        self.call_from_thread(self.finish_load, outcome)

    def finish_load(self, outcome: LoadOutcome) -> None:
        if self.navigator.apply_load(outcome):
            if not outcome.ok:
                self.notify(outcome.error, title="Load failed", severity="error")
            self.refresh_view()

    @work(exclusive=True, thread=True, group="roots")
    def load_roots(self, request: RootRequest) -> None:
        outcome = self.navigator.loader.fetch_roots(request)
        self.call_from_thread(self.finish_roots, outcome)

    def finish_roots(self, outcome: LoadOutcome) -> None:
        if self.navigator.apply_roots(outcome):
            if not outcome.ok:
                self.notify(outcome.error, title="Load failed", severity="error")
            self.refresh_view()

    # -- actions -------------------------------------------------------------------

    def start_action(self, key: str) -> None:
        """Collect parameters and confirmation, then run the action."""
        spec = self.navigator.resolve_action(key)
        node = self.navigator.selected()
        if spec is None or node is None:
            return

        def confirm_and_run(params: Optional[dict[str, Any]]) -> None:
            if params is None:
                return
            if spec.destructive:
                def on_confirm(confirmed: bool) -> None:
                    if confirmed:
                        self.run_prepared(spec.name, params)

                self.push_screen(ConfirmModal(f"{spec.name} '{node.label}'?"), on_confirm)
            else:
                self.run_prepared(spec.name, params)

        if spec.required_params or spec.defaults:
            self.push_screen(ActionParamsModal(spec, node.label), confirm_and_run)
        else:
            confirm_and_run({})

    def run_prepared(self, name: str, params: dict[str, Any]) -> None:
        prepared = self.navigator.invoke_action(name, params)
        self.refresh_view()
        if isinstance(prepared, ActionResult):
            self.notify(prepared.message, severity="warning")
            return
        self.execute_action(prepared)

    @work(thread=True, group="actions")
    def execute_action(self, request: ActionRequest) -> None:
        """Run an action executor off the UI loop."""
        result = self.navigator.router.execute(request)
        self.call_from_thread(self.finish_action, request, result)

    def finish_action(self, request: ActionRequest, result: ActionResult) -> None:
        if not self.navigator.apply_action_result(request, result):
            return
        self.notify(
            result.message,
            title=request.spec.name,
            severity="information" if result.success else "error",
        )
        self.query_one("#detail", DetailPanel).show_output(result)
        self.refresh_view()

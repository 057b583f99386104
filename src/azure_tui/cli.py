"""Click CLI for azure-tui."""

from typing import Optional

import click
import yaml
from trogon import tui

from azure_tui import __version__
from azure_tui.config import VIEWS, AppConfig
from azure_tui.log import configure_logging
from azure_tui.models import (
    AzureResource,
    Blob,
    DevOpsProject,
    NodeKind,
    NodeRef,
    Organization,
    Pipeline,
    PipelineRun,
    StorageContainer,
    TerraformDirectory,
    Workspace,
)
from azure_tui.navigator import TreeNavigator
from azure_tui.navigator.viewport import build_rows
from azure_tui.views import Tools, build_navigator, build_view


KIND_NAMES = [kind.value for kind in NodeKind]


def load_config() -> AppConfig:
    """Load configuration and point structlog at the log file."""
    config = AppConfig.load()
    configure_logging(config.log_file or AppConfig.default_log_file(), config.log_level)
    return config


def parse_params(pairs: tuple[str, ...]) -> dict[str, str]:
    params = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Expected key=value, got '{pair}'", param_hint="--param")
        key, value = pair.split("=", 1)
        params[key.strip()] = value
    return params


def expand_all(navigator: TreeNavigator, depth: int) -> None:
    """Load the tree synchronously down to ``depth`` levels below the roots."""
    store = navigator.store
    outcome = navigator.loader.fetch_roots(navigator.refresh())
    navigator.apply_roots(outcome)

    for level in range(depth):
        frontier = [node for node in store.walk() if node.depth == level]
        for node in frontier:
            if not navigator.loader.can_load(node.kind):
                continue
            store.toggle_expansion(node.handle)
            request = navigator.loader.begin(store, node.handle)
            if request is not None:
                navigator.apply_load(navigator.loader.fetch(request))


@tui()
@click.group()
@click.version_option(version=__version__, prog_name="azure-tui")
def cli() -> None:
    """azure-tui - Terminal dashboard for Azure resources.

    Browse DevOps pipelines, subscriptions, storage and Terraform
    workspaces as a lazily loaded tree, and run actions on them.

    Quick start:
        azure-tui dashboard             Launch interactive TUI dashboard
        azure-tui tui                   Launch command explorer (Trogon)
        azure-tui tree resources        Print the resource tree
        azure-tui actions aks-cluster   List actions for a resource kind
    """


@cli.command()
@click.option(
    "--view", "-v",
    type=click.Choice(VIEWS),
    default=None,
    help="Tree to show (defaults to the configured view)",
)
def dashboard(view: Optional[str]) -> None:
    """Launch the interactive TUI dashboard.

    Keyboard shortcuts:
        q - Quit
        r - Refresh
        j/k - Move down/up
        space - Expand/collapse
        enter - Show details
        a - List actions
        / - Search
        ? - Help
    """
    from azure_tui.tui import AzureTuiApp

    config = load_config()
    app = AzureTuiApp(config=config, view=view)
    app.run()


@cli.command()
@click.argument("view", type=click.Choice(VIEWS))
@click.option("--depth", "-d", default=1, show_default=True, help="Levels to expand")
@click.option(
    "--filter", "-f", "query", default=None,
    help="Only show matches and their parents (e.g. 'web type:vm tag:env=prod')",
)
def tree(view: str, depth: int, query: Optional[str]) -> None:
    """Print the resource tree for VIEW without the dashboard."""
    config = load_config()
    tools = Tools.from_config(config)
    try:
        navigator = build_navigator(view, config, tools, max_visible_rows=10_000)
        expand_all(navigator, max(0, depth))
    finally:
        tools.close()

    flat = navigator.flat()
    if not flat:
        click.echo("No resources found.")
        return

    if query:
        matches = navigator.search(query)
        if not matches:
            click.echo(f"No resources match '{query}'.")
            return
        keep = set()
        for match in matches:
            navigator.store.expand_ancestors(match.handle)
            keep.add(match.handle)
            keep.update(node.handle for node in navigator.store.ancestors(match.handle))
        flat = [node for node in navigator.flat() if node.handle in keep]

    for row in build_rows(flat, None, navigator.registry.expandable_kinds):
        line = "  " * row.depth + f"{row.kind_icon} {row.label}"
        if row.status_indicator:
            line += f"  [{row.status_indicator}]"
        if row.last_activity:
            line += f"  {row.last_activity}"
        if row.kind == NodeKind.ERROR:
            click.echo(click.style(line, fg="red"))
        else:
            click.echo(line)


@cli.command()
@click.argument("kind", type=click.Choice(KIND_NAMES))
def actions(kind: str) -> None:
    """List the actions available for a resource KIND."""
    config = AppConfig.load()
    node_kind = NodeKind(kind)
    specs = []
    for view in VIEWS:
        _, router = build_view(view, config, Tools())
        for spec in router.specs_for(node_kind):
            if spec.name not in {s.name for s in specs}:
                specs.append(spec)

    if not specs:
        click.echo(f"No actions for '{kind}'.")
        return

    for spec in specs:
        line = f"  [{spec.key or '-'}] {spec.name:<16} {spec.description}"
        if spec.required_params:
            line += f"  (requires: {', '.join(spec.required_params)})"
        if spec.destructive:
            line += "  ⚠"
        click.echo(line)


@cli.command()
@click.argument("kind", type=click.Choice(KIND_NAMES))
@click.argument("action")
@click.argument("name")
@click.option("--resource-group", "-g", default=None, help="Resource group of the target")
@click.option("--param", "-p", "params", multiple=True, help="Action parameter as key=value")
@click.option(
    "--view",
    type=click.Choice(VIEWS),
    default=None,
    help="View whose actions to use (guessed from KIND by default)",
)
def run(
    kind: str,
    action: str,
    name: str,
    resource_group: Optional[str],
    params: tuple[str, ...],
    view: Optional[str],
) -> None:
    """Run ACTION on the resource NAME of type KIND."""
    config = load_config()
    node_kind = NodeKind(kind)
    values = parse_params(params)
    if node_kind in (NodeKind.PIPELINE, NodeKind.RUN) and not values.get("id"):
        click.echo(f"Missing required parameter: id (the {kind} id, as -p id=N)", err=True)
        raise SystemExit(1)

    payloads = {
        NodeKind.PIPELINE: lambda: Pipeline(id=int(values.pop("id")), name=name),
        NodeKind.RUN: lambda: PipelineRun(id=int(values.pop("id")), name=name),
        NodeKind.CONTAINER: lambda: StorageContainer(
            name=name, account_name=values.pop("account", "")
        ),
        NodeKind.BLOB: lambda: Blob(
            name=name,
            account_name=values.pop("account", ""),
            container=values.pop("container", ""),
        ),
        NodeKind.TERRAFORM_DIR: lambda: TerraformDirectory(path=name),
        NodeKind.WORKSPACE: lambda: Workspace(name=name, directory=values.pop("directory", ".")),
    }
    try:
        payload = payloads.get(
            node_kind,
            lambda: AzureResource(
                id=values.pop("id", name), name=name, type=kind, resourceGroup=resource_group
            ),
        )()
    except ValueError as e:
        click.echo(f"Invalid parameters: {e}", err=True)
        raise SystemExit(1)

    lineage = {}
    if node_kind in (NodeKind.PIPELINE, NodeKind.RUN):
        organization = values.pop("organization", None) or config.devops.organization
        project = values.pop("project", None) or config.devops.project
        if not organization or not project:
            click.echo("Set organization and project with -p or AZURE_DEVOPS_ORG/PROJECT", err=True)
            raise SystemExit(1)
        lineage[NodeKind.ORGANIZATION] = Organization(accountName=organization)
        lineage[NodeKind.PROJECT] = DevOpsProject(id=project, name=project)

    node = NodeRef(handle=0, node_id=name, kind=node_kind, label=name, payload=payload,
                   lineage=lineage)

    if view is None:
        view = {
            NodeKind.PIPELINE: "devops",
            NodeKind.RUN: "devops",
            NodeKind.TERRAFORM_DIR: "terraform",
            NodeKind.WORKSPACE: "terraform",
        }.get(node_kind, "resources")

    tools = Tools.from_config(config)
    try:
        _, router = build_view(view, config, tools)
        result = router.dispatch(node, action, values, resource_group=resource_group)
    finally:
        tools.close()

    if result.output:
        click.echo(result.output.rstrip())
    if result.success:
        click.echo(f"✓ {result.message}")
    else:
        click.echo(f"✗ {result.message}", err=True)
        raise SystemExit(1)


@cli.group()
def config() -> None:
    """Manage azure-tui configuration."""


@config.command("show")
def config_show() -> None:
    """Print the current configuration (token hidden)."""
    current = AppConfig.load()
    data = current.to_dict()
    if data["devops"].get("personal_access_token"):
        data["devops"]["personal_access_token"] = "********"
    click.echo(yaml.safe_dump(data, sort_keys=False).rstrip())


@config.command("path")
def config_path() -> None:
    """Print the path of the config file."""
    click.echo(str(AppConfig.get_config_path()))


@config.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def config_reset(yes: bool) -> None:
    """Reset the configuration to defaults."""
    if not yes:
        click.confirm("Reset all settings to defaults?", abort=True)
    current = AppConfig.load(apply_env=False)
    current.reset()
    current.save()
    click.echo("✓ Configuration reset")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set KEY (e.g. default_view, devops.organization) to VALUE."""
    current = AppConfig.load(apply_env=False)
    try:
        current.set_value(key, value)
    except KeyError:
        click.echo(f"Unknown setting: {key}", err=True)
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"Invalid value for {key}: {e}", err=True)
        raise SystemExit(1)
    current.save()
    click.echo(f"✓ {key} = {value}")


if __name__ == "__main__":
    cli()

"""Terraform working directories and their workspaces."""

from pathlib import Path

from azure_tui.models import ActionResult, NodeKind, NodeRef, NodeSpec, TerraformDirectory, Workspace
from azure_tui.providers.base import ResourceProvider, RootProvider
from azure_tui.providers.cli import CliRunner


def parse_workspaces(output: str, directory: str) -> list[Workspace]:
    """Parse ``terraform workspace list``; the current one is starred."""
    workspaces = []
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        current = stripped.startswith("*")
        name = stripped.lstrip("*").strip()
        workspaces.append(Workspace(name=name, directory=directory, current=current))
    return workspaces


class TerraformDirectoryRoots(RootProvider):
    """The working directories named in the configuration."""

    def __init__(self, directories: list[str]):
        self.directories = directories

    def list_roots(self, timeout: float) -> list[NodeSpec]:
        specs = []
        for raw in self.directories:
            path = Path(raw).expanduser()
            directory = TerraformDirectory(path=str(path))
            specs.append(
                NodeSpec(
                    node_id=str(path),
                    kind=NodeKind.TERRAFORM_DIR,
                    label=directory.name,
                    status_text="" if path.is_dir() else "missing",
                    payload=directory,
                )
            )
        return specs


class WorkspaceProvider(ResourceProvider):
    """Workspaces of a working directory."""

    expands = (NodeKind.TERRAFORM_DIR,)

    def __init__(self, terraform: CliRunner):
        self.terraform = terraform

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        directory: TerraformDirectory = node.payload
        if not Path(directory.path).is_dir():
            raise FileNotFoundError(f"Directory not found: {directory.path}")
        output = self.terraform.run("workspace", "list", timeout=timeout, cwd=directory.path)
        return [
            NodeSpec(
                node_id=w.name,
                kind=NodeKind.WORKSPACE,
                label=w.name,
                status_text="current" if w.current else "",
                payload=w,
            )
            for w in parse_workspaces(output, directory.path)
        ]


class TerraformActions:
    """init/validate/plan on directories; select/delete on workspaces."""

    def __init__(self, terraform: CliRunner):
        self.terraform = terraform

    def _in_directory(self, *args: str, success: str):
        def handler(node, resource_group, params, timeout=30.0) -> ActionResult:
            return self.terraform.action(
                *args, success=success.format(name=node.label),
                timeout=timeout, cwd=node.payload.path,
            )

        return handler

    def new_workspace(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        name = params["name"]
        return self.terraform.action(
            "workspace", "new", name,
            success=f"Workspace '{name}' created", timeout=timeout, cwd=node.payload.path,
        )

    def select_workspace(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        workspace: Workspace = node.payload
        return self.terraform.action(
            "workspace", "select", workspace.name,
            success=f"Switched to workspace '{workspace.name}'",
            timeout=timeout, cwd=workspace.directory,
        )

    def delete_workspace(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        workspace: Workspace = node.payload
        if workspace.current:
            return ActionResult.failed("Cannot delete the current workspace")
        return self.terraform.action(
            "workspace", "delete", workspace.name,
            success=f"Workspace '{workspace.name}' deleted",
            timeout=timeout, cwd=workspace.directory,
        )

    def register(self, router) -> None:
        tf = NodeKind.TERRAFORM_DIR
        router.register(tf, "init", self._in_directory(
            "init", "-input=false", "-no-color", success="Initialized {name}"),
            key="I", description="terraform init")
        router.register(tf, "validate", self._in_directory(
            "validate", "-no-color", success="{name} is valid"),
            key="v", description="terraform validate")
        router.register(tf, "plan", self._in_directory(
            "plan", "-input=false", "-no-color", success="Plan for {name}"),
            key="p", description="terraform plan")
        router.register(tf, "new-workspace", self.new_workspace, key="n",
                        description="Create a workspace", required_params=("name",))

        ws = NodeKind.WORKSPACE
        router.register(ws, "select", self.select_workspace, key="s",
                        description="Switch to this workspace")
        router.register(ws, "delete", self.delete_workspace, key="D",
                        description="Delete the workspace", destructive=True)

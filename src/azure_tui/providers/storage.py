"""Storage accounts, blob containers and blobs through the ``az`` CLI."""

from pathlib import Path

from azure_tui.models import (
    ActionResult,
    Blob,
    NodeKind,
    NodeRef,
    NodeSpec,
    StorageAccount,
    StorageContainer,
)
from azure_tui.providers.azure import subscription_args
from azure_tui.providers.base import ResourceProvider, RootProvider
from azure_tui.providers.cli import AzureCli


def format_size(size: int) -> str:
    """Human-readable byte count ("1.5 KB")."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


class StorageAccountRoots(RootProvider):
    """Every storage account of the current subscription."""

    def __init__(self, az: AzureCli):
        self.az = az

    def list_roots(self, timeout: float) -> list[NodeSpec]:
        data = self.az.json("storage", "account", "list", timeout=timeout)
        accounts = sorted(
            (StorageAccount.model_validate(a) for a in data), key=lambda a: a.name
        )
        return [
            NodeSpec(
                node_id=a.id or a.name,
                kind=NodeKind.STORAGE_ACCOUNT,
                label=a.name,
                status_text=a.location or "",
                payload=a,
            )
            for a in accounts
        ]


class ContainerProvider(ResourceProvider):
    """Blob containers of a storage account."""

    expands = (NodeKind.STORAGE_ACCOUNT,)

    def __init__(self, az: AzureCli):
        self.az = az

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        account = node.payload.name
        data = self.az.json(
            "storage", "container", "list",
            "--account-name", account,
            *subscription_args(node),
            timeout=timeout,
        )
        containers = [StorageContainer.from_az(c, account) for c in data]
        return [
            NodeSpec(
                node_id=c.name,
                kind=NodeKind.CONTAINER,
                label=c.name,
                status_text=c.public_access or "private",
                payload=c,
            )
            for c in containers
        ]


class BlobProvider(ResourceProvider):
    """Blobs in a container."""

    expands = (NodeKind.CONTAINER,)

    def __init__(self, az: AzureCli):
        self.az = az

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        container: StorageContainer = node.payload
        data = self.az.json(
            "storage", "blob", "list",
            "--account-name", container.account_name,
            "--container-name", container.name,
            *subscription_args(node),
            timeout=timeout,
        )
        blobs = [Blob.from_az(b, container.account_name, container.name) for b in data]
        return [
            NodeSpec(
                node_id=b.name,
                kind=NodeKind.BLOB,
                label=b.name,
                status_text=format_size(b.size),
                payload=b,
            )
            for b in blobs
        ]


class StorageActions:
    """Account, container and blob actions."""

    def __init__(self, az: AzureCli):
        self.az = az

    def account_keys(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        args = ["storage", "account", "keys", "list", "--account-name", node.payload.name]
        if resource_group:
            args += ["--resource-group", resource_group]
        output = self.az.run(*args, *subscription_args(node), "--output", "table", timeout=timeout)
        return ActionResult(success=True, message=f"Keys for '{node.label}'", output=output)

    def create_container(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        name = params["name"]
        return self.az.action(
            "storage", "container", "create",
            "--account-name", node.payload.name,
            "--name", name,
            *subscription_args(node),
            success=f"Container '{name}' created",
            timeout=timeout,
        )

    def upload_blob(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        container: StorageContainer = node.payload
        source = Path(params["file"]).expanduser()
        if not source.is_file():
            return ActionResult.failed(f"File not found: {source}")
        blob_name = params.get("blob") or source.name
        return self.az.action(
            "storage", "blob", "upload",
            "--account-name", container.account_name,
            "--container-name", container.name,
            "--name", blob_name,
            "--file", str(source),
            "--overwrite",
            *subscription_args(node),
            success=f"Uploaded '{blob_name}' to {container.name}",
            timeout=timeout,
        )

    def delete_container(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        container: StorageContainer = node.payload
        return self.az.action(
            "storage", "container", "delete",
            "--account-name", container.account_name,
            "--name", container.name,
            *subscription_args(node),
            success=f"Container '{container.name}' deleted",
            timeout=timeout,
        )

    def _blob_args(self, node: NodeRef) -> list[str]:
        blob: Blob = node.payload
        return [
            "--account-name", blob.account_name,
            "--container-name", blob.container,
            "--name", blob.name,
            *subscription_args(node),
        ]

    def blob_properties(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        output = self.az.run(
            "storage", "blob", "show", *self._blob_args(node), "--output", "json",
            timeout=timeout,
        )
        return ActionResult(success=True, message=f"Properties of '{node.label}'", output=output)

    def download_blob(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        blob: Blob = node.payload
        destination = params.get("destination") or Path(blob.name).name
        return self.az.action(
            "storage", "blob", "download", *self._blob_args(node), "--file", destination,
            success=f"Downloaded '{blob.name}' to {destination}",
            timeout=timeout,
        )

    def delete_blob(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        return self.az.action(
            "storage", "blob", "delete", *self._blob_args(node),
            success=f"Blob '{node.label}' deleted",
            timeout=timeout,
        )

    def register(self, router) -> None:
        account = NodeKind.STORAGE_ACCOUNT
        router.register(account, "keys", self.account_keys, key="K",
                        description="List access keys")
        router.register(account, "create-container", self.create_container, key="n",
                        description="Create a blob container", required_params=("name",))

        container = NodeKind.CONTAINER
        router.register(container, "upload", self.upload_blob, key="u",
                        description="Upload a local file", required_params=("file",),
                        defaults={"blob": ""})
        router.register(container, "delete", self.delete_container, key="D",
                        description="Delete the container", destructive=True)

        blob = NodeKind.BLOB
        router.register(blob, "properties", self.blob_properties, key="i",
                        description="Show blob properties")
        router.register(blob, "download", self.download_blob, key="w",
                        description="Download to a local file", defaults={"destination": ""})
        router.register(blob, "delete", self.delete_blob, key="D",
                        description="Delete the blob", destructive=True)

"""Subscriptions, resource groups and resources through the ``az`` CLI."""

import time
from typing import Optional

import structlog

from azure_tui.models import (
    ActionResult,
    AzureResource,
    NodeKind,
    NodeRef,
    NodeSpec,
    ResourceGroup,
    Subscription,
    kind_for_resource_type,
)
from azure_tui.providers.base import ResourceProvider, RootProvider
from azure_tui.providers.cli import AzureCli, CliRunner, time_left


logger = structlog.get_logger()


def subscription_args(node: NodeRef) -> list[str]:
    """``--subscription`` argument for the subscription above ``node``."""
    subscription = node.context(NodeKind.SUBSCRIPTION)
    if subscription is None:
        return []
    return ["--subscription", subscription.id]


def resource_spec(resource: AzureResource) -> NodeSpec:
    return NodeSpec(
        node_id=resource.id or resource.name,
        kind=kind_for_resource_type(resource.type),
        label=resource.name,
        status_text=resource.provisioning_state or "",
        payload=resource,
    )


class SubscriptionRoots(RootProvider):
    """Subscriptions visible to the signed-in account."""

    def __init__(self, az: AzureCli):
        self.az = az

    def list_roots(self, timeout: float) -> list[NodeSpec]:
        data = self.az.json("account", "list", timeout=timeout)
        subscriptions = [Subscription.model_validate(s) for s in data]
        return [
            NodeSpec(
                node_id=s.id,
                kind=NodeKind.SUBSCRIPTION,
                label=s.name,
                status_text="default" if s.is_default else (s.state or ""),
                payload=s,
            )
            for s in subscriptions
        ]


class ResourceGroupProvider(ResourceProvider):
    """Resource groups of a subscription."""

    expands = (NodeKind.SUBSCRIPTION,)

    def __init__(self, az: AzureCli):
        self.az = az

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        data = self.az.json("group", "list", "--subscription", node.payload.id, timeout=timeout)
        groups = sorted(
            (ResourceGroup.from_az(g) for g in data), key=lambda g: g.name.lower()
        )
        return [
            NodeSpec(
                node_id=g.id or g.name,
                kind=NodeKind.RESOURCE_GROUP,
                label=g.name,
                status_text=g.location or "",
                payload=g.model_copy(update={"subscription_id": node.payload.id}),
            )
            for g in groups
        ]


class ResourceProviderByGroup(ResourceProvider):
    """Resources inside a resource group."""

    expands = (NodeKind.RESOURCE_GROUP,)

    def __init__(self, az: AzureCli):
        self.az = az

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        data = self.az.json(
            "resource", "list",
            "--resource-group", node.payload.name,
            *subscription_args(node),
            timeout=timeout,
        )
        resources = [AzureResource.model_validate(r) for r in data]
        return [resource_spec(r) for r in resources]


class ResourceActions:
    """VM, web app, AKS and generic resource actions."""

    def __init__(self, az: AzureCli, kubectl: Optional[CliRunner] = None):
        self.az = az
        self.kubectl = kubectl or CliRunner("kubectl")

    def _target(self, node: NodeRef, resource_group: Optional[str]) -> list[str]:
        if not resource_group:
            raise ValueError(f"No resource group known for '{node.label}'")
        return ["--name", node.payload.name, "--resource-group", resource_group]

    def _az(self, group: str, verb: str, success: str):
        def handler(node, resource_group, params, timeout=30.0) -> ActionResult:
            return self.az.action(
                group, verb,
                *self._target(node, resource_group),
                *subscription_args(node),
                success=success.format(name=node.label),
                timeout=timeout,
            )

        return handler

    # -- virtual machines -----------------------------------------------------

    def vm_status(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        output = self.az.run(
            "vm", "get-instance-view",
            *self._target(node, resource_group),
            *subscription_args(node),
            "--query", "instanceView.statuses[1].displayStatus",
            "--output", "tsv",
            timeout=timeout,
        )
        status = output.strip() or "Unknown"
        return ActionResult(success=True, message=f"VM '{node.label}': {status}", output=output)

    # -- web apps ---------------------------------------------------------------

    def webapp_browse(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        host = self.az.run(
            "webapp", "show",
            *self._target(node, resource_group),
            *subscription_args(node),
            "--query", "defaultHostName",
            "--output", "tsv",
            timeout=timeout,
        ).strip()
        return ActionResult(success=True, message=f"https://{host}", output=host)

    # -- AKS ----------------------------------------------------------------------

    def aks_scale(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        count = params["node_count"]
        if not count.isdigit() or int(count) < 1:
            return ActionResult.failed(f"Invalid node count: {count}")
        return self.az.action(
            "aks", "scale",
            *self._target(node, resource_group),
            *subscription_args(node),
            "--node-count", count,
            success=f"AKS cluster '{node.label}' scaled to {count} nodes",
            timeout=timeout,
        )

    def aks_connect(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        return self.az.action(
            "aks", "get-credentials",
            *self._target(node, resource_group),
            *subscription_args(node),
            "--overwrite-existing",
            success=f"Connected to AKS cluster '{node.label}'",
            timeout=timeout,
        )

    def _connected_kubectl(
        self, node, resource_group, params, args: list[str], success: str, timeout: float
    ) -> ActionResult:
        """Fetch credentials, then run kubectl in whatever time is left."""
        deadline = time.monotonic() + timeout
        connected = self.aks_connect(node, resource_group, params, timeout=timeout)
        if not connected.success:
            return connected
        left = time_left(deadline, [self.kubectl.executable, *args])
        return self.kubectl.action(*args, success=success, timeout=left)

    def _kubectl(self, *args: str, title: str):
        def handler(node, resource_group, params, timeout=30.0) -> ActionResult:
            return self._connected_kubectl(
                node, resource_group, params, list(args), title.format(name=node.label), timeout
            )

        return handler

    def aks_logs(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        pod = params["pod"]
        args = ["logs", pod, "--tail=100"]
        if params.get("namespace"):
            args += ["-n", params["namespace"]]
        return self._connected_kubectl(
            node, resource_group, params, args, f"Logs for pod '{pod}'", timeout
        )

    # -- any resource -------------------------------------------------------------

    def resource_show(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        output = self.az.run("resource", "show", "--ids", node.payload.id, timeout=timeout)
        return ActionResult(success=True, message=f"Details of '{node.label}'", output=output)

    def resource_delete(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        return self.az.action(
            "resource", "delete", "--ids", node.payload.id,
            success=f"Resource '{node.label}' deleted",
            timeout=timeout,
        )

    def register(self, router) -> None:
        vm = NodeKind.VIRTUAL_MACHINE
        router.register(vm, "start", self._az("vm", "start", "VM '{name}' started"),
                        key="s", description="Start the VM")
        router.register(vm, "stop", self._az("vm", "deallocate", "VM '{name}' stopped"),
                        key="x", description="Stop (deallocate) the VM", destructive=True)
        router.register(vm, "restart", self._az("vm", "restart", "VM '{name}' restarted"),
                        key="t", description="Restart the VM", destructive=True)
        router.register(vm, "status", self.vm_status, key="i", description="Power state")

        app = NodeKind.WEB_APP
        router.register(app, "start", self._az("webapp", "start", "Web app '{name}' started"),
                        key="s", description="Start the web app")
        router.register(app, "stop", self._az("webapp", "stop", "Web app '{name}' stopped"),
                        key="x", description="Stop the web app", destructive=True)
        router.register(app, "restart", self._az("webapp", "restart", "Web app '{name}' restarted"),
                        key="t", description="Restart the web app", destructive=True)
        router.register(app, "browse", self.webapp_browse, key="b", description="Show the site URL")

        aks = NodeKind.AKS_CLUSTER
        router.register(aks, "start", self._az("aks", "start", "AKS cluster '{name}' started"),
                        key="s", description="Start the cluster")
        router.register(aks, "stop", self._az("aks", "stop", "AKS cluster '{name}' stopped"),
                        key="x", description="Stop the cluster", destructive=True)
        router.register(aks, "scale", self.aks_scale, key="z",
                        description="Scale the default node pool", required_params=("node_count",))
        router.register(aks, "connect", self.aks_connect, key="c",
                        description="Fetch kubectl credentials")
        router.register(aks, "pods", self._kubectl(
            "get", "pods", "--all-namespaces", "-o", "wide", title="Pods in cluster '{name}'"),
            key="p", description="List pods")
        router.register(aks, "deployments", self._kubectl(
            "get", "deployments", "--all-namespaces", "-o", "wide",
            title="Deployments in cluster '{name}'"),
            key="d", description="List deployments")
        router.register(aks, "services", self._kubectl(
            "get", "services", "--all-namespaces", "-o", "wide",
            title="Services in cluster '{name}'"),
            key="v", description="List services")
        router.register(aks, "nodes", self._kubectl(
            "get", "nodes", "-o", "wide", title="Nodes in cluster '{name}'"),
            key="n", description="List nodes")
        router.register(aks, "logs", self.aks_logs, key="l",
                        description="Tail a pod's logs", required_params=("pod",),
                        defaults={"namespace": ""})

        res = NodeKind.RESOURCE
        router.register(res, "show", self.resource_show, key="i", description="Show details")
        router.register(res, "delete", self.resource_delete, key="D",
                        description="Delete the resource", destructive=True)

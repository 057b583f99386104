"""Data models for azure-tui."""

from .schemas import (
    ActionResult,
    AzureResource,
    Blob,
    ChildState,
    DevOpsProject,
    DevOpsUser,
    KIND_ICONS,
    NodeKind,
    NodeRef,
    NodeSpec,
    Organization,
    Pipeline,
    PipelineRun,
    Repository,
    ResourceGroup,
    StorageAccount,
    StorageContainer,
    Subscription,
    TerraformDirectory,
    Workspace,
    format_duration,
    format_relative_time,
    kind_for_resource_type,
    normalize_status,
    utcnow,
)

__all__ = [
    "ActionResult",
    "AzureResource",
    "Blob",
    "ChildState",
    "DevOpsProject",
    "DevOpsUser",
    "KIND_ICONS",
    "NodeKind",
    "NodeRef",
    "NodeSpec",
    "Organization",
    "Pipeline",
    "PipelineRun",
    "Repository",
    "ResourceGroup",
    "StorageAccount",
    "StorageContainer",
    "Subscription",
    "TerraformDirectory",
    "Workspace",
    "format_duration",
    "format_relative_time",
    "kind_for_resource_type",
    "normalize_status",
    "utcnow",
]

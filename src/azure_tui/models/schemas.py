"""Core data types and Azure payload models for azure-tui."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class NodeKind(str, Enum):
    """Kinds of nodes in the resource tree."""

    ORGANIZATION = "organization"
    PROJECT = "project"
    PIPELINE_CATEGORY = "pipeline-category"
    PIPELINE = "pipeline"
    RUN = "run"
    SUBSCRIPTION = "subscription"
    RESOURCE_GROUP = "resource-group"
    VIRTUAL_MACHINE = "virtual-machine"
    WEB_APP = "web-app"
    AKS_CLUSTER = "aks-cluster"
    STORAGE_ACCOUNT = "storage-account"
    RESOURCE = "resource"  # Any Azure resource without a dedicated kind
    CONTAINER = "container"
    BLOB = "blob"
    TERRAFORM_DIR = "terraform-dir"
    WORKSPACE = "workspace"
    ERROR = "error"  # Synthetic node carrying a load failure


class ChildState(str, Enum):
    """Load state of a node's children."""

    NOT_LOADED = "not-loaded"
    LOADING = "loading"
    LOADED = "loaded"  # Fetched; zero children means genuinely empty
    FAILED = "failed"


# Exact (case-insensitive) resource type -> kind table
RESOURCE_TYPE_KINDS: dict[str, NodeKind] = {
    "microsoft.compute/virtualmachines": NodeKind.VIRTUAL_MACHINE,
    "microsoft.web/sites": NodeKind.WEB_APP,
    "microsoft.containerservice/managedclusters": NodeKind.AKS_CLUSTER,
    "microsoft.storage/storageaccounts": NodeKind.STORAGE_ACCOUNT,
}


def kind_for_resource_type(resource_type: Optional[str]) -> NodeKind:
    """Resolve an Azure resource type string to a node kind.

    Only exact type names match; child types such as
    ``Microsoft.Web/sites/slots`` stay generic resources.
    """
    if not resource_type:
        return NodeKind.RESOURCE
    return RESOURCE_TYPE_KINDS.get(resource_type.strip().lower(), NodeKind.RESOURCE)


KIND_ICONS: dict[NodeKind, str] = {
    NodeKind.ORGANIZATION: "🏢",
    NodeKind.PROJECT: "📁",
    NodeKind.PIPELINE_CATEGORY: "🗂",
    NodeKind.PIPELINE: "⚙",
    NodeKind.RUN: "📋",
    NodeKind.SUBSCRIPTION: "🔑",
    NodeKind.RESOURCE_GROUP: "📦",
    NodeKind.VIRTUAL_MACHINE: "🖥",
    NodeKind.WEB_APP: "🌐",
    NodeKind.AKS_CLUSTER: "☸",
    NodeKind.STORAGE_ACCOUNT: "💾",
    NodeKind.RESOURCE: "•",
    NodeKind.CONTAINER: "🪣",
    NodeKind.BLOB: "📄",
    NodeKind.TERRAFORM_DIR: "🏗",
    NodeKind.WORKSPACE: "🧭",
    NodeKind.ERROR: "❌",
}


@dataclass
class NodeSpec:
    """A child description returned by a resource provider."""

    node_id: str
    kind: NodeKind
    label: str
    status_text: str = ""
    last_activity_text: str = ""
    payload: Any = None


@dataclass(frozen=True)
class NodeRef:
    """Read-only identity of a node, handed to providers and executors."""

    handle: int
    node_id: str
    kind: NodeKind
    label: str
    payload: Any = None
    lineage: dict[NodeKind, Any] = field(default_factory=dict)

    def context(self, kind: NodeKind) -> Any:
        """Payload of the nearest node of ``kind`` on the path to the root."""
        return self.lineage.get(kind)

    @property
    def resource_group(self) -> Optional[str]:
        """Resource group the node lives in, if any."""
        group = getattr(self.payload, "resource_group", None)
        if group:
            return group
        parent_group = self.lineage.get(NodeKind.RESOURCE_GROUP)
        if parent_group is not None:
            return parent_group.name
        return None


@dataclass
class ActionResult:
    """Uniform result of a resource action."""

    success: bool
    message: str
    output: str = ""

    @classmethod
    def failed(cls, message: str, output: str = "") -> "ActionResult":
        return cls(success=False, message=message, output=output)


# =============================================================================
# Payload models - parsed from `az` JSON and the Azure DevOps REST API
# =============================================================================


_LONG_FRACTION = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6})\d+")


class AzureModel(BaseModel):
    """Base for payload models: accept aliases and ignore unknown fields."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _trim_fractional_seconds(cls, value: Any) -> Any:
        # DevOps timestamps carry 7 fractional digits
        if isinstance(value, str):
            return _LONG_FRACTION.sub(r"\1", value)
        return value


class Organization(AzureModel):
    """An Azure DevOps organization."""

    id: str = Field(default="", alias="accountId")
    name: str = Field(alias="accountName")
    url: Optional[str] = Field(default=None, alias="accountUri")
    description: Optional[str] = None


class DevOpsProject(AzureModel):
    """An Azure DevOps project."""

    id: str
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    state: Optional[str] = None
    last_update_time: Optional[datetime] = Field(default=None, alias="lastUpdateTime")


class Repository(AzureModel):
    """A repository linked to a pipeline."""

    id: str = ""
    name: str = ""
    type: Optional[str] = None
    url: Optional[str] = None


class DevOpsUser(AzureModel):
    """A user in Azure DevOps."""

    id: str = ""
    display_name: str = Field(default="", alias="displayName")
    unique_name: Optional[str] = Field(default=None, alias="uniqueName")


class PipelineRun(AzureModel):
    """A pipeline (build) execution."""

    id: int
    name: Optional[str] = None
    build_number: Optional[str] = Field(default=None, alias="buildNumber")
    status: Optional[str] = None
    state: Optional[str] = None
    result: Optional[str] = None
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    finish_time: Optional[datetime] = Field(default=None, alias="finishTime")
    created_date: Optional[datetime] = Field(default=None, alias="createdDate")
    finished_date: Optional[datetime] = Field(default=None, alias="finishedDate")
    requested_by: Optional[DevOpsUser] = Field(default=None, alias="requestedBy")
    source_branch: Optional[str] = Field(default=None, alias="sourceBranch")
    pipeline_id: Optional[int] = None

    @property
    def started(self) -> Optional[datetime]:
        return self.start_time or self.created_date

    @property
    def finished(self) -> Optional[datetime]:
        return self.finish_time or self.finished_date

    @property
    def duration(self) -> timedelta:
        if self.started and self.finished:
            return self.finished - self.started
        return timedelta(0)

    @property
    def display_status(self) -> str:
        """Result when finished, otherwise the live status."""
        return self.result or self.status or self.state or ""

    @property
    def display_name(self) -> str:
        return self.build_number or self.name or f"#{self.id}"


class Pipeline(AzureModel):
    """A build or release pipeline definition."""

    id: int
    name: str
    path: Optional[str] = Field(default=None, alias="folder")
    repository: Optional[Repository] = None
    last_run: Optional[PipelineRun] = Field(default=None, alias="lastRun")
    type: str = "build"  # build or release
    revision: Optional[int] = None


class Subscription(AzureModel):
    """An Azure subscription from `az account list`."""

    id: str
    name: str
    state: Optional[str] = None
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    is_default: bool = Field(default=False, alias="isDefault")


class ResourceGroup(AzureModel):
    """An Azure resource group."""

    id: str = ""
    name: str
    location: Optional[str] = None
    subscription_id: Optional[str] = None
    provisioning_state: Optional[str] = None
    tags: Optional[dict[str, str]] = None

    @classmethod
    def from_az(cls, data: dict[str, Any]) -> "ResourceGroup":
        props = data.get("properties") or {}
        return cls(
            id=data.get("id", ""),
            name=data["name"],
            location=data.get("location"),
            provisioning_state=props.get("provisioningState"),
            tags=data.get("tags"),
        )


class AzureResource(AzureModel):
    """A generic Azure resource from `az resource list`."""

    id: str
    name: str
    type: str
    location: Optional[str] = None
    resource_group: Optional[str] = Field(default=None, alias="resourceGroup")
    kind: Optional[str] = None
    provisioning_state: Optional[str] = Field(default=None, alias="provisioningState")
    tags: Optional[dict[str, str]] = None


class StorageAccount(AzureModel):
    """An Azure storage account."""

    id: str = ""
    name: str
    location: Optional[str] = None
    resource_group: Optional[str] = Field(default=None, alias="resourceGroup")
    kind: Optional[str] = None
    provisioning_state: Optional[str] = Field(default=None, alias="provisioningState")
    tags: Optional[dict[str, str]] = None


class StorageContainer(AzureModel):
    """A blob container in a storage account."""

    name: str
    account_name: str = ""
    last_modified: Optional[str] = None
    public_access: Optional[str] = None

    @classmethod
    def from_az(cls, data: dict[str, Any], account_name: str) -> "StorageContainer":
        props = data.get("properties") or {}
        return cls(
            name=data["name"],
            account_name=account_name,
            last_modified=props.get("lastModified"),
            public_access=props.get("publicAccess"),
        )


class Blob(AzureModel):
    """A blob in a container."""

    name: str
    container: str = ""
    account_name: str = ""
    size: int = 0
    content_type: Optional[str] = None
    last_modified: Optional[str] = None
    blob_type: Optional[str] = None
    access_tier: Optional[str] = None

    @classmethod
    def from_az(cls, data: dict[str, Any], account_name: str, container: str) -> "Blob":
        props = data.get("properties") or {}
        settings = props.get("contentSettings") or {}
        return cls(
            name=data["name"],
            container=container,
            account_name=account_name,
            size=props.get("contentLength") or 0,
            content_type=settings.get("contentType"),
            last_modified=props.get("lastModified"),
            blob_type=props.get("blobType"),
            access_tier=props.get("blobTier"),
        )


class TerraformDirectory(AzureModel):
    """A Terraform working directory."""

    path: str

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1] or self.path


class Workspace(AzureModel):
    """A Terraform workspace inside a working directory."""

    name: str
    directory: str
    current: bool = False


# =============================================================================
# Display helpers
# =============================================================================


_STATUS_ALIASES = {
    "running": "Running",
    "inprogress": "Running",
    "succeeded": "Success",
    "success": "Success",
    "partiallysucceeded": "Partial",
    "failed": "Failed",
    "error": "Failed",
    "canceled": "Canceled",
    "cancelled": "Canceled",
    "canceling": "Canceled",
    "cancelling": "Canceled",
    "queued": "Queued",
    "pending": "Queued",
    "notstarted": "Queued",
}


def normalize_status(status: Optional[str]) -> str:
    """Map a pipeline/run status to one of a few display words."""
    if not status:
        return "Unknown"
    return _STATUS_ALIASES.get(status.strip().lower(), "Unknown")


def format_relative_time(moment: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Format a timestamp relative to now ("5m ago", "2d ago")."""
    if moment is None:
        return ""
    now = now or utcnow()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    diff = now - moment

    if diff < timedelta(minutes=1):
        return "just now"
    if diff < timedelta(hours=1):
        return f"{int(diff.total_seconds() // 60)}m ago"
    if diff < timedelta(days=1):
        return f"{int(diff.total_seconds() // 3600)}h ago"
    if diff < timedelta(days=7):
        return f"{diff.days}d ago"
    return f"{diff.days // 7}w ago"


def format_duration(duration: timedelta) -> str:
    """Format a duration as "1h 2m 3s"."""
    total = int(duration.total_seconds())
    if total <= 0:
        return "Unknown"
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"

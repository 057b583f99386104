"""Wiring of providers and actions into the four dashboard views."""

from dataclasses import dataclass, field
from typing import Optional

from azure_tui.config import VIEWS, AppConfig
from azure_tui.navigator import ActionRouter, TreeNavigator
from azure_tui.providers.azure import (
    ResourceActions,
    ResourceGroupProvider,
    ResourceProviderByGroup,
    SubscriptionRoots,
)
from azure_tui.providers.base import ProviderRegistry
from azure_tui.providers.cli import AzureCli, CliRunner
from azure_tui.providers.devops import (
    CategoryContentsProvider,
    CategoryProvider,
    DevOpsActions,
    DevOpsClient,
    OrganizationRoots,
    ProjectProvider,
    RunProvider,
)
from azure_tui.providers.storage import (
    BlobProvider,
    ContainerProvider,
    StorageAccountRoots,
    StorageActions,
)
from azure_tui.providers.terraform import (
    TerraformActions,
    TerraformDirectoryRoots,
    WorkspaceProvider,
)


VIEW_TITLES = {
    "devops": "Azure DevOps",
    "resources": "Resources",
    "storage": "Storage",
    "terraform": "Terraform",
}


@dataclass
class Tools:
    """External clients shared by the providers of a view."""

    az: AzureCli = field(default_factory=AzureCli)
    kubectl: CliRunner = field(default_factory=lambda: CliRunner("kubectl"))
    terraform: CliRunner = field(default_factory=lambda: CliRunner("terraform"))
    devops: Optional[DevOpsClient] = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "Tools":
        return cls(
            devops=DevOpsClient(
                token=config.devops.personal_access_token,
                base_url=config.devops.base_url,
                timeout=config.load_timeout,
            )
        )

    def close(self) -> None:
        if self.devops is not None:
            self.devops.close()


def build_view(
    view: str, config: AppConfig, tools: Optional[Tools] = None
) -> tuple[ProviderRegistry, ActionRouter]:
    """Build the provider registry and action router for ``view``."""
    if view not in VIEWS:
        raise ValueError(f"Unknown view '{view}'. Choose from: {', '.join(VIEWS)}")
    tools = tools or Tools.from_config(config)
    router = ActionRouter(timeout=config.action_timeout)

    if view == "devops":
        client = tools.devops or DevOpsClient(timeout=config.load_timeout)
        registry = ProviderRegistry(OrganizationRoots(client, config.devops.organization))
        registry.register(ProjectProvider(client))
        registry.register(CategoryProvider())
        registry.register(CategoryContentsProvider(client))
        registry.register(RunProvider(client))
        DevOpsActions(client).register(router)

    elif view == "resources":
        registry = ProviderRegistry(SubscriptionRoots(tools.az))
        registry.register(ResourceGroupProvider(tools.az))
        registry.register(ResourceProviderByGroup(tools.az))
        registry.register(ContainerProvider(tools.az))
        registry.register(BlobProvider(tools.az))
        ResourceActions(tools.az, tools.kubectl).register(router)
        StorageActions(tools.az).register(router)

    elif view == "storage":
        registry = ProviderRegistry(StorageAccountRoots(tools.az))
        registry.register(ContainerProvider(tools.az))
        registry.register(BlobProvider(tools.az))
        StorageActions(tools.az).register(router)

    else:
        registry = ProviderRegistry(TerraformDirectoryRoots(config.terraform_dirs))
        registry.register(WorkspaceProvider(tools.terraform))
        TerraformActions(tools.terraform).register(router)

    return registry, router


def build_navigator(
    view: str,
    config: AppConfig,
    tools: Optional[Tools] = None,
    max_visible_rows: int = 20,
) -> TreeNavigator:
    registry, router = build_view(view, config, tools)
    return TreeNavigator(
        registry,
        router,
        max_visible_rows=max_visible_rows,
        load_timeout=config.load_timeout,
    )

"""Resource providers and action executors for azure-tui."""

from .base import ProviderRegistry, ResourceProvider, RootProvider
from .cli import AzureCli, CliRunner, CommandError
from .devops import DevOpsClient, DevOpsError

__all__ = [
    "AzureCli",
    "CliRunner",
    "CommandError",
    "DevOpsClient",
    "DevOpsError",
    "ProviderRegistry",
    "ResourceProvider",
    "RootProvider",
]

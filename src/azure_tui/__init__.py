"""azure-tui - Terminal dashboard for Azure resources."""

__version__ = "0.1.0"

"""Textual dashboard for azure-tui."""

from .app import AzureTuiApp

__all__ = ["AzureTuiApp"]

"""Shared fixtures for azure-tui tests."""

import pytest

from azure_tui.models import NodeKind
from azure_tui.navigator import ActionRouter, TreeNavigator
from azure_tui.providers.base import ProviderRegistry

from tests.fakes import MappingProvider, StaticRoots, make_spec


@pytest.fixture
def org_provider() -> MappingProvider:
    """Organization 'contoso' with projects 'web' and 'api'; 'api' is forbidden."""
    return MappingProvider(
        [NodeKind.ORGANIZATION, NodeKind.PROJECT],
        {
            "org-contoso": [
                make_spec("project-web", NodeKind.PROJECT, "web"),
                make_spec("project-api", NodeKind.PROJECT, "api"),
            ],
            "project-web": [
                make_spec("build-pipelines", NodeKind.PIPELINE_CATEGORY, "Build Pipelines"),
                make_spec("release-pipelines", NodeKind.PIPELINE_CATEGORY, "Release Pipelines"),
            ],
            "project-api": PermissionError("403 Forbidden"),
        },
    )


@pytest.fixture
def org_roots() -> StaticRoots:
    return StaticRoots([make_spec("org-contoso", NodeKind.ORGANIZATION, "contoso")])


@pytest.fixture
def registry(org_roots: StaticRoots, org_provider: MappingProvider) -> ProviderRegistry:
    registry = ProviderRegistry(org_roots)
    registry.register(org_provider)
    return registry


@pytest.fixture
def router() -> ActionRouter:
    return ActionRouter(timeout=5.0)


@pytest.fixture
def navigator(registry: ProviderRegistry, router: ActionRouter) -> TreeNavigator:
    return TreeNavigator(registry, router, max_visible_rows=5, load_timeout=2.0)

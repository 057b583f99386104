"""Azure DevOps: REST client, tree providers and pipeline actions.

This module provides:
- A small Azure DevOps REST client with retry and backoff
- Providers for organizations, projects, pipeline categories and runs
- Actions to queue and cancel runs and to fetch build logs
"""

import time
from typing import Any, Optional

import httpx
import structlog

from azure_tui.models import (
    ActionResult,
    DevOpsProject,
    NodeKind,
    NodeRef,
    NodeSpec,
    Organization,
    Pipeline,
    PipelineRun,
    format_relative_time,
)
from azure_tui.providers.base import ResourceProvider, RootProvider


logger = structlog.get_logger()

API_VERSION = "7.1"
PROFILE_URL = "https://app.vssps.visualstudio.com/_apis/profile/profiles/me"
ACCOUNTS_URL = "https://app.vssps.visualstudio.com/_apis/accounts"

BUILD_PIPELINES = "build-pipelines"
RELEASE_PIPELINES = "release-pipelines"
RECENT_ACTIVITY = "recent-activity"

CATEGORIES = [
    (BUILD_PIPELINES, "Build Pipelines"),
    (RELEASE_PIPELINES, "Release Pipelines"),
    (RECENT_ACTIVITY, "Recent Activity"),
]


class DevOpsError(Exception):
    """Raised when the Azure DevOps API answers with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_response(cls, response: httpx.Response) -> "DevOpsError":
        message = f"{response.status_code} {response.reason_phrase}".strip()
        try:
            detail = response.json().get("message")
        except ValueError:
            detail = None
        if detail:
            message = f"{message}: {detail}"
        return cls(message, status_code=response.status_code)


class DevOpsClient:
    """Client for the Azure DevOps REST API using a personal access token."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://dev.azure.com",
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
    ):
        """Initialize the DevOps client.

        Args:
            token: Personal access token, sent with basic auth.
            base_url: Organization host, ``https://dev.azure.com`` by default.
            max_retries: Maximum number of retries for failed requests.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: Default time budget of one call in seconds, retries included.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                auth=("", self.token or ""),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    @property
    def release_url(self) -> str:
        """Host of the release management API."""
        if self.base_url == "https://dev.azure.com":
            return "https://vsrm.dev.azure.com"
        return self.base_url

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "DevOpsClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def deadline(self, timeout: Optional[float] = None) -> float:
        """``time.monotonic()`` value by which a call of ``timeout`` seconds must end."""
        return time.monotonic() + (timeout or self.timeout)

    def _request_with_retry(
        self, method: str, url: str, deadline: Optional[float] = None, **kwargs
    ) -> httpx.Response:
        """Make a request, retrying connection failures and 5xx responses.

        Attempts and backoff sleeps share one budget that ends at ``deadline``;
        each attempt only gets the time left, and no retry starts after it.

        Raises:
            DevOpsError: If the API answers with a 4xx/5xx status.
            httpx.TimeoutException: If the deadline passes.
            httpx.HTTPError: If the request keeps failing after retries.
        """
        params = {"api-version": API_VERSION, **kwargs.pop("params", {})}
        if deadline is None:
            deadline = self.deadline()

        for attempt in range(self.max_retries + 1):
            left = deadline - time.monotonic()
            if left <= 0:
                raise httpx.TimeoutException(f"Deadline passed before {method} {url}")
            try:
                response = self.client.request(
                    method, url, params=params, timeout=left, **kwargs
                )
                if response.status_code >= 500:
                    response.raise_for_status()
                break
            except (httpx.ConnectError, httpx.ReadTimeout, httpx.HTTPStatusError) as e:
                delay = self.retry_delay * (2 ** attempt)
                if attempt < self.max_retries and time.monotonic() + delay < deadline:
                    logger.debug("devops_retry", url=url, attempt=attempt + 1, error=str(e))
                    time.sleep(delay)
                    continue
                if isinstance(e, httpx.HTTPStatusError):
                    raise DevOpsError.from_response(e.response) from e
                raise

        if response.status_code >= 400:
            raise DevOpsError.from_response(response)
        return response

    def _values(self, url: str, **kwargs) -> list[dict[str, Any]]:
        return self._request_with_retry("GET", url, **kwargs).json().get("value", [])

    def _project_url(self, organization: str, project: str) -> str:
        return f"{self.base_url}/{organization}/{project}/_apis"

    # -- listings -------------------------------------------------------------

    def list_organizations(self, timeout: Optional[float] = None) -> list[Organization]:
        """Organizations the token's owner is a member of."""
        deadline = self.deadline(timeout)
        profile = self._request_with_retry("GET", PROFILE_URL, deadline=deadline).json()
        accounts = self._values(
            ACCOUNTS_URL, params={"memberId": profile["id"]}, deadline=deadline
        )
        return [Organization.model_validate(a) for a in accounts]

    def list_projects(
        self, organization: str, timeout: Optional[float] = None
    ) -> list[DevOpsProject]:
        url = f"{self.base_url}/{organization}/_apis/projects"
        values = self._values(url, deadline=self.deadline(timeout))
        return [DevOpsProject.model_validate(v) for v in values]

    def list_build_pipelines(
        self, organization: str, project: str, timeout: Optional[float] = None
    ) -> list[Pipeline]:
        url = f"{self._project_url(organization, project)}/pipelines"
        values = self._values(url, deadline=self.deadline(timeout))
        return [Pipeline.model_validate({**v, "type": "build"}) for v in values]

    def list_release_pipelines(
        self, organization: str, project: str, timeout: Optional[float] = None
    ) -> list[Pipeline]:
        url = f"{self.release_url}/{organization}/{project}/_apis/release/definitions"
        values = self._values(url, deadline=self.deadline(timeout))
        return [Pipeline.model_validate({**v, "type": "release"}) for v in values]

    def list_pipeline_runs(
        self,
        organization: str,
        project: str,
        pipeline_id: int,
        top: int = 10,
        timeout: Optional[float] = None,
    ) -> list[PipelineRun]:
        """Most recent runs of one pipeline, newest first."""
        url = f"{self._project_url(organization, project)}/pipelines/{pipeline_id}/runs"
        values = self._values(url, deadline=self.deadline(timeout))
        runs = [PipelineRun.model_validate({**v, "pipeline_id": pipeline_id}) for v in values]
        return runs[:top]

    def list_recent_builds(
        self,
        organization: str,
        project: str,
        top: int = 20,
        timeout: Optional[float] = None,
    ) -> list[PipelineRun]:
        """Most recent builds across every pipeline of the project."""
        url = f"{self._project_url(organization, project)}/build/builds"
        values = self._values(url, params={"$top": top}, deadline=self.deadline(timeout))
        runs = []
        for v in values:
            definition = v.get("definition") or {}
            runs.append(PipelineRun.model_validate({**v, "pipeline_id": definition.get("id")}))
        return runs

    # -- operations -----------------------------------------------------------

    def run_pipeline(
        self,
        organization: str,
        project: str,
        pipeline_id: int,
        branch: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> PipelineRun:
        """Queue a new run of a pipeline."""
        body: dict[str, Any] = {"templateParameters": {}}
        if branch:
            ref = branch if branch.startswith("refs/") else f"refs/heads/{branch}"
            body["resources"] = {"repositories": {"self": {"refName": ref}}}
        url = f"{self._project_url(organization, project)}/pipelines/{pipeline_id}/runs"
        response = self._request_with_retry(
            "POST", url, json=body, deadline=self.deadline(timeout)
        )
        return PipelineRun.model_validate({**response.json(), "pipeline_id": pipeline_id})

    def cancel_build(
        self,
        organization: str,
        project: str,
        build_id: int,
        timeout: Optional[float] = None,
    ) -> None:
        url = f"{self._project_url(organization, project)}/build/builds/{build_id}"
        self._request_with_retry(
            "PATCH", url, json={"status": "cancelling"}, deadline=self.deadline(timeout)
        )

    def get_build_logs(
        self,
        organization: str,
        project: str,
        build_id: int,
        timeout: Optional[float] = None,
    ) -> str:
        """Concatenated text of every log of a build."""
        deadline = self.deadline(timeout)
        url = f"{self._project_url(organization, project)}/build/builds/{build_id}/logs"
        parts = []
        for log in self._values(url, deadline=deadline):
            response = self._request_with_retry(
                "GET", f"{url}/{log['id']}", headers={"Accept": "text/plain"}, deadline=deadline
            )
            parts.append(response.text.rstrip())
        return "\n".join(p for p in parts if p)


# =============================================================================
# Tree providers
# =============================================================================


def _lineage_names(node: NodeRef) -> tuple[str, str]:
    """Organization and project names above ``node``."""
    organization = node.context(NodeKind.ORGANIZATION)
    project = node.context(NodeKind.PROJECT)
    if organization is None or project is None:
        raise ValueError(f"{node.label} is not inside an organization and project")
    return organization.name, project.name


def pipeline_spec(pipeline: Pipeline) -> NodeSpec:
    last_run = pipeline.last_run
    return NodeSpec(
        node_id=f"{pipeline.type}-{pipeline.id}",
        kind=NodeKind.PIPELINE,
        label=pipeline.name,
        status_text=last_run.display_status if last_run else "",
        last_activity_text=format_relative_time(last_run.started) if last_run else "",
        payload=pipeline,
    )


def run_spec(run: PipelineRun) -> NodeSpec:
    return NodeSpec(
        node_id=f"run-{run.id}",
        kind=NodeKind.RUN,
        label=run.display_name,
        status_text=run.display_status,
        last_activity_text=format_relative_time(run.started),
        payload=run,
    )


class OrganizationRoots(RootProvider):
    """The configured organization, or every organization of the token."""

    def __init__(self, client: DevOpsClient, organization: Optional[str] = None):
        self.client = client
        self.organization = organization

    def list_roots(self, timeout: float) -> list[NodeSpec]:
        if self.organization:
            organizations = [Organization(accountName=self.organization)]
        else:
            organizations = self.client.list_organizations(timeout=timeout)
        return [
            NodeSpec(
                node_id=f"org-{org.name}",
                kind=NodeKind.ORGANIZATION,
                label=org.name,
                payload=org,
            )
            for org in organizations
        ]


class ProjectProvider(ResourceProvider):
    """Projects of an organization."""

    expands = (NodeKind.ORGANIZATION,)

    def __init__(self, client: DevOpsClient):
        self.client = client

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        projects = self.client.list_projects(node.payload.name, timeout=timeout)
        return [
            NodeSpec(
                node_id=f"project-{p.id}",
                kind=NodeKind.PROJECT,
                label=p.name,
                status_text=p.state or "",
                last_activity_text=format_relative_time(p.last_update_time),
                payload=p,
            )
            for p in projects
        ]


class CategoryProvider(ResourceProvider):
    """The fixed pipeline categories under each project."""

    expands = (NodeKind.PROJECT,)

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        return [
            NodeSpec(node_id=key, kind=NodeKind.PIPELINE_CATEGORY, label=label, payload=key)
            for key, label in CATEGORIES
        ]


class CategoryContentsProvider(ResourceProvider):
    """Pipelines or recent runs, depending on the category."""

    expands = (NodeKind.PIPELINE_CATEGORY,)

    def __init__(self, client: DevOpsClient, recent_count: int = 20):
        self.client = client
        self.recent_count = recent_count

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        organization, project = _lineage_names(node)
        if node.payload == BUILD_PIPELINES:
            pipelines = self.client.list_build_pipelines(organization, project, timeout=timeout)
            return [pipeline_spec(p) for p in pipelines]
        if node.payload == RELEASE_PIPELINES:
            pipelines = self.client.list_release_pipelines(organization, project, timeout=timeout)
            return [pipeline_spec(p) for p in pipelines]
        if node.payload == RECENT_ACTIVITY:
            runs = self.client.list_recent_builds(
                organization, project, top=self.recent_count, timeout=timeout
            )
            return [run_spec(r) for r in runs]
        raise ValueError(f"Unknown pipeline category: {node.payload}")


class RunProvider(ResourceProvider):
    """Recent runs of a build pipeline."""

    expands = (NodeKind.PIPELINE,)

    def __init__(self, client: DevOpsClient, run_count: int = 10):
        self.client = client
        self.run_count = run_count

    def list_children(self, node: NodeRef, timeout: float) -> list[NodeSpec]:
        pipeline: Pipeline = node.payload
        if pipeline.type != "build":
            return []
        organization, project = _lineage_names(node)
        runs = self.client.list_pipeline_runs(
            organization, project, pipeline.id, top=self.run_count, timeout=timeout
        )
        return [run_spec(r) for r in runs]


# =============================================================================
# Actions
# =============================================================================


class DevOpsActions:
    """Pipeline and run actions bound to one client."""

    def __init__(self, client: DevOpsClient):
        self.client = client

    def run_pipeline(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        organization, project = _lineage_names(node)
        pipeline: Pipeline = node.payload
        if pipeline.type != "build":
            return ActionResult.failed("Only build pipelines can be queued")
        run = self.client.run_pipeline(
            organization, project, pipeline.id, branch=params.get("branch"), timeout=timeout
        )
        return ActionResult(
            success=True,
            message=f"Pipeline '{pipeline.name}' queued as run {run.display_name}",
        )

    def cancel_run(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        organization, project = _lineage_names(node)
        run: PipelineRun = node.payload
        self.client.cancel_build(organization, project, run.id, timeout=timeout)
        return ActionResult(success=True, message=f"Cancel requested for run {run.display_name}")

    def run_logs(self, node, resource_group, params, timeout=30.0) -> ActionResult:
        organization, project = _lineage_names(node)
        run: PipelineRun = node.payload
        logs = self.client.get_build_logs(organization, project, run.id, timeout=timeout)
        return ActionResult(
            success=True, message=f"Logs for run {run.display_name}", output=logs
        )

    def register(self, router) -> None:
        router.register(
            NodeKind.PIPELINE, "run", self.run_pipeline,
            key="R", description="Queue a new run", defaults={"branch": ""},
        )
        router.register(
            NodeKind.RUN, "cancel", self.cancel_run,
            key="c", description="Cancel the run", destructive=True,
        )
        router.register(
            NodeKind.RUN, "logs", self.run_logs,
            key="l", description="Show build logs",
        )

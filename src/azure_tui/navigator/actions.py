"""Table-driven routing of (node kind, action name) to an executor."""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import structlog

from azure_tui.config import DEFAULT_ACTION_TIMEOUT
from azure_tui.models import ActionResult, NodeKind, NodeRef
from azure_tui.navigator.loader import describe_error


logger = structlog.get_logger()

UNSUPPORTED = "unsupported action"


@dataclass
class ActionSpec:
    """One entry in the action table."""

    kind: NodeKind
    name: str
    handler: Callable[..., ActionResult]
    key: Optional[str] = None
    description: str = ""
    required_params: tuple[str, ...] = ()
    defaults: dict[str, str] = field(default_factory=dict)
    destructive: bool = False


@dataclass(frozen=True)
class ActionRequest:
    """A validated action, ready to run off the UI loop."""

    spec: ActionSpec
    node: NodeRef
    resource_group: Optional[str]
    params: dict[str, str]
    generation: int = 0

    @property
    def label(self) -> str:
        return f"{self.spec.name} {self.node.label}"


class ActionRouter:
    """Registry of actions keyed by exact (kind, name)."""

    def __init__(self, timeout: float = DEFAULT_ACTION_TIMEOUT) -> None:
        self.timeout = timeout
        self._actions: dict[tuple[NodeKind, str], ActionSpec] = {}
        self._order: dict[NodeKind, list[str]] = {}

    def register(
        self,
        kind: NodeKind,
        name: str,
        handler: Callable[..., ActionResult],
        *,
        key: Optional[str] = None,
        description: str = "",
        required_params: tuple[str, ...] = (),
        defaults: Optional[dict[str, str]] = None,
        destructive: bool = False,
    ) -> ActionSpec:
        """Register ``handler`` for ``name`` on nodes of ``kind``."""
        spec = ActionSpec(
            kind=kind,
            name=name,
            handler=handler,
            key=key,
            description=description,
            required_params=tuple(required_params),
            defaults=dict(defaults or {}),
            destructive=destructive,
        )
        if (kind, name) not in self._actions:
            self._order.setdefault(kind, []).append(name)
        self._actions[(kind, name)] = spec
        return spec

    def get(self, kind: NodeKind, name: str) -> Optional[ActionSpec]:
        return self._actions.get((kind, name))

    def available_actions(self, kind: NodeKind) -> list[str]:
        """Action names for ``kind`` in registration order."""
        return list(self._order.get(kind, []))

    def specs_for(self, kind: NodeKind) -> list[ActionSpec]:
        return [self._actions[(kind, name)] for name in self._order.get(kind, [])]

    def action_for_key(self, kind: NodeKind, key: str) -> Optional[ActionSpec]:
        for spec in self.specs_for(kind):
            if spec.key == key:
                return spec
        return None

    def missing_params(self, spec: ActionSpec, params: dict[str, str]) -> list[str]:
        merged = {**spec.defaults, **params}
        return [name for name in spec.required_params if not merged.get(name)]

    def prepare(
        self,
        node: NodeRef,
        action: str,
        params: Optional[dict[str, Any]] = None,
        resource_group: Optional[str] = None,
        generation: int = 0,
    ) -> Union[ActionRequest, ActionResult]:
        """Validate an action without touching the outside world.

        Returns an ActionRequest, or a failed ActionResult when the pair is
        not registered or a required parameter is missing.
        """
        spec = self.get(node.kind, action)
        if spec is None:
            logger.debug("unsupported_action", kind=node.kind.value, action=action)
            return ActionResult.failed(UNSUPPORTED)

        given = {k: str(v) for k, v in (params or {}).items() if v is not None}
        missing = self.missing_params(spec, given)
        if missing:
            return ActionResult.failed(f"Missing required parameter: {', '.join(missing)}")

        return ActionRequest(
            spec=spec,
            node=node,
            resource_group=resource_group if resource_group is not None else node.resource_group,
            params={**spec.defaults, **given},
            generation=generation,
        )

    def execute(self, request: ActionRequest) -> ActionResult:
        """Run a prepared action. Never raises."""
        logger.info(
            "action_started",
            kind=request.spec.kind.value,
            action=request.spec.name,
            node=request.node.node_id,
        )
        try:
            result = request.spec.handler(
                request.node, request.resource_group, request.params, timeout=self.timeout
            )
        except Exception as e:
            message = describe_error(e, self.timeout)
            logger.warning("action_failed", action=request.spec.name, error=message)
            return ActionResult.failed(f"{request.spec.name} failed: {message}")

        logger.info("action_finished", action=request.spec.name, success=result.success)
        return result

    def dispatch(
        self,
        node: NodeRef,
        action: str,
        params: Optional[dict[str, Any]] = None,
        resource_group: Optional[str] = None,
    ) -> ActionResult:
        """Validate and run an action on the calling thread."""
        prepared = self.prepare(node, action, params, resource_group)
        if isinstance(prepared, ActionResult):
            return prepared
        return self.execute(prepared)

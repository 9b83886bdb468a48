"""Waiting for Gateway API resources in a cluster to reach expected states."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from gatewaycheck.apply import Client

log = logging.getLogger(__name__)

# API group of the Gateway API resources.
GATEWAY_GROUP = "gateway.networking.k8s.io"
# Time between checks while polling.
POLL_INTERVAL = 1.0

_IP_ADDRESS_TYPE = "IPAddress"
_POD_SUCCEEDED = "Succeeded"


class WaitTimeoutError(TimeoutError):
    """A condition was not met before the timeout."""


@dataclass(frozen=True)
class NamespacedName:
    """Namespace and name that identify an object."""

    namespace: str = ""
    name: str = ""

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Condition:
    """A status condition of a resource."""

    type: str
    status: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        """Build a condition from its serialized form."""
        return cls(type=str(data.get("type", "")), status=str(data.get("status", "")))


@dataclass(frozen=True)
class ParentReference:
    """Reference from a Route to the parent it attaches to."""

    name: str
    group: str | None = None
    kind: str | None = None
    namespace: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParentReference:
        """Build a parent reference from its serialized form."""
        return cls(
            name=str(data.get("name", "")),
            group=data.get("group"),
            kind=data.get("kind"),
            namespace=data.get("namespace"),
        )


@dataclass(frozen=True)
class RouteParentStatus:
    """Status of a Route with respect to one of its parents."""

    parent_ref: ParentReference
    controller_name: str
    conditions: list[Condition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RouteParentStatus:
        """Build a route parent status from its serialized form."""
        return cls(
            parent_ref=ParentReference.from_dict(data.get("parentRef") or {}),
            controller_name=str(data.get("controllerName", "")),
            conditions=_conditions(data.get("conditions")),
        )


def _conditions(raw: Iterable[dict[str, Any]] | None) -> list[Condition]:
    return [Condition.from_dict(item) for item in raw or []]


def _status(obj: dict[str, Any]) -> dict[str, Any]:
    status = obj.get("status")
    return status if isinstance(status, dict) else {}


def _name(obj: dict[str, Any]) -> str:
    metadata = obj.get("metadata")
    if isinstance(metadata, dict):
        return str(metadata.get("name", ""))
    return ""


def poll_immediate(
    interval: float, timeout: float, condition: Callable[[], bool]
) -> None:
    """Check the condition now and then every interval until it holds.

    Exceptions from the condition stop polling and propagate.
    """
    deadline = time.monotonic() + timeout
    while True:
        if condition():
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WaitTimeoutError("timed out waiting for the condition")
        time.sleep(min(interval, remaining))


def gwc_must_be_accepted(client: Client, gateway_class_name: str, seconds: float) -> str:
    """Wait until the GatewayClass is Accepted and return its controller name."""
    controller_name = ""

    def accepted() -> bool:
        nonlocal controller_name
        gwc = client.get("GatewayClass", "", gateway_class_name)
        spec = gwc.get("spec") or {}
        controller_name = str(spec.get("controllerName", ""))
        return find_condition_in_list(
            _conditions(_status(gwc).get("conditions")), "Accepted", "True"
        )

    try:
        poll_immediate(POLL_INTERVAL, seconds, accepted)
    except WaitTimeoutError as exc:
        raise WaitTimeoutError(
            f"error waiting for {gateway_class_name} GatewayClass to have "
            f"Accepted condition set to True: {exc}"
        ) from exc
    return controller_name


def namespaces_must_be_ready(
    client: Client, namespaces: Sequence[str], seconds: float
) -> None:
    """Wait until every Gateway and Pod in the namespaces is ready."""
    joined = ", ".join(namespaces)

    def ready() -> bool:
        for ns in namespaces:
            for gw in client.list("Gateway", ns):
                conditions = _conditions(_status(gw).get("conditions"))
                if not find_condition_in_list(conditions, "Ready", "True"):
                    log.info("%s/%s Gateway not ready yet", ns, _name(gw))
                    return False
            for pod in client.list("Pod", ns):
                status = _status(pod)
                conditions = _conditions(status.get("conditions"))
                if (
                    not find_condition_in_list(conditions, "Ready", "True")
                    and status.get("phase") != _POD_SUCCEEDED
                ):
                    log.info("%s/%s Pod not ready yet", ns, _name(pod))
                    return False
        log.info("Gateways and Pods in %s namespaces ready", joined)
        return True

    try:
        poll_immediate(POLL_INTERVAL, seconds, ready)
    except WaitTimeoutError as exc:
        raise WaitTimeoutError(
            f"error waiting for {joined} namespaces to be ready"
        ) from exc


def gateway_and_http_routes_must_be_ready(
    client: Client,
    controller_name: str,
    gateway: NamespacedName,
    *args: NamespacedName,
) -> str:
    """Wait for the Gateway's address and for each route in args to attach to it.

    Returns the Gateway address as host:port.
    """
    address = wait_for_gateway_address(client, gateway, 180)
    for route in args:
        namespace_required = route.namespace != gateway.namespace
        parents = [
            RouteParentStatus(
                parent_ref=ParentReference(
                    name=gateway.name,
                    group=GATEWAY_GROUP,
                    kind="Gateway",
                    namespace=gateway.namespace,
                ),
                controller_name=controller_name,
                conditions=[Condition(type="Accepted", status="True")],
            )
        ]
        http_route_must_have_parents(client, route, parents, namespace_required, 60)
    return address


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def wait_for_gateway_address(
    client: Client, gateway: NamespacedName, seconds: float
) -> str:
    """Wait until the Gateway has an IP address in status; return host:port."""
    ip_address = ""
    port = ""

    def has_address() -> bool:
        nonlocal ip_address, port
        gw = client.get("Gateway", gateway.namespace, gateway.name)
        listeners = (gw.get("spec") or {}).get("listeners") or []
        if not listeners:
            raise ValueError(f"Gateway {gateway} has no listeners")
        port = str(int(listeners[0].get("port", 0)))
        for address in _status(gw).get("addresses") or []:
            if address.get("type") == _IP_ADDRESS_TYPE:
                ip_address = str(address.get("value", ""))
                return True
        return False

    try:
        poll_immediate(POLL_INTERVAL, seconds, has_address)
    except WaitTimeoutError as exc:
        raise WaitTimeoutError(
            "error waiting for Gateway to have at least one IP address in status"
        ) from exc
    return _join_host_port(ip_address, port)


def http_route_must_have_parents(
    client: Client,
    route: NamespacedName,
    parents: Sequence[RouteParentStatus],
    namespace_required: bool,
    seconds: float,
) -> list[RouteParentStatus]:
    """Wait until the HTTPRoute's status parents match; return them."""
    actual: list[RouteParentStatus] = []

    def matches() -> bool:
        nonlocal actual
        obj = client.get("HTTPRoute", route.namespace, route.name)
        actual = [
            RouteParentStatus.from_dict(item)
            for item in _status(obj).get("parents") or []
        ]
        return parents_match(parents, actual, namespace_required)

    try:
        poll_immediate(POLL_INTERVAL, seconds, matches)
    except WaitTimeoutError as exc:
        raise WaitTimeoutError(
            "error waiting for HTTPRoute to have parents matching expectations"
        ) from exc
    return actual


def parents_match(
    expected: Sequence[RouteParentStatus],
    actual: Sequence[RouteParentStatus],
    namespace_required: bool,
) -> bool:
    """Whether actual route parents meet the expected ones, in order."""
    if len(expected) != len(actual):
        log.info("Expected %d Route parents, got %d", len(expected), len(actual))
        return False

    for e_parent, a_parent in zip(expected, actual):
        e_ref, a_ref = e_parent.parent_ref, a_parent.parent_ref
        if a_parent.controller_name != e_parent.controller_name:
            log.info("ControllerName doesn't match")
            return False
        if a_ref.group != e_ref.group:
            log.info(
                "Expected ParentReference.Group to be %s, got %s", e_ref.group, a_ref.group
            )
            return False
        if a_ref.kind != e_ref.kind:
            log.info(
                "Expected ParentReference.Kind to be %s, got %s", e_ref.kind, a_ref.kind
            )
            return False
        if a_ref.name != e_ref.name:
            log.info("ParentReference.Name doesn't match")
            return False
        if a_ref.namespace != e_ref.namespace and (
            namespace_required or a_ref.namespace is not None
        ):
            log.info(
                "Expected ParentReference.Namespace to be %s, got %s",
                e_ref.namespace,
                a_ref.namespace,
            )
            return False
        if len(a_parent.conditions) < len(e_parent.conditions):
            log.info("Expected more conditions to be present")
            return False
        for condition in e_parent.conditions:
            if not find_condition_in_list(
                a_parent.conditions, condition.type, condition.status
            ):
                return False

    log.info("Route parents matched expectations")
    return True


def find_condition_in_list(
    conditions: Iterable[Condition], name: str, value: str
) -> bool:
    """Whether a condition of the given type has the given status."""
    for condition in conditions:
        if condition.type == name:
            if condition.status == value:
                return True
            log.info("%s condition set to %s, expected %s", name, condition.status, value)
    log.info("%s was not in conditions list", name)
    return False
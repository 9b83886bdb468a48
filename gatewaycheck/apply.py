"""Preparing manifests and applying them to a cluster."""

from __future__ import annotations

import logging
import urllib.request
from abc import ABC, abstractmethod
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import yaml

log = logging.getLogger(__name__)

# Directory holding the bundled "base/" and "tests/" manifests.
DEFAULT_MANIFEST_ROOT = Path(__file__).resolve().parent / "manifests"

_FETCH_TIMEOUT = 10.0


class NotFoundError(LookupError):
    """The requested object does not exist in the cluster."""


class ManifestError(ValueError):
    """A manifest could not be read or prepared."""


class Client(ABC):
    """Access to the objects stored in a cluster."""

    @abstractmethod
    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Return the object, or raise NotFoundError if it does not exist."""

    @abstractmethod
    def list(self, kind: str, namespace: str) -> list[dict[str, Any]]:
        """Return every object of the kind in the namespace."""

    @abstractmethod
    def create(self, obj: dict[str, Any]) -> None:
        """Create the object."""

    @abstractmethod
    def update(self, obj: dict[str, Any]) -> None:
        """Replace an existing object."""

    @abstractmethod
    def delete(self, obj: dict[str, Any]) -> None:
        """Delete the object."""


def _kind(obj: dict[str, Any]) -> str:
    kind = obj.get("kind")
    return kind if isinstance(kind, str) else ""


def _metadata_value(obj: dict[str, Any], key: str) -> str:
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return ""
    value = metadata.get(key)
    return value if isinstance(value, str) else ""


def _group(obj: dict[str, Any]) -> str:
    api_version = obj.get("apiVersion")
    if not isinstance(api_version, str) or "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]


def _set_resource_version(obj: dict[str, Any], version: str) -> None:
    metadata = obj.get("metadata")
    if not version:
        if isinstance(metadata, dict):
            metadata.pop("resourceVersion", None)
        return
    if not isinstance(metadata, dict):
        metadata = obj["metadata"] = {}
    metadata["resourceVersion"] = version


def _prepare_gateway(
    obj: dict[str, Any],
    gateway_class_name: str,
    ports: Sequence[int],
    port_index: int,
) -> int:
    """Set the class name and listener ports; return the next unused port index."""
    name = _metadata_value(obj, "name")
    spec = obj.setdefault("spec", {})
    if not isinstance(spec, dict):
        raise ManifestError(
            f"error setting `spec.gatewayClassName` on {name} Gateway resource"
        )
    spec["gatewayClassName"] = gateway_class_name

    if ports:
        listeners = spec.get("listeners")
        if listeners is None:
            listeners = []
        elif not isinstance(listeners, list):
            raise ManifestError(f"error getting `spec.listeners` on {name} Gateway resource")
        for i, listener in enumerate(listeners):
            if port_index >= len(ports):
                raise ManifestError(
                    f"not enough unassigned valid ports for `spec.listeners[{i}]` "
                    f"on {name} Gateway resource"
                )
            if not isinstance(listener, dict):
                raise ManifestError(
                    f"unexpected type at `spec.listeners[{i}]` on {name} Gateway resource"
                )
            listener["port"] = int(ports[port_index])
            port_index += 1
        spec["listeners"] = listeners

    return port_index


def _prepare_namespace(obj: dict[str, Any], namespace_labels: dict[str, str]) -> None:
    """Merge the configured labels into a Namespace's labels."""
    name = _metadata_value(obj, "name")
    metadata = obj.get("metadata")
    labels: dict[str, str] | None = None
    if metadata is not None:
        if not isinstance(metadata, dict):
            raise ManifestError(f"error getting labels on Namespace {name}")
        raw = metadata.get("labels")
        if raw is not None:
            if not isinstance(raw, dict) or not all(
                isinstance(value, str) for value in raw.values()
            ):
                raise ManifestError(f"error getting labels on Namespace {name}")
            labels = dict(raw)

    if namespace_labels:
        labels = {**(labels or {}), **namespace_labels}

    if labels is not None:
        if not isinstance(metadata, dict):
            metadata = obj["metadata"] = {}
        metadata["labels"] = labels


def get_contents_from_path_or_url(
    location: str, manifest_root: str | Path = DEFAULT_MANIFEST_ROOT
) -> bytes:
    """Read manifests from an https:// URL or from a path under the manifest root.

    Plain http:// is refused.
    """
    if location.startswith("http://"):
        raise ManifestError(
            f"data can't be retrieved from {location}: http is not supported, use https"
        )
    if location.startswith("https://"):
        request = urllib.request.Request(location, method="GET")
        with urllib.request.urlopen(request, timeout=_FETCH_TIMEOUT) as response:
            data = response.read()
            length = response.headers.get("Content-Length")
        if length is not None and int(length) != len(data):
            raise ManifestError(
                f"received {len(data)} bytes from {location}, expected {length}"
            )
        return data

    parts = location.split("/")
    if any(part in ("", ".", "..") for part in parts):
        raise ManifestError(f"open {location}: invalid argument")
    return Path(manifest_root).joinpath(*parts).read_bytes()


@dataclass
class Applier:
    """Prepares manifests according to its options and applies them to a cluster.

    valid_unique_listener_ports gives, in order, one port for each listener of
    each Gateway in a set of manifests. If empty, ports are left unchanged.
    """

    namespace_labels: dict[str, str] | None = None
    valid_unique_listener_ports: Sequence[int] | None = None
    manifest_root: Path = field(default=DEFAULT_MANIFEST_ROOT)

    def prepare_resources(
        self, manifests: str | bytes, gateway_class_name: str
    ) -> list[dict[str, Any]]:
        """Parse YAML manifests and adjust Gateways and Namespaces."""
        try:
            documents = list(yaml.safe_load_all(manifests))
        except yaml.YAMLError as exc:
            raise ManifestError(f"error parsing manifest: {exc}") from exc

        ports = list(self.valid_unique_listener_ports or [])
        labels = self.namespace_labels or {}
        resources: list[dict[str, Any]] = []
        port_index = 0
        for document in documents:
            if document is None:
                continue
            if not isinstance(document, dict):
                raise ManifestError(
                    f"error parsing manifest: expected an object, got {type(document).__name__}"
                )
            if not document:
                continue
            kind = _kind(document)
            if kind == "Gateway":
                port_index = _prepare_gateway(
                    document, gateway_class_name, ports, port_index
                )
            if kind == "Namespace" and _group(document) == "":
                _prepare_namespace(document, labels)
            resources.append(document)
        return resources

    def must_apply_with_cleanup(
        self,
        client: Client,
        location: str,
        gateway_class_name: str,
        cleanup: bool,
        stack: ExitStack,
    ) -> None:
        """Create or update the resources in the manifests at location.

        When cleanup is set, deletion of each resource is registered on the
        stack. Resources that already existed are updated, not recreated.
        """
        data = get_contents_from_path_or_url(location, self.manifest_root)
        try:
            resources = self.prepare_resources(data, gateway_class_name)
        except ManifestError:
            log.info("manifest: %s", data.decode("utf-8", errors="replace"))
            raise

        for obj in resources:
            name = _metadata_value(obj, "name")
            kind = _kind(obj)
            try:
                fetched = client.get(kind, _metadata_value(obj, "namespace"), name)
            except NotFoundError:
                log.info("Creating %s %s", name, kind)
                client.create(obj)
                if cleanup:
                    stack.callback(_delete, client, obj)
                continue

            _set_resource_version(obj, _metadata_value(fetched, "resourceVersion"))
            log.info("Updating %s %s", name, kind)
            try:
                client.update(obj)
            finally:
                if cleanup:
                    stack.callback(_delete, client, obj)


def _delete(client: Client, obj: dict[str, Any]) -> None:
    log.info("Deleting %s %s", _metadata_value(obj, "name"), _kind(obj))
    client.delete(obj)
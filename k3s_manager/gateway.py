"""
Read and write access to the cluster.

Everything the rest of the package knows about the orchestrator goes through
the `Gateway` protocol. Two implementations exist:

- KubernetesGateway talks to a live API server through the official client
- SnapshotGateway reads `kubectl get -o json` dumps from a directory
"""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import urllib3
from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.client import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ConflictError, ResourceNotFoundError

from k3s_manager.config import Config
from k3s_manager.errors import ApplyError, ConfigError, FetchError
from k3s_manager.model import (
    DeploymentSnapshot,
    ManifestDocument,
    NodeSnapshot,
    PodSnapshot,
    deployment_from_dict,
    get_name,
    get_namespace,
    load_json,
    node_from_dict,
    normalize_items,
    pod_from_dict,
)

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    def list_nodes(self) -> list[NodeSnapshot]: ...

    def list_pods(
        self, namespace: Optional[str] = None, label_selector: Optional[str] = None
    ) -> list[PodSnapshot]: ...

    def list_namespaces(self) -> list[str]: ...

    def get_deployment(self, name: str, namespace: str) -> DeploymentSnapshot: ...

    def list_deployments(self, namespace: str) -> list[DeploymentSnapshot]: ...

    def get_server_version(self) -> dict[str, Any]: ...

    def get_api_endpoint(self) -> str: ...

    def apply(self, document: ManifestDocument) -> None: ...


# ----------------------------
# Label selectors
# ----------------------------


def parse_label_selector(selector: Optional[str]) -> list[tuple[str, str, str]]:
    """
    Parse an equality-based selector into (key, op, value) requirements.

    Supported: `k=v`, `k==v`, `k!=v`, `k` (exists), `!k` (absent).
    """
    requirements: list[tuple[str, str, str]] = []
    if not selector:
        return requirements

    for term in selector.split(","):
        term = term.strip()
        if not term:
            continue
        if "(" in term or " in " in term or " notin " in term:
            raise ValueError(f"set-based selector not supported: {selector}")
        if "!=" in term:
            key, value = term.split("!=", 1)
            requirements.append((key.strip(), "!=", value.strip()))
        elif "==" in term:
            key, value = term.split("==", 1)
            requirements.append((key.strip(), "=", value.strip()))
        elif "=" in term:
            key, value = term.split("=", 1)
            requirements.append((key.strip(), "=", value.strip()))
        elif term.startswith("!"):
            requirements.append((term[1:].strip(), "!", ""))
        else:
            requirements.append((term, "exists", ""))
    return requirements


def matches_selector(
    labels: dict[str, str], requirements: list[tuple[str, str, str]]
) -> bool:
    for key, op, value in requirements:
        if op == "=" and labels.get(key) != value:
            return False
        if op == "!=" and labels.get(key) == value:
            return False
        if op == "exists" and key not in labels:
            return False
        if op == "!" and key in labels:
            return False
    return True


# ----------------------------
# Live cluster
# ----------------------------


@dataclass(frozen=True)
class KubernetesClientSet:
    api: client.ApiClient
    core: client.CoreV1Api
    apps: client.AppsV1Api
    version: client.VersionApi


def load_clients(cfg: Config) -> KubernetesClientSet:
    """
    Build API clients from an explicit Config.

    With no kubeconfig or context configured, in-cluster credentials are
    tried first and the default kubeconfig is the fallback.
    """
    configuration = client.Configuration()

    try:
        if cfg.kubeconfig or cfg.context:
            kube_config.load_kube_config(
                config_file=cfg.kubeconfig,
                context=cfg.context,
                client_configuration=configuration,
            )
        else:
            try:
                kube_config.load_incluster_config(client_configuration=configuration)
            except ConfigException:
                kube_config.load_kube_config(client_configuration=configuration)
    except (ConfigException, OSError) as exc:
        raise ConfigError(f"failed to create kubernetes config: {exc}") from exc

    api = client.ApiClient(configuration)
    return KubernetesClientSet(
        api=api,
        core=client.CoreV1Api(api),
        apps=client.AppsV1Api(api),
        version=client.VersionApi(api),
    )


class KubernetesGateway:
    """
    Gateway backed by the Kubernetes API.

    API objects are serialized to plain JSON dicts first, so live data and
    snapshot files go through the same conversion functions.
    """

    def __init__(self, clients: KubernetesClientSet):
        self._clients = clients
        self._dynamic: Optional[DynamicClient] = None

    @classmethod
    def from_config(cls, cfg: Config) -> "KubernetesGateway":
        return cls(load_clients(cfg))

    def _fetch(self, operation: str, fn: Callable[..., Any], **kwargs) -> Any:
        logger.debug("%s %s", operation, kwargs or "")
        try:
            result = fn(**kwargs)
        except ApiException as exc:
            raise FetchError(operation, f"{exc.status} {exc.reason}") from exc
        except (urllib3.exceptions.HTTPError, OSError) as exc:
            raise FetchError(operation, str(exc)) from exc
        return self._clients.api.sanitize_for_serialization(result)

    def list_nodes(self) -> list[NodeSnapshot]:
        data = self._fetch("list_nodes", self._clients.core.list_node)
        return [node_from_dict(n) for n in normalize_items(data)]

    def list_pods(
        self, namespace: Optional[str] = None, label_selector: Optional[str] = None
    ) -> list[PodSnapshot]:
        kwargs = {"label_selector": label_selector} if label_selector else {}
        if namespace:
            data = self._fetch(
                "list_pods",
                self._clients.core.list_namespaced_pod,
                namespace=namespace,
                **kwargs,
            )
        else:
            data = self._fetch(
                "list_pods", self._clients.core.list_pod_for_all_namespaces, **kwargs
            )
        return [pod_from_dict(p) for p in normalize_items(data)]

    def list_namespaces(self) -> list[str]:
        data = self._fetch("list_namespaces", self._clients.core.list_namespace)
        return [get_name(ns) for ns in normalize_items(data)]

    def get_deployment(self, name: str, namespace: str) -> DeploymentSnapshot:
        data = self._fetch(
            "get_deployment",
            self._clients.apps.read_namespaced_deployment,
            name=name,
            namespace=namespace,
        )
        return deployment_from_dict(data)

    def list_deployments(self, namespace: str) -> list[DeploymentSnapshot]:
        data = self._fetch(
            "list_deployments",
            self._clients.apps.list_namespaced_deployment,
            namespace=namespace,
        )
        return [deployment_from_dict(d) for d in normalize_items(data)]

    def get_server_version(self) -> dict[str, Any]:
        return self._fetch("get_server_version", self._clients.version.get_code)

    def get_api_endpoint(self) -> str:
        return self._clients.api.configuration.host

    @property
    def dynamic(self) -> DynamicClient:
        # Construction runs API discovery; built on first apply
        if self._dynamic is None:
            self._dynamic = DynamicClient(self._clients.api)
        return self._dynamic

    def apply(self, document: ManifestDocument) -> None:
        """
        Create the resource, or merge-patch it when it already exists.
        """
        body = document.to_dict()
        try:
            resource = self.dynamic.resources.get(
                api_version=document.api_version, kind=document.kind
            )
            namespace = document.namespace if resource.namespaced else None
            try:
                self.dynamic.create(resource, body=body, namespace=namespace)
                logger.debug("created %s", document.ref)
            except ConflictError:
                self.dynamic.patch(
                    resource,
                    body=body,
                    name=document.name,
                    namespace=namespace,
                    content_type="application/merge-patch+json",
                )
                logger.debug("patched %s", document.ref)
        except ResourceNotFoundError as exc:
            raise ApplyError(
                document.ref,
                f"unknown resource type {document.api_version} {document.kind}",
            ) from exc
        except ApiException as exc:
            raise ApplyError(document.ref, f"{exc.status} {exc.reason}") from exc
        except (urllib3.exceptions.HTTPError, OSError) as exc:
            raise ApplyError(document.ref, str(exc)) from exc


# ----------------------------
# Offline snapshots
# ----------------------------


class SnapshotGateway:
    """
    Read-only gateway over a directory of `kubectl get -o json` dumps:

        nodes.json  pods.json  namespaces.json  deployments.json  version.json

    Missing files read as empty lists. Writes are refused.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _read(self, operation: str, filename: str) -> Any:
        path = os.path.join(self.directory, filename)
        if not os.path.exists(path):
            logger.debug("%s: %s not present, treating as empty", operation, path)
            return None
        try:
            return load_json(path)
        except (OSError, ValueError) as exc:
            raise FetchError(operation, f"{path}: {exc}") from exc

    def _items(self, operation: str, filename: str) -> list[dict[str, Any]]:
        return normalize_items(self._read(operation, filename))

    def list_nodes(self) -> list[NodeSnapshot]:
        return [node_from_dict(n) for n in self._items("list_nodes", "nodes.json")]

    def list_pods(
        self, namespace: Optional[str] = None, label_selector: Optional[str] = None
    ) -> list[PodSnapshot]:
        try:
            requirements = parse_label_selector(label_selector)
        except ValueError as exc:
            raise FetchError("list_pods", str(exc)) from exc

        pods = []
        for pod in self._items("list_pods", "pods.json"):
            if namespace and get_namespace(pod) != namespace:
                continue
            labels = pod.get("metadata", {}).get("labels") or {}
            if matches_selector(labels, requirements):
                pods.append(pod_from_dict(pod))
        return pods

    def list_namespaces(self) -> list[str]:
        return [get_name(ns) for ns in self._items("list_namespaces", "namespaces.json")]

    def get_deployment(self, name: str, namespace: str) -> DeploymentSnapshot:
        for deploy in self._items("get_deployment", "deployments.json"):
            if get_name(deploy) == name and get_namespace(deploy) == namespace:
                return deployment_from_dict(deploy)
        raise FetchError(
            "get_deployment", f"deployment {namespace}/{name} not found"
        )

    def list_deployments(self, namespace: str) -> list[DeploymentSnapshot]:
        return [
            deployment_from_dict(d)
            for d in self._items("list_deployments", "deployments.json")
            if not namespace or get_namespace(d) == namespace
        ]

    def get_server_version(self) -> dict[str, Any]:
        data = self._read("get_server_version", "version.json") or {}
        # `kubectl version -o json` nests the server half
        return data.get("serverVersion", data)

    def get_api_endpoint(self) -> str:
        return f"snapshot://{os.path.abspath(self.directory)}"

    def apply(self, document: ManifestDocument) -> None:
        raise ApplyError(document.ref, "snapshot gateway is read-only")


def build_gateway(cfg: Config) -> Gateway:
    if cfg.snapshot_dir:
        return SnapshotGateway(cfg.snapshot_dir)
    return KubernetesGateway.from_config(cfg)

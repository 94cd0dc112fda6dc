import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

# ----------------------------
# Parsing utilities
# ----------------------------


def load_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def normalize_items(data: Any) -> list[dict[str, Any]]:
    """
    Accepts a bare list, a `kind: List` envelope (what `kubectl get -o json`
    prints) or a single object, and returns a list of objects.
    """
    if not data:
        return []
    if isinstance(data, list):
        return data
    if "items" in data:
        return data.get("items") or []
    return [data]


def get_name(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "<unknown>")


def get_namespace(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("namespace") or ""


def parse_time(ts: Optional[str]) -> Optional[datetime]:
    if not ts:
        return None
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def _format_time(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


# ----------------------------
# Snapshots
# ----------------------------


@dataclass(frozen=True)
class Condition:
    type: str
    status: str
    reason: str = ""


@dataclass(frozen=True)
class NodeSnapshot:
    name: str
    conditions: tuple[Condition, ...] = ()
    labels: dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class PodSnapshot:
    name: str
    namespace: str
    phase: str
    container_ready: tuple[bool, ...] = ()


@dataclass(frozen=True)
class DeploymentSnapshot:
    """
    desired_replicas is None when spec.replicas is absent; the classifier
    treats that as a broken data source.
    """

    name: str
    namespace: str
    desired_replicas: Optional[int]
    ready_replicas: int
    created_at: Optional[datetime] = None
    conditions: tuple[Condition, ...] = ()
    image: Optional[str] = None


def _conditions(obj: dict[str, Any]) -> tuple[Condition, ...]:
    return tuple(
        Condition(
            type=c.get("type", ""),
            status=str(c.get("status", "")),
            reason=c.get("reason") or "",
        )
        for c in obj.get("status", {}).get("conditions") or []
    )


def node_from_dict(node: dict[str, Any]) -> NodeSnapshot:
    return NodeSnapshot(
        name=get_name(node),
        conditions=_conditions(node),
        labels=dict(node.get("metadata", {}).get("labels") or {}),
    )


def pod_from_dict(pod: dict[str, Any]) -> PodSnapshot:
    status = pod.get("status", {})
    return PodSnapshot(
        name=get_name(pod),
        namespace=get_namespace(pod),
        phase=status.get("phase", "Unknown"),
        container_ready=tuple(
            bool(c.get("ready", False)) for c in status.get("containerStatuses") or []
        ),
    )


def deployment_from_dict(deploy: dict[str, Any]) -> DeploymentSnapshot:
    containers = (
        deploy.get("spec", {}).get("template", {}).get("spec", {}).get("containers")
        or []
    )
    return DeploymentSnapshot(
        name=get_name(deploy),
        namespace=get_namespace(deploy),
        desired_replicas=deploy.get("spec", {}).get("replicas"),
        ready_replicas=deploy.get("status", {}).get("readyReplicas") or 0,
        created_at=parse_time(deploy.get("metadata", {}).get("creationTimestamp")),
        conditions=_conditions(deploy),
        image=containers[0].get("image") if containers else None,
    )


# ----------------------------
# Derived reports
# ----------------------------


@dataclass
class PodInfo:
    name: str
    namespace: str
    phase: str


@dataclass
class ClusterStatus:
    status: str
    ready_nodes: int
    total_nodes: int
    running_pods: int
    total_pods: int
    namespaces: int
    unhealthy_pods: list[PodInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NodeInfo:
    name: str
    role: str
    status: str


@dataclass
class ClusterInfo:
    version: str
    platform: str
    api_server: str
    nodes: list[NodeInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Application:
    name: str
    namespace: str
    ready_replicas: int
    total_replicas: int
    image: Optional[str]
    status: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ApplicationStatus:
    name: str
    namespace: str
    phase: str
    ready_replicas: int
    total_replicas: int
    image: Optional[str] = None
    created_at: Optional[datetime] = None
    conditions: list[Condition] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _format_time(self.created_at)
        return data


# ----------------------------
# Manifests
# ----------------------------


@dataclass
class ManifestDocument:
    """
    A declarative resource loaded from a manifest file.

    kind, name and namespace are lifted out of the body; everything else
    stays in `body` untouched. Only the namespace may change after load.
    """

    kind: str
    name: str
    namespace: str
    body: dict[str, Any] = field(default_factory=dict)
    source: str = ""

    @classmethod
    def from_dict(cls, body: dict[str, Any], source: str = "") -> "ManifestDocument":
        return cls(
            kind=body.get("kind", ""),
            name=(body.get("metadata") or {}).get("name", ""),
            namespace=get_namespace(body),
            body=body,
            source=source,
        )

    @property
    def api_version(self) -> str:
        return self.body.get("apiVersion", "")

    @property
    def ref(self) -> str:
        return f"{self.kind}/{self.name}"

    def set_namespace(self, namespace: str) -> None:
        self.namespace = namespace

    def to_dict(self) -> dict[str, Any]:
        body = dict(self.body)
        metadata = dict(body.get("metadata") or {})
        if self.namespace:
            metadata["namespace"] = self.namespace
        body["metadata"] = metadata
        return body

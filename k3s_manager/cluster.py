import logging
from collections.abc import Iterable

from k3s_manager.gateway import Gateway
from k3s_manager.model import (
    ClusterInfo,
    ClusterStatus,
    NodeInfo,
    NodeSnapshot,
    PodInfo,
    PodSnapshot,
)

logger = logging.getLogger(__name__)

CONTROL_PLANE_LABEL = "node-role.kubernetes.io/control-plane"
MASTER_LABEL = "node-role.kubernetes.io/master"

UNHEALTHY_PHASES = {"Failed", "Pending"}


def node_is_ready(node: NodeSnapshot) -> bool:
    return any(c.type == "Ready" and c.status == "True" for c in node.conditions)


def pod_is_unhealthy(pod: PodSnapshot) -> bool:
    # Succeeded and Unknown pods count toward neither running nor unhealthy
    return pod.phase in UNHEALTHY_PHASES


def node_role(node: NodeSnapshot) -> str:
    if CONTROL_PLANE_LABEL in node.labels:
        return "control-plane"
    if MASTER_LABEL in node.labels:
        return "master"
    return "worker"


# ----------------------------
# Aggregation
# ----------------------------


def aggregate_cluster_status(
    nodes: Iterable[NodeSnapshot],
    pods: Iterable[PodSnapshot],
    namespace_count: int,
) -> ClusterStatus:
    """
    Reduce node and pod snapshots into a single cluster verdict.

    - Healthy: every node Ready and no Failed/Pending pods
    - Degraded: at least one node Ready
    - Unhealthy: no node Ready

    A cluster with zero nodes and no unhealthy pods reports Healthy.
    """
    nodes = list(nodes)
    pods = list(pods)

    ready_nodes = sum(1 for n in nodes if node_is_ready(n))
    running_pods = sum(1 for p in pods if p.phase == "Running")
    unhealthy = [
        PodInfo(name=p.name, namespace=p.namespace, phase=p.phase)
        for p in pods
        if pod_is_unhealthy(p)
    ]

    if ready_nodes == len(nodes) and not unhealthy:
        verdict = "Healthy"
    elif ready_nodes > 0:
        verdict = "Degraded"
    else:
        verdict = "Unhealthy"

    return ClusterStatus(
        status=verdict,
        ready_nodes=ready_nodes,
        total_nodes=len(nodes),
        running_pods=running_pods,
        total_pods=len(pods),
        namespaces=namespace_count,
        unhealthy_pods=unhealthy,
    )


def build_cluster_info(
    version: str,
    platform: str,
    api_server: str,
    nodes: Iterable[NodeSnapshot],
) -> ClusterInfo:
    return ClusterInfo(
        version=version,
        platform=platform,
        api_server=api_server,
        nodes=[
            NodeInfo(
                name=n.name,
                role=node_role(n),
                status="Ready" if node_is_ready(n) else "NotReady",
            )
            for n in nodes
        ],
    )


# ----------------------------
# Gateway-backed entry points
# ----------------------------


def get_cluster_status(gateway: Gateway) -> ClusterStatus:
    nodes = gateway.list_nodes()
    pods = gateway.list_pods()
    namespaces = gateway.list_namespaces()

    status = aggregate_cluster_status(nodes, pods, len(namespaces))
    logger.debug(
        "cluster %s: %d/%d nodes ready, %d unhealthy pods",
        status.status,
        status.ready_nodes,
        status.total_nodes,
        len(status.unhealthy_pods),
    )
    return status


def get_cluster_info(gateway: Gateway) -> ClusterInfo:
    version = gateway.get_server_version()
    nodes = gateway.list_nodes()
    return build_cluster_info(
        version=version.get("gitVersion", ""),
        platform=version.get("platform", ""),
        api_server=gateway.get_api_endpoint(),
        nodes=nodes,
    )

import json
from typing import Any

import yaml

from k3s_manager.deploy import DeployResult
from k3s_manager.model import (
    Application,
    ApplicationStatus,
    ClusterInfo,
    ClusterStatus,
)

# ----------------------------
# Output formatting
# ----------------------------


def _structured(data: Any, fmt: str) -> bool:
    if fmt == "json":
        print(json.dumps(data, indent=2, default=str))
        return True
    if fmt == "yaml":
        print(yaml.safe_dump(data, sort_keys=False), end="")
        return True
    return False


def output_cluster_status(status: ClusterStatus, fmt: str = "text") -> None:
    if _structured(status.to_dict(), fmt):
        return

    print(f"Cluster status: {status.status}")
    print(f"Nodes:      {status.ready_nodes}/{status.total_nodes} ready")
    print(f"Pods:       {status.running_pods}/{status.total_pods} running")
    print(f"Namespaces: {status.namespaces}")

    if status.unhealthy_pods:
        print("\nUnhealthy pods:")
        for pod in sorted(status.unhealthy_pods, key=lambda p: (p.namespace, p.name)):
            print(f"  - {pod.namespace}/{pod.name} ({pod.phase})")


def output_cluster_info(info: ClusterInfo, fmt: str = "text") -> None:
    if _structured(info.to_dict(), fmt):
        return

    print(f"Version:    {info.version}")
    print(f"Platform:   {info.platform}")
    print(f"API server: {info.api_server}")

    if info.nodes:
        print("\nNodes:")
        for node in sorted(info.nodes, key=lambda n: n.name):
            print(f"  - {node.name} [{node.role}] {node.status}")


def output_applications(apps: list[Application], fmt: str = "text") -> None:
    if _structured([a.to_dict() for a in apps], fmt):
        return

    if not apps:
        print("No applications found")
        return

    print(f"{'NAME':<30} {'NAMESPACE':<20} {'READY':<8} {'STATUS':<10} IMAGE")
    for app in sorted(apps, key=lambda a: (a.namespace, a.name)):
        ready = f"{app.ready_replicas}/{app.total_replicas}"
        print(
            f"{app.name:<30} {app.namespace:<20} {ready:<8} "
            f"{app.status:<10} {app.image or '-'}"
        )


def output_application_status(status: ApplicationStatus, fmt: str = "text") -> None:
    if _structured(status.to_dict(), fmt):
        return

    print(f"Application: {status.namespace}/{status.name}")
    print(f"Status:      {status.phase}")
    print(f"Replicas:    {status.ready_replicas}/{status.total_replicas} ready")
    print(f"Image:       {status.image or '-'}")
    if status.created_at:
        print(f"Created:     {status.created_at.isoformat()}")

    if status.conditions:
        print("\nConditions:")
        for cond in status.conditions:
            reason = f" ({cond.reason})" if cond.reason else ""
            print(f"  - {cond.type}={cond.status}{reason}")


def output_deploy_result(result: DeployResult, name: str, fmt: str = "text") -> None:
    if _structured(result.to_dict(), fmt):
        return

    if result.dry_run:
        print(f"Dry run - would deploy {len(result.documents)} manifests for {name}")
        for ref in result.preview():
            print(f"  - {ref}")
        return

    for ref in result.applied:
        print(f"Applied {ref}")
    print(f"Successfully deployed {name}")

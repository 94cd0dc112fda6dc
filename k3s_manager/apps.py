import logging

from k3s_manager.errors import ContractViolation
from k3s_manager.gateway import Gateway
from k3s_manager.model import Application, ApplicationStatus, DeploymentSnapshot

logger = logging.getLogger(__name__)

PROGRESS_DEADLINE_EXCEEDED = "ProgressDeadlineExceeded"


def classify_deployment(deployment: DeploymentSnapshot) -> str:
    """
    Ordered, first match wins:

    1. Ready     - ready replicas equal desired replicas exactly
    2. Failed    - Progressing=False or reason ProgressDeadlineExceeded
    3. Degraded  - some replicas ready
    4. Pending   - nothing ready yet

    Rule 1 runs before the condition scan so a stale Progressing=False from
    an earlier rollout never hides a fully ready deployment.
    """
    if deployment.desired_replicas is None:
        raise ContractViolation(
            f"deployment {deployment.namespace}/{deployment.name} "
            "has no desired replica count"
        )

    if deployment.ready_replicas == deployment.desired_replicas:
        return "Ready"

    for condition in deployment.conditions:
        if condition.type != "Progressing":
            continue
        if condition.status == "False":
            return "Failed"
        if condition.reason == PROGRESS_DEADLINE_EXCEEDED:
            return "Failed"

    if deployment.ready_replicas > 0:
        return "Degraded"

    return "Pending"


def application_status(deployment: DeploymentSnapshot) -> ApplicationStatus:
    return ApplicationStatus(
        name=deployment.name,
        namespace=deployment.namespace,
        phase=classify_deployment(deployment),
        ready_replicas=deployment.ready_replicas,
        total_replicas=deployment.desired_replicas,
        image=deployment.image,
        created_at=deployment.created_at,
        conditions=list(deployment.conditions),
    )


def get_application_status(
    gateway: Gateway, name: str, namespace: str
) -> ApplicationStatus:
    return application_status(gateway.get_deployment(name, namespace))


def list_applications(gateway: Gateway, namespace: str) -> list[Application]:
    applications = []
    for deployment in gateway.list_deployments(namespace):
        applications.append(
            Application(
                name=deployment.name,
                namespace=deployment.namespace,
                ready_replicas=deployment.ready_replicas,
                total_replicas=deployment.desired_replicas,
                image=deployment.image,
                status=classify_deployment(deployment),
            )
        )
    logger.debug("found %d applications in %s", len(applications), namespace)
    return applications

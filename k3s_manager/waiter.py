import logging
import threading
import time
from collections.abc import Callable
from typing import Optional

from k3s_manager.errors import WaitTimeout
from k3s_manager.gateway import Gateway
from k3s_manager.model import PodSnapshot

logger = logging.getLogger(__name__)

POLL_INTERVAL = 2.0


def pod_is_ready(pod: PodSnapshot) -> bool:
    return pod.phase == "Running" and all(pod.container_ready)


def select_pod(pods: list[PodSnapshot]) -> Optional[PodSnapshot]:
    """
    Pick the pod to inspect when a selector matches several.
    Lowest name wins, so the choice does not depend on API list order.
    """
    if not pods:
        return None
    return min(pods, key=lambda p: p.name)


def wait_for_pod(
    gateway: Gateway,
    namespace: str,
    label_selector: str,
    timeout: float,
    cancel: Optional[threading.Event] = None,
    interval: float = POLL_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
) -> PodSnapshot:
    """
    Poll pods matching `label_selector` until the selected one is Running
    with every container ready.

    Fixed-interval poll, no backoff. The sleep is interruptible: setting
    `cancel` or reaching the deadline ends the wait within one interval.
    Raises WaitTimeout on deadline or cancellation; gateway errors propagate.
    """
    cancel = cancel or threading.Event()
    deadline = clock() + timeout

    while True:
        if cancel.is_set():
            raise WaitTimeout(namespace, label_selector, cancelled=True)
        if clock() >= deadline:
            raise WaitTimeout(namespace, label_selector)

        pod = select_pod(gateway.list_pods(namespace, label_selector))
        if pod is not None and pod_is_ready(pod):
            logger.debug("pod %s/%s is ready", pod.namespace, pod.name)
            return pod

        if pod is None:
            logger.debug("no pods match %s in %s yet", label_selector, namespace)
        else:
            logger.debug("pod %s is %s, not ready yet", pod.name, pod.phase)

        remaining = deadline - clock()
        if remaining <= 0:
            raise WaitTimeout(namespace, label_selector)
        if cancel.wait(min(interval, remaining)):
            raise WaitTimeout(namespace, label_selector, cancelled=True)

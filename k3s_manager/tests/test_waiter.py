import threading
import time

import pytest

from k3s_manager.errors import FetchError, WaitTimeout
from k3s_manager.model import PodSnapshot
from k3s_manager.waiter import pod_is_ready, select_pod, wait_for_pod


class ScriptedGateway:
    """
    Returns one scripted pod list per poll; the last entry repeats.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def list_pods(self, namespace=None, label_selector=None):
        self.calls.append((namespace, label_selector))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def running(name="web-1", ready=(True,)):
    return PodSnapshot(name=name, namespace="default", phase="Running", container_ready=ready)


def pending(name="web-1"):
    return PodSnapshot(name=name, namespace="default", phase="Pending", container_ready=(False,))


# ----------------------------
# Readiness
# ----------------------------


def test_pod_ready_requires_running_and_all_containers():
    assert pod_is_ready(running(ready=(True, True)))
    assert not pod_is_ready(running(ready=(True, False)))
    assert not pod_is_ready(pending())


def test_running_pod_without_container_statuses_counts_as_ready():
    assert pod_is_ready(running(ready=()))


def test_succeeded_pod_is_not_ready():
    pod = PodSnapshot(name="job", namespace="default", phase="Succeeded", container_ready=(True,))
    assert not pod_is_ready(pod)


def test_select_pod_uses_lowest_name():
    pods = [running("web-c"), pending("web-a"), running("web-b")]
    assert select_pod(pods).name == "web-a"


def test_select_pod_empty():
    assert select_pod([]) is None


# ----------------------------
# Polling
# ----------------------------


class TestWaitForPod:
    def test_returns_immediately_when_ready(self):
        gateway = ScriptedGateway([running()])

        pod = wait_for_pod(gateway, "default", "app=web", timeout=5, interval=0.01)

        assert pod.name == "web-1"
        assert gateway.calls == [("default", "app=web")]

    def test_polls_until_ready(self):
        gateway = ScriptedGateway([], [pending()], [running(ready=(False,))], [running()])

        pod = wait_for_pod(gateway, "default", "app=web", timeout=5, interval=0.01)

        assert pod_is_ready(pod)
        assert len(gateway.calls) == 4

    def test_succeeds_within_one_interval_of_readiness(self):
        gateway = ScriptedGateway([pending()], [running()])

        started = time.monotonic()
        wait_for_pod(gateway, "default", "app=web", timeout=10, interval=0.2)
        elapsed = time.monotonic() - started

        assert len(gateway.calls) == 2
        assert elapsed < 0.2 + 0.5

    def test_inspects_lowest_named_pod_only(self):
        # web-a is not ready, so the ready web-b does not end the wait
        gateway = ScriptedGateway([running("web-b"), pending("web-a")])

        with pytest.raises(WaitTimeout):
            wait_for_pod(gateway, "default", "app=web", timeout=0.1, interval=0.01)

    def test_times_out_when_no_pod_matches(self):
        gateway = ScriptedGateway([])

        with pytest.raises(WaitTimeout) as exc_info:
            wait_for_pod(gateway, "shop", "app=web", timeout=0.1, interval=0.02)

        err = exc_info.value
        assert err.kind == "timeout"
        assert err.cancelled is False
        assert err.namespace == "shop"
        assert err.label_selector == "app=web"
        assert "app=web" in err.message and "shop" in err.message

    def test_deadline_interrupts_sleep(self):
        gateway = ScriptedGateway([pending()])

        started = time.monotonic()
        with pytest.raises(WaitTimeout):
            wait_for_pod(gateway, "default", "app=web", timeout=0.2, interval=30)

        assert time.monotonic() - started < 2

    def test_cancel_during_sleep_aborts(self):
        gateway = ScriptedGateway([pending()])
        cancel = threading.Event()
        timer = threading.Timer(0.1, cancel.set)

        started = time.monotonic()
        timer.start()
        try:
            with pytest.raises(WaitTimeout) as exc_info:
                wait_for_pod(
                    gateway, "default", "app=web", timeout=60, cancel=cancel, interval=30
                )
        finally:
            timer.cancel()

        assert exc_info.value.cancelled is True
        assert time.monotonic() - started < 2
        assert len(gateway.calls) == 1

    def test_cancelled_before_start_does_not_poll(self):
        gateway = ScriptedGateway([running()])
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(WaitTimeout):
            wait_for_pod(gateway, "default", "app=web", timeout=5, cancel=cancel)

        assert gateway.calls == []

    def test_expired_deadline_from_clock(self):
        gateway = ScriptedGateway([pending()])
        ticks = iter([0.0, 0.0, 100.0, 100.0])

        with pytest.raises(WaitTimeout):
            wait_for_pod(
                gateway,
                "default",
                "app=web",
                timeout=10,
                interval=0.01,
                clock=lambda: next(ticks),
            )

        assert len(gateway.calls) == 1

    def test_fetch_error_propagates(self):
        class BrokenGateway:
            def list_pods(self, namespace=None, label_selector=None):
                raise FetchError("list_pods", "403 Forbidden")

        with pytest.raises(FetchError):
            wait_for_pod(BrokenGateway(), "default", "app=web", timeout=5, interval=0.01)

import json
import os

import yaml

from k3s_manager.cli import EXIT_ERROR, EXIT_SOFTWARE, EXIT_TIMEOUT, main
from k3s_manager.errors import ApplyError
from k3s_manager.gateway import SnapshotGateway

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")
SNAPSHOT_DIR = os.path.join(FIXTURES_DIR, "snapshot")
MANIFEST_DIR = os.path.join(FIXTURES_DIR, "manifests")


def run(capsys, *argv):
    code = main(["--snapshot", SNAPSHOT_DIR, *argv])
    out, err = capsys.readouterr()
    return code, out, err


def test_status_text(capsys):
    code, out, _ = run(capsys, "status")

    assert code == 0
    assert "Cluster status: Degraded" in out
    assert "1/2 ready" in out
    assert "default/crash-1 (Failed)" in out
    assert "default/web-a (Pending)" in out


def test_status_json(capsys):
    code, out, _ = run(capsys, "--format", "json", "status")

    data = json.loads(out)
    assert code == 0
    assert data["status"] == "Degraded"
    assert data["namespaces"] == 3
    assert {p["name"] for p in data["unhealthy_pods"]} == {"crash-1", "web-a"}


def test_info_yaml(capsys):
    code, out, _ = run(capsys, "--format", "yaml", "info")

    data = yaml.safe_load(out)
    assert code == 0
    assert data["version"] == "v1.29.3+k3s1"
    assert data["nodes"][0]["role"] == "control-plane"


def test_apps_list(capsys):
    code, out, _ = run(capsys, "apps", "list")

    assert code == 0
    lines = out.splitlines()
    assert lines[0].startswith("NAME")
    assert any(line.startswith("api") and "Failed" in line for line in lines)
    assert any(line.startswith("web") and "1/3" in line for line in lines)


def test_apps_list_empty_namespace(capsys):
    code, out, _ = run(capsys, "-n", "kube-system", "apps", "list")
    assert code == 0
    assert "No applications found" in out


def test_apps_status(capsys):
    code, out, _ = run(capsys, "-n", "data", "apps", "status", "db")

    assert code == 0
    assert "Application: data/db" in out
    assert "Status:      Ready" in out
    assert "postgres:16" in out


def test_apps_status_missing(capsys):
    code, _, err = run(capsys, "apps", "status", "ghost")

    assert code == EXIT_ERROR
    assert err.startswith("[ERROR] fetch:")


def test_deploy_dry_run(capsys):
    code, out, _ = run(capsys, "deploy", MANIFEST_DIR, "--dry-run")

    assert code == 0
    assert "Dry run - would deploy 4 manifests for manifests" in out
    assert "  - Deployment/web" in out


def test_deploy_against_snapshot_fails(capsys):
    code, _, err = run(capsys, "deploy", MANIFEST_DIR, "--name", "shop")

    assert code == EXIT_ERROR
    assert "[ERROR] apply:" in err
    assert "Namespace/shop" in err


def test_wait_ready(capsys):
    code, out, _ = run(capsys, "-n", "data", "wait", "app=db", "--timeout", "1")

    assert code == 0
    assert "Pod data/db-0 is ready" in out


def test_wait_timeout(capsys, isolated_home):
    (isolated_home / ".k3s-manager.yaml").write_text("poll_interval: 0.05\n")

    code, _, err = run(capsys, "wait", "app=web", "--timeout", "0.2")

    assert code == EXIT_TIMEOUT
    assert "[ERROR] timeout:" in err
    assert "app=web" in err


def test_contract_violation_exit_code(capsys, tmp_path):
    (tmp_path / "deployments.json").write_text(
        json.dumps({"items": [{"metadata": {"name": "broken", "namespace": "default"}, "spec": {}}]})
    )

    code = main(["apps", "list"], gateway=SnapshotGateway(str(tmp_path)))
    _, err = capsys.readouterr()

    assert code == EXIT_SOFTWARE
    assert "[ERROR] contract:" in err


def test_bad_config_reported(capsys, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("output: xml\n")

    code, _, err = run(capsys, "--config", str(path), "status")

    assert code == EXIT_ERROR
    assert "[ERROR] config:" in err


class InterruptedGateway(SnapshotGateway):
    def list_pods(self, namespace=None, label_selector=None):
        raise KeyboardInterrupt


class FailingApplyGateway(SnapshotGateway):
    def __init__(self, directory, fail_on):
        super().__init__(directory)
        self.fail_on = fail_on
        self.applied = []

    def apply(self, document):
        if document.ref == self.fail_on:
            raise ApplyError(document.ref, "403 Forbidden")
        self.applied.append(document.ref)


def test_wait_interrupted_reports_cancelled(capsys):
    code = main(
        ["wait", "app=web", "--timeout", "5"],
        gateway=InterruptedGateway(SNAPSHOT_DIR),
    )
    _, err = capsys.readouterr()

    assert code == EXIT_TIMEOUT
    assert "[ERROR] timeout: cancelled waiting for pod" in err
    assert "app=web" in err


def test_deploy_failure_lists_applied_documents(capsys):
    gateway = FailingApplyGateway(SNAPSHOT_DIR, fail_on="Service/web")

    code = main(["deploy", MANIFEST_DIR], gateway=gateway)
    _, err = capsys.readouterr()

    assert code == EXIT_ERROR
    assert "[ERROR] apply: failed to apply Service/web: 403 Forbidden" in err
    assert "Already applied (left in place):" in err
    assert "  - Namespace/shop" in err
    assert "  - Deployment/web" in err
    assert "ConfigMap/web-config" not in err
    assert gateway.applied == ["Namespace/shop", "Deployment/web"]

import argparse
import logging
import os
import sys
import threading
from typing import Optional

from k3s_manager.apps import get_application_status, list_applications
from k3s_manager.cluster import get_cluster_info, get_cluster_status
from k3s_manager.config import OUTPUT_FORMATS, Config, load_config
from k3s_manager.deploy import deploy
from k3s_manager.errors import (
    ApplyError,
    ContractViolation,
    K3sManagerError,
    WaitTimeout,
)
from k3s_manager.gateway import Gateway, build_gateway
from k3s_manager.logging_config import configure_logging
from k3s_manager.output import (
    output_application_status,
    output_applications,
    output_cluster_info,
    output_cluster_status,
    output_deploy_result,
)
from k3s_manager.waiter import wait_for_pod

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_TIMEOUT = 2
EXIT_SOFTWARE = 70


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="k3s-manager",
        description="Inspect and manage a K3s/Kubernetes cluster",
    )

    parser.add_argument("--config", help="Config file (default ~/.k3s-manager.yaml)")
    parser.add_argument("--kubeconfig", help="Path to kubeconfig")
    parser.add_argument("--context", help="Kubeconfig context to use")
    parser.add_argument("-n", "--namespace", help="Target namespace")
    parser.add_argument(
        "--snapshot",
        dest="snapshot_dir",
        help="Read cluster state from a directory of `kubectl get -o json` dumps",
    )
    parser.add_argument(
        "--format",
        dest="output",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (text, json, yaml)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=None)

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show aggregate cluster health")
    sub.add_parser("info", help="Show server version and nodes")

    apps = sub.add_parser("apps", help="Inspect deployed applications")
    apps_sub = apps.add_subparsers(dest="apps_command", required=True)
    apps_sub.add_parser("list", help="List deployments in the namespace")
    apps_status = apps_sub.add_parser("status", help="Show one deployment")
    apps_status.add_argument("name")

    deploy_cmd = sub.add_parser("deploy", help="Apply manifests from a directory")
    deploy_cmd.add_argument("path", help="Manifest directory or file")
    deploy_cmd.add_argument("--name", help="Application name for reporting")
    deploy_cmd.add_argument("--dry-run", action="store_true")

    wait = sub.add_parser("wait", help="Wait for a pod to become ready")
    wait.add_argument("selector", help="Label selector, e.g. app=web")
    wait.add_argument("--timeout", type=float, help="Seconds to wait")

    return parser


def _overrides(args: argparse.Namespace) -> dict:
    keys = ("kubeconfig", "context", "namespace", "snapshot_dir", "output", "verbose")
    values = {k: getattr(args, k, None) for k in keys}
    values["timeout"] = getattr(args, "timeout", None)
    return values


def run_command(args: argparse.Namespace, cfg: Config, gateway: Gateway) -> int:
    if args.command == "status":
        output_cluster_status(get_cluster_status(gateway), cfg.output)

    elif args.command == "info":
        output_cluster_info(get_cluster_info(gateway), cfg.output)

    elif args.command == "apps" and args.apps_command == "list":
        output_applications(list_applications(gateway, cfg.namespace), cfg.output)

    elif args.command == "apps" and args.apps_command == "status":
        status = get_application_status(gateway, args.name, cfg.namespace)
        output_application_status(status, cfg.output)

    elif args.command == "deploy":
        name = args.name or os.path.basename(os.path.normpath(args.path))
        result = deploy(gateway, args.path, cfg.namespace, dry_run=args.dry_run)
        output_deploy_result(result, name, cfg.output)

    elif args.command == "wait":
        cancel = threading.Event()
        try:
            pod = wait_for_pod(
                gateway,
                cfg.namespace,
                args.selector,
                timeout=cfg.timeout,
                cancel=cancel,
                interval=cfg.poll_interval,
            )
        except KeyboardInterrupt:
            cancel.set()
            raise WaitTimeout(cfg.namespace, args.selector, cancelled=True) from None
        print(f"Pod {pod.namespace}/{pod.name} is ready")

    return 0


def main(argv: Optional[list[str]] = None, gateway: Optional[Gateway] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config, _overrides(args))
        configure_logging(cfg.verbose)
        logger.debug("resolved config: %s", cfg)
        gateway = gateway or build_gateway(cfg)
        return run_command(args, cfg, gateway)
    except ContractViolation as exc:
        print(f"[ERROR] {exc.kind}: {exc.message}", file=sys.stderr)
        return EXIT_SOFTWARE
    except WaitTimeout as exc:
        print(f"[ERROR] {exc.kind}: {exc.message}", file=sys.stderr)
        return EXIT_TIMEOUT
    except ApplyError as exc:
        print(f"[ERROR] {exc.kind}: {exc.message}", file=sys.stderr)
        if exc.applied:
            print("Already applied (left in place):", file=sys.stderr)
            for ref in exc.applied:
                print(f"  - {ref}", file=sys.stderr)
        return EXIT_ERROR
    except K3sManagerError as exc:
        print(f"[ERROR] {exc.kind}: {exc.message}", file=sys.stderr)
        return EXIT_ERROR


def run() -> None:
    sys.exit(main())

import logging
from dataclasses import dataclass, field
from typing import Any

from k3s_manager.errors import ApplyError, K3sManagerError
from k3s_manager.gateway import Gateway
from k3s_manager.loader import load_manifests
from k3s_manager.model import ManifestDocument

logger = logging.getLogger(__name__)


@dataclass
class DeployResult:
    dry_run: bool
    documents: list[ManifestDocument] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)

    def preview(self) -> list[str]:
        return [doc.ref for doc in self.documents]

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "documents": [
                {"kind": d.kind, "name": d.name, "namespace": d.namespace}
                for d in self.documents
            ],
            "applied": list(self.applied),
        }


def deploy(
    gateway: Gateway,
    manifest_path: str,
    namespace: str,
    dry_run: bool = False,
) -> DeployResult:
    """
    Load manifests and either preview them or apply them one by one.

    Documents without a namespace get `namespace`. Apply runs strictly in
    load order; the first failure stops the run and earlier applies stay.
    """
    documents = load_manifests(manifest_path)

    for doc in documents:
        if not doc.namespace:
            doc.set_namespace(namespace)

    result = DeployResult(dry_run=dry_run, documents=documents)

    if dry_run:
        logger.info("dry run: %d manifests, nothing applied", len(documents))
        return result

    for doc in documents:
        logger.info("applying %s", doc.ref)
        try:
            gateway.apply(doc)
        except ApplyError as exc:
            exc.applied = list(result.applied)
            raise
        except K3sManagerError as exc:
            raise ApplyError(doc.ref, str(exc), applied=list(result.applied)) from exc
        result.applied.append(doc.ref)

    return result

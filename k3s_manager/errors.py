from typing import Any, Optional


class K3sManagerError(Exception):
    """
    Base class for every failure surfaced to the CLI.
    """

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class FetchError(K3sManagerError):
    kind = "fetch"

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class ManifestParseError(K3sManagerError):
    kind = "parse"

    def __init__(self, path: str, message: str):
        super().__init__(f"failed to decode YAML in {path}: {message}")
        self.path = path


class ApplyError(K3sManagerError):
    kind = "apply"

    def __init__(self, ref: str, message: str, applied: Optional[list[str]] = None):
        super().__init__(f"failed to apply {ref}: {message}")
        self.ref = ref
        self.applied = applied or []


class WaitTimeout(K3sManagerError):
    kind = "timeout"

    def __init__(self, namespace: str, label_selector: str, cancelled: bool = False):
        reason = "cancelled" if cancelled else "timeout"
        super().__init__(
            f"{reason} waiting for pod with selector {label_selector} "
            f"in namespace {namespace}"
        )
        self.namespace = namespace
        self.label_selector = label_selector
        self.cancelled = cancelled


class ContractViolation(K3sManagerError):
    kind = "contract"


class ConfigError(K3sManagerError):
    kind = "config"

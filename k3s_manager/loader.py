import logging
import os
from collections.abc import Iterator

import yaml

from k3s_manager.errors import ManifestParseError
from k3s_manager.model import ManifestDocument

logger = logging.getLogger(__name__)

MANIFEST_EXTENSIONS = (".yaml", ".yml")

# ----------------------------
# Manifest discovery
# ----------------------------


def iter_manifest_files(path: str) -> Iterator[str]:
    """
    Yield YAML files under `path` in lexical walk order.
    A single file path is yielded as-is.
    """
    if os.path.isfile(path):
        yield path
        return

    for root, dirs, files in os.walk(path):
        dirs.sort()
        for name in sorted(files):
            if os.path.splitext(name)[1] in MANIFEST_EXTENSIONS:
                yield os.path.join(root, name)


def load_manifest_file(path: str) -> list[ManifestDocument]:
    documents: list[ManifestDocument] = []

    try:
        with open(path, encoding="utf-8") as f:
            for body in yaml.safe_load_all(f):
                if body is None or body == {}:  # empty document between separators
                    continue
                if not isinstance(body, dict):
                    raise ManifestParseError(
                        path, f"expected a mapping, got {type(body).__name__}"
                    )
                metadata = body.get("metadata")
                if metadata is not None and not isinstance(metadata, dict):
                    raise ManifestParseError(
                        path,
                        f"metadata must be a mapping, got {type(metadata).__name__}",
                    )
                documents.append(ManifestDocument.from_dict(body, source=path))
    except yaml.YAMLError as exc:
        raise ManifestParseError(path, str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise ManifestParseError(path, f"not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise ManifestParseError(path, f"failed to read file: {exc}") from exc

    return documents


def load_manifests(path: str) -> list[ManifestDocument]:
    """
    Load every manifest document under `path`.

    Files are visited in lexical order and documents kept in stream order.
    Any decode failure aborts the whole load; nothing partial is returned.
    """
    if not os.path.exists(path):
        raise ManifestParseError(path, "no such file or directory")

    manifests: list[ManifestDocument] = []
    for file in iter_manifest_files(path):
        loaded = load_manifest_file(file)
        logger.debug("loaded %d documents from %s", len(loaded), file)
        manifests.extend(loaded)

    return manifests

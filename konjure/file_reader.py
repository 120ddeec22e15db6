"""Reading Konjure and Kubernetes resources from the local file system."""

from __future__ import annotations

import os
import stat
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from konjure.api import API_VERSION, File, Jsonnet, Kustomize, get_rnode, resource_meta
from konjure.kio import ByteReader

PATH_ANNOTATION = "internal.config.kubernetes.io/path"

_KUSTOMIZATION_FILES = frozenset({"kustomization.yaml", "kustomization.yml", "Kustomization"})
_MANIFEST_EXTENSIONS = frozenset({".json", ".yaml", ".yml", ""})


def _extension(path: str) -> str:
    """Return the suffix of the final path element, starting at its last dot."""
    name = os.path.basename(path)
    pos = name.rfind(".")
    return name[pos:] if pos >= 0 else ""


def keep_node(node: Any) -> bool:
    """Return True if the node appears to be a resource worth keeping."""
    try:
        meta = resource_meta(node)
    except ValueError:
        return False

    if not meta.kind:
        return False
    if meta.api_version == API_VERSION:
        return True
    if meta.api_version.startswith("kustomize.config.k8s.io/"):
        return True
    if meta.kind.endswith("List"):
        return True
    return meta.name != ""


def is_kustomize_root(path: str) -> bool:
    """Return True if the directory holds a kustomization file."""
    try:
        names = os.listdir(path)
    except OSError:
        return False
    return any(name in _KUSTOMIZATION_FILES for name in names)


@dataclass
class FileReader(File):
    """Reads resources from a file or a directory of files."""

    recurse: bool = False
    abs_path: Callable[[str], str] | None = None

    def read(self) -> list[dict[str, Any]]:
        root = self._root()
        return list(self._walk(root, root))

    def _root(self) -> str:
        path = self.path
        if self.abs_path is not None:
            path = self.abs_path(path)
        if not os.path.isabs(path):
            raise ValueError(f"unable to resolve relative path {self.path}")
        return path

    def _walk(self, path: str, root: str) -> Iterator[dict[str, Any]]:
        info = os.lstat(path)
        if stat.S_ISDIR(info.st_mode):
            if not self.recurse and path != root:
                return
            if is_kustomize_root(path):
                yield get_rnode(Kustomize(root=path))
                return
            for name in sorted(os.listdir(path)):
                yield from self._walk(os.path.join(path, name), root)
            return

        extension = _extension(path).lower()
        if extension == ".jsonnet":
            yield get_rnode(Jsonnet(filename=path))
        elif extension in _MANIFEST_EXTENSIONS:
            with open(path, "rb") as fh:
                data = fh.read()
            reader = ByteReader(reader=data, set_annotations={PATH_ANNOTATION: path})
            yield from (node for node in reader.read() if keep_node(node))
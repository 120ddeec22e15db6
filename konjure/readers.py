"""Creating readers for Konjure resources and expanding them recursively."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from konjure.api import (
    API_VERSION,
    HTTP,
    File,
    Git,
    Helm,
    Kubernetes,
    Kustomize,
    Secret,
    decode,
    resource_meta,
)
from konjure.file_reader import FileReader
from konjure.kio import Executor, StaticReader
from konjure.remote import GitReader, HTTPReader
from konjure.secret import SecretReader
from konjure.tools import HelmReader, KubernetesReader, KustomizeReader

Option = Callable[[Any], Any]

_READERS: dict[type, type] = {
    Helm: HelmReader,
    Kubernetes: KubernetesReader,
    Kustomize: KustomizeReader,
    Secret: SecretReader,
    Git: GitReader,
    HTTP: HTTPReader,
    File: FileReader,
}


def new_reader(res: Any) -> Any:
    """Return a reader for a Konjure object, or None if it is not recognised."""
    cls = _READERS.get(type(res))
    if cls is None:
        return None
    return cls(**{f.name: getattr(res, f.name) for f in dataclasses.fields(res) if f.init})


# --- reader options ----------------------------------------------------------


def with_working_directory(directory: str) -> Option:
    """Resolve relative file paths against ``directory``."""

    def resolve(path: str) -> str:
        if os.path.isabs(path):
            return os.path.normpath(path)
        return os.path.normpath(os.path.join(directory, path))

    def option(reader: Any) -> Any:
        if isinstance(reader, FileReader):
            reader.abs_path = resolve
        return reader

    return option


def with_recursive_directories(recurse: bool) -> Option:
    """Control whether file readers descend into subdirectories."""

    def option(reader: Any) -> Any:
        if isinstance(reader, FileReader):
            reader.recurse = recurse
        return reader

    return option


def with_kubeconfig(kubeconfig: str) -> Option:
    """Set the kubeconfig file used by Kubernetes readers."""

    def option(reader: Any) -> Any:
        if isinstance(reader, KubernetesReader):
            reader.kubeconfig = kubeconfig
        return reader

    return option


def with_kubectl_executor(executor: Executor) -> Option:
    """Replace how kubectl commands are executed."""

    def option(reader: Any) -> Any:
        if isinstance(reader, KubernetesReader):
            reader.executor = executor
        return reader

    return option


def with_kustomize_executor(executor: Executor) -> Option:
    """Replace how kustomize commands are executed."""

    def option(reader: Any) -> Any:
        if isinstance(reader, KustomizeReader):
            reader.executor = executor
        return reader

    return option


def with_default_types(*args: str) -> Option:
    """Set the resource types fetched when a Kubernetes resource names none."""
    types = list(args)

    def option(reader: Any) -> Any:
        if isinstance(reader, KubernetesReader):
            reader.default_types = list(types)
        return reader

    return option


# --- recursive expansion -----------------------------------------------------


@dataclass
class Filter:
    """Expands Konjure resource nodes into the resources they describe.

    Expansion repeats until nothing changes or ``depth`` iterations have run;
    a depth of 0 leaves the nodes untouched.
    """

    depth: int = 0
    reader_options: list[Option] = field(default_factory=list)

    def filter(self, nodes: list[Any]) -> list[Any]:
        return self._expand_to_depth(list(nodes), self.depth)

    def _expand_to_depth(self, nodes: list[Any], depth: int) -> list[Any]:
        if depth <= 0:
            return nodes

        cleaners: list[Any] = []

        def collect(reader: Any) -> Any:
            if callable(getattr(reader, "clean", None)):
                cleaners.append(reader)
            return reader

        options = [*self.reader_options, collect]
        try:
            result: list[Any] = []
            done = True
            for node in nodes:
                reader = self._expand(node)
                for option in options:
                    reader = option(reader)
                expanded = reader.read()
                done = done and len(expanded) == 1 and expanded[0] is node
                result.extend(expanded)

            if not done:
                return self._expand_to_depth(result, depth - 1)
            return result
        finally:
            for cleaner in cleaners:
                try:
                    cleaner.clean()
                except OSError:
                    pass

    @staticmethod
    def _expand(node: Any) -> Any:
        meta = resource_meta(node)
        if meta.api_version == API_VERSION:
            reader = new_reader(decode(node))
            if reader is None:
                raise ValueError(f"unable to read resources from type: {meta.kind}")
            return reader
        return StaticReader([node])
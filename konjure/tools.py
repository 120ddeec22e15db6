"""Readers that expand resources with the kustomize, kubectl and helm tools."""

from __future__ import annotations

import glob
import posixpath
from dataclasses import dataclass, field
from typing import Any

from konjure.api import Helm, Kubernetes, Kustomize, resource_meta
from konjure.application import matches_label_selector
from konjure.kio import Command, Runtime

_HELM_TEST_HOOKS = "helm.sh/hook notin (test-success, test-failure)"


@dataclass
class KustomizeReader(Kustomize, Runtime):
    """Builds a kustomization with ``kustomize build``."""

    def read(self) -> list[dict[str, Any]]:
        cmd = self.command("kustomize")
        cmd.args += ["build", self.root]
        return cmd.read()


@dataclass
class KubernetesReader(Kubernetes, Runtime):
    """Fetches resources from a cluster with ``kubectl get``."""

    kubeconfig: str = ""
    context: str = ""
    default_types: list[str] = field(default_factory=list)

    def read(self) -> list[dict[str, Any]]:
        namespaces = [""] if self.all_namespaces else self._namespaces()
        types = self._types()

        result: list[dict[str, Any]] = []
        for ns in namespaces:
            cmd = self._command()
            cmd.args += [
                "get",
                "--ignore-not-found",
                "--output", "yaml",
                "--selector", self.selector,
                "--field-selector", self.field_selector,
            ]
            if self.all_namespaces:
                cmd.args.append("--all-namespaces")
            if ns:
                cmd.args += ["--namespace", ns]
            cmd.args.append(",".join(types))
            result.extend(cmd.read())
        return result

    def _command(self) -> Command:
        cmd = self.command("kubectl")
        if self.kubeconfig:
            cmd.args += ["--kubeconfig", self.kubeconfig]
        if self.context:
            cmd.args += ["--context", self.context]
        return cmd

    def _namespaces(self) -> list[str]:
        if self.namespace:
            return [self.namespace]
        if self.namespaces:
            return list(self.namespaces)
        if not self.namespace_selector:
            return [""]

        cmd = self._command()
        cmd.args += ["get", "namespace", "--selector", self.namespace_selector, "--output", "name"]
        out = cmd.output().decode("utf-8")
        return [posixpath.basename(line) for line in out.splitlines()]

    def _types(self) -> list[str]:
        types = [t for t in self.types if t] or [t for t in self.default_types if t]
        if not types:
            raise ValueError("no types specified")
        return types


@dataclass
class HelmReader(Helm, Runtime):
    """Renders a Helm chart locally with ``helm template``."""

    repository_cache: str = ""

    def read(self) -> list[dict[str, Any]]:
        cmd = self._command()
        cmd.args.append("template")
        cmd.args.append(self.release_name or "--generate-name")
        cmd.args.append(self.chart)

        if self.version:
            cmd.args += ["--version", self.version]
        if self.release_namespace:
            cmd.args += ["--namespace", self.release_namespace]
        if self.repository:
            cmd.args += ["--repo", self.repository]

        for value in self.values:
            if value.file:
                # Unmatched patterns are passed through for helm to report on
                files = sorted(glob.glob(value.file)) or [value.file]
                for name in files:
                    cmd.args += ["--values", name]
            elif value.name:
                if value.load_file:
                    option = "--set-file"
                elif value.force_string:
                    option = "--set-string"
                else:
                    option = "--set"
                cmd.args += [option, f"{value.name}={value.value}"]

        nodes = cmd.read()
        if self.include_tests:
            return nodes
        return [
            node
            for node in nodes
            if matches_label_selector(resource_meta(node).annotations, _HELM_TEST_HOOKS)
        ]

    def _command(self) -> Command:
        cmd = self.command("helm")
        if self.repository_cache:
            cmd.env["HELM_REPOSITORY_CACHE"] = self.repository_cache
        return cmd
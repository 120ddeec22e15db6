"""Application resources and the Kubernetes label conventions they rely on."""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from konjure.api import resource_meta

# Recommended labels for applications.
LABEL_NAME = "app.kubernetes.io/name"
LABEL_INSTANCE = "app.kubernetes.io/instance"
LABEL_VERSION = "app.kubernetes.io/version"
LABEL_COMPONENT = "app.kubernetes.io/component"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_CREATED_BY = "app.kubernetes.io/created-by"
LABEL_HELM_CHART = "helm.sh/chart"

APPLICATION_API_VERSION = "app.k8s.io/v1beta1"
APPLICATION_KIND = "Application"


def strip_version(gv: str) -> str:
    """Remove the version from a group/version (apiVersion) string."""
    if gv in ("", "v1"):
        return ""
    return gv.split("/")[0]


@dataclass
class GroupKind:
    """A resource kind qualified by its API group (empty for the core group)."""

    group: str = ""
    kind: str = ""

    def matches(self, api_version: str, kind: str) -> bool:
        """Return True if the type metadata belongs to this group and kind."""
        return kind == self.kind and strip_version(api_version) == self.group

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class LabelSelector:
    """A structured label selector.

    Each match expression is a mapping with ``key``, ``operator`` and ``values``.
    """

    match_labels: dict[str, str] = field(default_factory=dict)
    match_expressions: list[dict[str, Any]] = field(default_factory=list)

    def __str__(self) -> str:
        requirements = [f"{k}={v}" for k, v in self.match_labels.items()]
        for expr in self.match_expressions:
            key = _text(expr.get("key"))
            operator = expr.get("operator")
            values = ",".join(sorted(_text(v) for v in expr.get("values") or []))
            if operator == "In":
                requirements.append(f"{key} in ({values})")
            elif operator == "NotIn":
                requirements.append(f"{key} notin ({values})")
            elif operator == "Exists":
                requirements.append(key)
            elif operator == "DoesNotExist":
                requirements.append(f"!{key}")
        return ",".join(requirements)


def _decode_selector(value: Any) -> LabelSelector:
    if value is None:
        return LabelSelector()
    if not isinstance(value, Mapping):
        raise ValueError("label selector must be a mapping")
    labels = value.get("matchLabels") or {}
    expressions = value.get("matchExpressions") or []
    if not isinstance(labels, Mapping) or not isinstance(expressions, list):
        raise ValueError("invalid label selector")
    return LabelSelector(
        match_labels={_text(k): _text(v) for k, v in labels.items()},
        match_expressions=[dict(e) for e in expressions if isinstance(e, Mapping)],
    )


def _decode_group_kinds(value: Any) -> list[GroupKind]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("componentKinds must be a list")
    result = []
    for item in value:
        if not isinstance(item, Mapping):
            raise ValueError("component kind must be a mapping")
        result.append(GroupKind(group=_text(item.get("group")), kind=_text(item.get("kind"))))
    return result


# --- label selector evaluation -----------------------------------------------

_KEY = r"[^\s!=<>(),]+"
_SET_RE = re.compile(rf"({_KEY})\s+(in|notin)\s*\((.*)\)")
_NOT_EXISTS_RE = re.compile(rf"!\s*({_KEY})")
_EQUALITY_RE = re.compile(rf"({_KEY})\s*(==|!=|=)\s*([^\s,()]*)")
_COMPARE_RE = re.compile(rf"({_KEY})\s*([<>])\s*(-?\d+)")
_EXISTS_RE = re.compile(_KEY)


def _split_requirements(selector: str) -> list[str]:
    parts, current, depth = [], [], 0
    for ch in selector:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise ValueError(f"unbalanced parentheses in selector: {selector}")
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if depth != 0:
        raise ValueError(f"unbalanced parentheses in selector: {selector}")
    parts.append("".join(current))
    return parts


def _requirement_matches(requirement: str, labels: Mapping[str, str]) -> bool:
    if m := _SET_RE.fullmatch(requirement):
        key, op, raw = m.groups()
        values = {v.strip() for v in raw.split(",") if v.strip()}
        if op == "in":
            return key in labels and labels[key] in values
        return key not in labels or labels[key] not in values
    if m := _NOT_EXISTS_RE.fullmatch(requirement):
        return m.group(1) not in labels
    if m := _EQUALITY_RE.fullmatch(requirement):
        key, op, value = m.groups()
        if op == "!=":
            return key not in labels or labels[key] != value
        return key in labels and labels[key] == value
    if m := _COMPARE_RE.fullmatch(requirement):
        key, op, raw = m.groups()
        try:
            actual = int(labels[key])
        except (KeyError, ValueError):
            return False
        return actual > int(raw) if op == ">" else actual < int(raw)
    if _EXISTS_RE.fullmatch(requirement):
        return requirement in labels
    raise ValueError(f"invalid label selector requirement: {requirement!r}")


def matches_label_selector(labels: Mapping[str, str], selector: str) -> bool:
    """Evaluate a label selector string against a set of labels.

    An empty selector matches everything; a malformed one raises ValueError.
    """
    if not selector.strip():
        return True
    requirements = [r.strip() for r in _split_requirements(selector)]
    if any(not r for r in requirements):
        raise ValueError(f"empty requirement in selector: {selector!r}")
    return all(_requirement_matches(r, labels) for r in requirements)


# --- application nodes -------------------------------------------------------


def _merge(src: Any, dest: Any) -> Any:
    """Merge ``src`` into ``dest``; values from ``src`` win, nulls delete."""
    if src is None:
        return copy.deepcopy(dest)
    if not isinstance(src, Mapping) or not isinstance(dest, Mapping):
        return copy.deepcopy(src)
    result = copy.deepcopy(dict(dest))
    for key, value in src.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = _merge(value, result[key])
        else:
            result[key] = copy.deepcopy(value)
    return result


@dataclass
class ApplicationNode:
    """An application resource together with what it needs to claim components."""

    node: dict[str, Any] | None = None
    namespace: str = ""
    component_kinds: list[GroupKind] = field(default_factory=list)
    selector: str = ""

    def filter(self, nodes: list[Any]) -> list[Any]:
        """Return the nodes that are not owned by this application."""
        return [node for node in nodes if not self._owns(node)]

    def _owns(self, node: Any) -> bool:
        meta = resource_meta(node)
        if meta.namespace != self.namespace:
            return False
        if not any(gk.matches(meta.api_version, meta.kind) for gk in self.component_kinds):
            return False
        return matches_label_selector(meta.labels, self.selector)


def index(
    nodes: list[Any], apps: dict[tuple[str, str], ApplicationNode]
) -> list[Any]:
    """Move application resources out of ``nodes`` and into ``apps``.

    ``apps`` is keyed by (name, namespace) and updated in place; the nodes that
    are not applications are returned.
    """
    remaining = []
    for node in nodes:
        meta = resource_meta(node)
        if meta.api_version != APPLICATION_API_VERSION or meta.kind != APPLICATION_KIND:
            remaining.append(node)
            continue

        app = apps.get(meta.name_meta)
        if app is None:
            app = ApplicationNode(namespace=meta.namespace)
            apps[meta.name_meta] = app

        app.node = _merge(app.node, node)

        spec = app.node.get("spec")
        if isinstance(spec, Mapping):
            if spec.get("selector") is not None:
                app.selector = str(_decode_selector(spec["selector"]))
            if spec.get("componentKinds") is not None:
                app.component_kinds = _decode_group_kinds(spec["componentKinds"])
    return remaining
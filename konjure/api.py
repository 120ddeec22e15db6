"""Konjure resource types and their conversion to and from resource nodes.

Resource nodes are plain mappings as produced by a YAML parser.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

GROUP = "konjure.stormforge.io"
VERSION = "v1beta2"
API_VERSION = f"{GROUP}/{VERSION}"

_SOURCES_SUFFIX = "_sources"


# --- value converters used when decoding nodes -------------------------------


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list)):
        raise ValueError(f"cannot decode {type(value).__name__} into a string")
    return str(value)


def _as_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise ValueError(f"cannot decode {value!r} into a boolean")


def _as_optional_bool(value: Any) -> bool | None:
    if value is None:
        return None
    return _as_bool(value)


def _as_optional_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"cannot decode {value!r} into an integer")
    return value


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"cannot decode {type(value).__name__} into a list")
    return [_as_str(item) for item in value]


def _as_list_of(cls: type) -> Callable[[Any], list]:
    def convert(value: Any) -> list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"cannot decode {type(value).__name__} into a list")
        return [_from_mapping(cls, item) for item in value]

    return convert


def _spec(
    key: str | None = None,
    convert: Callable[[Any], Any] = _as_str,
    *,
    omitempty: bool = True,
    pointer: bool = False,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Declare a serialized field; without a key, the key is derived from the field name."""
    metadata = {"key": key, "convert": convert, "omitempty": omitempty, "pointer": pointer}
    if default_factory is not dataclasses.MISSING:
        return field(default_factory=default_factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _is_serialized(f: dataclasses.Field) -> bool:
    return "convert" in f.metadata


def _wire_key(f: dataclasses.Field) -> str:
    """The key a field is stored under in a resource node."""
    key = f.metadata.get("key")
    if key:
        return key
    name = f.name
    if name.endswith(_SOURCES_SUFFIX):
        return name[: -len(_SOURCES_SUFFIX)] + "s"
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _is_empty(value: Any, pointer: bool) -> bool:
    if value is None:
        return True
    if pointer:
        return False
    if value is False or value == "":
        return True
    return isinstance(value, list) and not value


def _encode(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_mapping(value)
    if isinstance(value, list):
        return [_encode(item) for item in value]
    return value


def _to_mapping(obj: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in dataclasses.fields(obj):
        if not _is_serialized(f):
            continue
        value = getattr(obj, f.name)
        if f.metadata["omitempty"] and _is_empty(value, f.metadata["pointer"]):
            continue
        if value is None:
            value = [] if isinstance(f.default_factory, type) else ""
        result[_wire_key(f)] = _encode(value)
    return result


def _from_mapping(cls: type, data: Any) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError(f"cannot decode {type(data).__name__} into {cls.__name__}")
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not _is_serialized(f):
            continue
        key = _wire_key(f)
        if key not in data:
            continue
        kwargs[f.name] = f.metadata["convert"](data[key])
    return cls(**kwargs)


# --- resource types ----------------------------------------------------------


@dataclass
class Resource:
    """Expands a list of URL-like specifications into other Konjure resources."""

    resources: list[str] = _spec(
        "resources", _as_str_list, omitempty=False, default_factory=list
    )


@dataclass
class HelmValue:
    """A value or value file for configuring a Helm chart."""

    file: str = _spec("file", default="")
    name: str = _spec("name", default="")
    value: str = _spec("value", default="")
    force_string: bool = _spec("forceString", _as_bool, default=False)
    load_file: bool = _spec("loadFile", _as_bool, default=False)


@dataclass
class Helm:
    """Expands a Helm chart locally."""

    release_name: str = _spec("releaseName", default="")
    release_namespace: str = _spec("releaseNamespace", default="")
    chart: str = _spec("chart", omitempty=False, default="")
    version: str = _spec("version", default="")
    repository: str = _spec("repo", omitempty=False, default="")
    values: list[HelmValue] = _spec(
        "values", _as_list_of(HelmValue), default_factory=list
    )
    include_tests: bool = _spec("includeTests", _as_bool, default=False)


@dataclass
class JsonnetParameter:
    """An input to a Jsonnet program."""

    name: str = _spec("name", default="")
    string: str = _spec("string", default="")
    string_file: str = _spec("stringFile", default="")
    code: str = _spec("code", default="")
    code_file: str = _spec("codeFile", default="")


@dataclass
class Jsonnet:
    """Expands programmatically constructed resources."""

    filename: str = _spec("filename", default="")
    code: str = _spec("exec", default="")
    jsonnet_path: list[str] = _spec("jpath", _as_str_list, default_factory=list)
    external_variables: list[JsonnetParameter] = _spec(
        "extVar", _as_list_of(JsonnetParameter), default_factory=list
    )
    top_level_arguments: list[JsonnetParameter] = _spec(
        "topLevelArg", _as_list_of(JsonnetParameter), default_factory=list
    )
    jsonnet_bundler_package_home: str = _spec("jbPkgHome", default="")
    jsonnet_bundler_refresh: bool = _spec("jbRefresh", _as_bool, default=False)


@dataclass
class Kubernetes:
    """Expands resources found in a Kubernetes cluster."""

    namespace: str = _spec("namespace", default="")
    namespaces: list[str] = _spec("namespaces", _as_str_list, default_factory=list)
    namespace_selector: str = _spec("namespaceSelector", default="")
    all_namespaces: bool = _spec("allNamespaces", _as_bool, default=False)
    types: list[str] = _spec("types", _as_str_list, default_factory=list)
    selector: str = _spec("selector", default="")
    field_selector: str = _spec("fieldSelector", default="")


@dataclass
class Kustomize:
    """Expands a kustomization."""

    root: str = _spec("root", omitempty=False, default="")


@dataclass
class PasswordRecipe:
    """Configuration of a random password string for a secret."""

    key: str = _spec(omitempty=False, default="")
    length: int | None = _spec("length", _as_optional_int, pointer=True, default=None)
    num_digits: int | None = _spec(
        "numDigits", _as_optional_int, pointer=True, default=None
    )
    num_symbols: int | None = _spec(
        "numSymbols", _as_optional_int, pointer=True, default=None
    )
    no_upper: bool | None = _spec(
        "noUpper", _as_optional_bool, pointer=True, default=None
    )
    allow_repeat: bool | None = _spec(
        "allowRepeat", _as_optional_bool, pointer=True, default=None
    )


@dataclass
class Secret:
    """Expands a Secret resource."""

    secret_name: str = _spec(omitempty=False, default="")
    type: str = _spec("type", default="")
    literal_sources: list[str] = _spec(convert=_as_str_list, default_factory=list)
    file_sources: list[str] = _spec(convert=_as_str_list, default_factory=list)
    env_sources: list[str] = _spec(convert=_as_str_list, default_factory=list)
    uuid_sources: list[str] = _spec(convert=_as_str_list, default_factory=list)
    ulid_sources: list[str] = _spec(convert=_as_str_list, default_factory=list)
    password_sources: list[PasswordRecipe] = _spec(
        convert=_as_list_of(PasswordRecipe), default_factory=list
    )
    # Character sets for password generation; never serialized.
    password_options: dict[str, str] | None = None


@dataclass
class Git:
    """Expands a full or partial Git repository."""

    repository: str = _spec("repo", default="")
    refspec: str = _spec("refspec", default="")
    context: str = _spec("context", default="")


@dataclass
class HTTP:
    """Expands an HTTP resource."""

    url: str = _spec("url", omitempty=False, default="")


@dataclass
class File:
    """Expands a local file system resource."""

    path: str = _spec("path", omitempty=False, default="")


_KINDS: dict[str, type] = {
    "Resource": Resource,
    "Helm": Helm,
    "Jsonnet": Jsonnet,
    "Kubernetes": Kubernetes,
    "Kustomize": Kustomize,
    "Secret": Secret,
    "Git": Git,
    "HTTP": HTTP,
    "File": File,
}
_KIND_OF: dict[type, str] = {cls: kind for kind, cls in _KINDS.items()}


# --- node metadata -----------------------------------------------------------


@dataclass
class ResourceMeta:
    """Type and object metadata of a resource node."""

    api_version: str = ""
    kind: str = ""
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def name_meta(self) -> tuple[str, str]:
        """The (name, namespace) pair identifying the resource."""
        return self.name, self.namespace


def _str_map(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"expected a mapping, got {type(value).__name__}")
    return {_as_str(k): _as_str(v) for k, v in value.items()}


def resource_meta(node: Any) -> ResourceMeta:
    """Read the type and object metadata from a resource node."""
    if not isinstance(node, Mapping):
        raise ValueError(f"resource node must be a mapping, got {type(node).__name__}")
    metadata = node.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise ValueError("metadata must be a mapping")
    return ResourceMeta(
        api_version=_as_str(node.get("apiVersion")),
        kind=_as_str(node.get("kind")),
        name=_as_str(metadata.get("name")),
        namespace=_as_str(metadata.get("namespace")),
        labels=_str_map(metadata.get("labels")),
        annotations=_str_map(metadata.get("annotations")),
    )


# --- conversions -------------------------------------------------------------


def new_for_type(api_version: str, kind: str) -> Any:
    """Return a new, empty instance of the Konjure type identified by its type metadata."""
    if api_version != API_VERSION:
        raise ValueError(f"unknown API version: {api_version}")
    try:
        cls = _KINDS[kind]
    except KeyError:
        raise ValueError(f"unknown kind: {kind}") from None
    return cls()


def get_rnode(obj: Any) -> dict[str, Any]:
    """Convert a Konjure object into a resource node."""
    kind = _KIND_OF.get(type(obj))
    if kind is None:
        raise TypeError(f"unknown type: {type(obj).__name__}")
    return {"apiVersion": API_VERSION, "kind": kind, **_to_mapping(obj)}


def decode(node: Any) -> Any:
    """Decode a Konjure resource node into its typed object."""
    meta = resource_meta(node)
    obj = new_for_type(meta.api_version, meta.kind)
    return _from_mapping(type(obj), node)
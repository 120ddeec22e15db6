"""Reading resource nodes from byte streams and external commands."""

from __future__ import annotations

import io
import os
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import IO, Any

import yaml


def _unwrap(doc: Any) -> list[Any]:
    if not isinstance(doc, Mapping):
        raise ValueError(f"expected a mapping document, got {type(doc).__name__}")
    if doc.get("kind") == "List" and "items" in doc:
        items = doc.get("items") or []
        if not isinstance(items, list):
            raise ValueError("List items must be a list")
        for item in items:
            if not isinstance(item, Mapping):
                raise ValueError("List items must be mappings")
        return [dict(item) for item in items]
    return [dict(doc)]


def _annotate(node: dict[str, Any], annotations: Mapping[str, str]) -> None:
    if not annotations:
        return
    metadata = node.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
        node["metadata"] = metadata
    current = metadata.get("annotations")
    if not isinstance(current, dict):
        current = {}
        metadata["annotations"] = current
    current.update(annotations)


@dataclass
class ByteReader:
    """Reads YAML (or JSON) resource documents from a stream or a string.

    Empty documents are skipped and ``kind: List`` documents are unwrapped.
    """

    reader: IO[Any] | str | bytes = ""
    set_annotations: dict[str, str] = field(default_factory=dict)

    def read(self) -> list[dict[str, Any]]:
        data = self.reader.read() if hasattr(self.reader, "read") else self.reader
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        data = data.lstrip("\ufeff")
        result = []
        for doc in yaml.safe_load_all(io.StringIO(data)):
            if doc is None:
                continue
            for node in _unwrap(doc):
                _annotate(node, self.set_annotations)
                result.append(node)
        return result


def from_bytes(
    data: bytes | str, set_annotations: Mapping[str, str] | None = None
) -> list[dict[str, Any]]:
    """Parse resource nodes from a YAML byte string."""
    return ByteReader(reader=data, set_annotations=dict(set_annotations or {})).read()


@dataclass
class StaticReader:
    """A reader that produces a fixed list of nodes."""

    nodes: list[Any] = field(default_factory=list)

    def read(self) -> list[Any]:
        return list(self.nodes)


class CommandError(Exception):
    """An external command exited with a failure status."""

    def __init__(self, program: str, returncode: int, stderr: str) -> None:
        self.program = program
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{program} exit status {returncode}: {stderr}")


Executor = Callable[["Command"], bytes]


@dataclass
class Command:
    """An external command whose standard output carries YAML manifests."""

    args: list[str]
    env: dict[str, str] = field(default_factory=dict)
    executor: Executor | None = None

    @property
    def program(self) -> str:
        return os.path.basename(self.args[0])

    def output(self) -> bytes:
        """Run the command (or its executor) and return standard output."""
        if self.executor is not None:
            return self.executor(self)
        env = {**os.environ, **self.env} if self.env else None
        completed = subprocess.run(self.args, capture_output=True, env=env)
        if completed.returncode != 0:
            message = completed.stderr.decode("utf-8", errors="replace").strip()
            message = message.removeprefix("Error: ")
            raise CommandError(self.program, completed.returncode, message)
        return completed.stdout

    def read(self) -> list[dict[str, Any]]:
        """Run the command and parse its output as resource nodes."""
        return from_bytes(self.output())


@dataclass
class Runtime:
    """Base configuration for creating external commands."""

    bin: str = ""
    executor: Executor | None = None

    def command(self, default_bin: str) -> Command:
        return Command(args=[self.bin or default_bin], executor=self.executor)
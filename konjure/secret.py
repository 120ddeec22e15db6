"""Generating Kubernetes Secret resources from literals, files and random values."""

from __future__ import annotations

import base64
import os
import posixpath
import secrets
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from konjure.api import PasswordRecipe, Secret

_LOWER_LETTERS = "abcdefghijklmnopqrstuvwxyz"
_UPPER_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_DIGITS = "0123456789"
_SYMBOLS = "~!@#$%^&*()_+`-={}|[]\\:\"<>?,./"

_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_BOM = b"\xef\xbb\xbf"
_BASE64_LINE_LENGTH = 70


# --- random values -----------------------------------------------------------


@dataclass(frozen=True)
class _PasswordGenerator:
    lower_letters: str = _LOWER_LETTERS
    upper_letters: str = _UPPER_LETTERS
    digits: str = _DIGITS
    symbols: str = _SYMBOLS

    @classmethod
    def from_options(cls, options: Mapping[str, str] | None) -> _PasswordGenerator:
        opts = options or {}
        return cls(
            lower_letters=opts.get("lower_letters") or _LOWER_LETTERS,
            upper_letters=opts.get("upper_letters") or _UPPER_LETTERS,
            digits=opts.get("digits") or _DIGITS,
            symbols=opts.get("symbols") or _SYMBOLS,
        )

    def generate(
        self,
        length: int,
        num_digits: int,
        num_symbols: int,
        no_upper: bool,
        allow_repeat: bool,
    ) -> str:
        letters = self.lower_letters if no_upper else self.lower_letters + self.upper_letters
        num_letters = length - num_digits - num_symbols
        if num_letters < 0:
            raise ValueError("number of digits and symbols must be less than total length")
        if not allow_repeat:
            if num_letters > len(letters):
                raise ValueError(
                    "number of letters exceeds available letters and repeats are not allowed"
                )
            if num_digits > len(self.digits):
                raise ValueError(
                    "number of digits exceeds available digits and repeats are not allowed"
                )
            if num_symbols > len(self.symbols):
                raise ValueError(
                    "number of symbols exceeds available symbols and repeats are not allowed"
                )

        result: list[str] = []
        for pool, count in (
            (letters, num_letters),
            (self.digits, num_digits),
            (self.symbols, num_symbols),
        ):
            added = 0
            while added < count:
                ch = secrets.choice(pool)
                if not allow_repeat and ch in result:
                    continue
                result.insert(secrets.randbelow(len(result) + 1), ch)
                added += 1
        return "".join(result)


def generate_password(
    length: int, num_digits: int, num_symbols: int, no_upper: bool, allow_repeat: bool
) -> str:
    """Generate a random password using the default character sets."""
    return _PasswordGenerator().generate(length, num_digits, num_symbols, no_upper, allow_repeat)


def password_args(recipe: PasswordRecipe) -> tuple[int, int, int, bool, bool]:
    """Resolve a recipe into (length, digits, symbols, no_upper, allow_repeat)."""
    length = recipe.length or 0
    num_digits = recipe.num_digits or 0
    num_symbols = recipe.num_symbols or 0
    no_upper = bool(recipe.no_upper)
    allow_repeat = bool(recipe.allow_repeat)

    if length == 0:
        length = 64
    if num_digits == 0 and num_symbols + 10 <= length:
        num_digits = 10
    if num_symbols == 0 and num_digits + 10 <= length:
        num_symbols = 10

    return length, num_digits, num_symbols, no_upper, allow_repeat


def new_ulid() -> str:
    """Return a new ULID: a millisecond timestamp and 80 random bits in Crockford base32."""
    millis = time.time_ns() // 1_000_000
    value = ((millis & ((1 << 48) - 1)) << 80) | int.from_bytes(os.urandom(10), "big")
    return "".join(_CROCKFORD[(value >> (5 * i)) & 31] for i in reversed(range(26)))


# --- secret data -------------------------------------------------------------


def _encode_value(value: str | bytes) -> str:
    data = value.encode("utf-8") if isinstance(value, str) else value
    encoded = base64.b64encode(data).decode("ascii")
    lines = len(encoded) // _BASE64_LINE_LENGTH + 1
    if lines == 1:
        return encoded
    chunks = (
        encoded[i : i + _BASE64_LINE_LENGTH]
        for i in range(0, len(encoded), _BASE64_LINE_LENGTH)
    )
    return "".join(chunk + "\n" for chunk in chunks)


def _load_secret_data(node: dict[str, Any], values: Mapping[str, str | bytes]) -> None:
    data = node.get("data")
    if not isinstance(data, dict):
        data = {}
        node["data"] = data
    for key in sorted(values):
        data[key] = _encode_value(values[key])


def _read_file(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


@dataclass
class SecretReader(Secret):
    """Produces a single Secret resource."""

    def read(self) -> list[dict[str, Any]]:
        node: dict[str, Any] = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": self.secret_name},
        }
        if self.type:
            node["type"] = self.type

        for source in (
            self._literals,
            self._files,
            self._envs,
            self._uuids,
            self._ulids,
            self._passwords,
        ):
            values = source()
            if values is not None:
                _load_secret_data(node, values)

        return [node]

    def _literals(self) -> dict[str, str] | None:
        if not self.literal_sources:
            return None
        result = {}
        for source in self.literal_sources:
            key, sep, value = source.partition("=")
            if not key or not sep:
                raise ValueError(f"invalid literal, expected key=value: {source}")
            result[key] = value.strip("\"'")
        return result

    def _files(self) -> dict[str, bytes] | None:
        if not self.file_sources:
            return None
        result = {}
        for source in self.file_sources:
            items = source.split("=", 2)
            if len(items) == 1:
                result[posixpath.basename(items[0])] = _read_file(items[0])
            elif len(items) == 2:
                key, path = items
                if not key or not path:
                    raise ValueError(f"key or file path is missing: {source}")
                result[key] = _read_file(path)
            else:
                raise ValueError("key names or file paths cannot contain '='")
        return result

    def _envs(self) -> dict[str, str] | None:
        if not self.env_sources:
            return None
        result = {}
        for source in self.env_sources:
            data = _read_file(source).removeprefix(_BOM)
            raw_lines = data.split(b"\n")
            if raw_lines and raw_lines[-1] == b"":
                raw_lines.pop()
            for number, raw in enumerate(raw_lines, start=1):
                raw = raw.removesuffix(b"\r")
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError:
                    text = raw.decode("utf-8", errors="replace")
                    raise ValueError(
                        f"line {number} has invalid UTF-8 bytes: {text}"
                    ) from None
                line = line.lstrip()
                if not line or line.startswith("#"):
                    continue
                key, sep, value = line.partition("=")
                result[key] = value if sep else os.environ.get(key, "")
        return result

    def _uuids(self) -> dict[str, str] | None:
        if not self.uuid_sources:
            return None
        return {key: str(uuid.uuid4()) for key in self.uuid_sources}

    def _ulids(self) -> dict[str, str] | None:
        if not self.ulid_sources:
            return None
        return {key: new_ulid() for key in self.ulid_sources}

    def _passwords(self) -> dict[str, str] | None:
        if not self.password_sources:
            return None
        generator = _PasswordGenerator.from_options(self.password_options)
        return {
            recipe.key: generator.generate(*password_args(recipe))
            for recipe in self.password_sources
        }
"""Reading resources from Git repositories and HTTP locations."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from konjure.api import HTTP, File, Git, get_rnode
from konjure.kio import ByteReader


@dataclass
class GitReader(Git):
    """Fetches a Git repository into a temporary directory.

    The result is a single File resource for the checked out context; call
    ``clean`` to remove the checkout afterwards.
    """

    _path: str = field(default="", init=False, repr=False)

    def read(self) -> list[dict[str, Any]]:
        self._path = tempfile.mkdtemp(prefix="konjure-git")
        refspec = self.refspec or "HEAD"

        self._run("init")
        self._run("remote", "add", "origin", self.repository)
        self._run("fetch", "--depth=1", "origin", refspec)
        self._run("checkout", "FETCH_HEAD")
        self._run("submodule", "update", "--init", "--recursive")

        path = os.path.normpath(os.path.join(self._path, self.context))
        return [get_rnode(File(path=path))]

    def clean(self) -> None:
        """Remove the temporary checkout, if any."""
        if not self._path:
            return
        try:
            shutil.rmtree(self._path)
        except FileNotFoundError:
            pass
        self._path = ""

    def _run(self, *args: str) -> None:
        subprocess.run(
            ["git", *args],
            cwd=self._path,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
        )


@dataclass
class HTTPReader(HTTP):
    """Fetches resources from an HTTP(S) URL."""

    client: urllib.request.OpenerDirector | None = None

    def read(self) -> list[dict[str, Any]]:
        opener = self.client or urllib.request.build_opener()
        try:
            with opener.open(self.url) as resp:
                status = resp.status
                body = resp.read()
        except urllib.error.HTTPError as err:
            err.close()
            raise OSError(f'invalid response code for "{self.url}": {err.code}') from err
        if not 200 <= status < 300:
            raise OSError(f'invalid response code for "{self.url}": {status}')
        return ByteReader(reader=body).read()
import http.server
import os
import subprocess
import threading
from unittest import mock

import pytest

from konjure.api import File, get_rnode
from konjure.remote import GitReader, HTTPReader

MANIFEST = b"apiVersion: v1\nkind: Service\nmetadata:\n  name: web\n"


class _Handler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/ok.yaml":
            self.send_response(200)
            self.send_header("Content-Length", str(len(MANIFEST)))
            self.end_headers()
            self.wfile.write(MANIFEST)
        else:
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()

    def log_message(self, *args):
        pass


@pytest.fixture
def server_url():
    server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


def test_http_reader_parses_body(server_url):
    nodes = HTTPReader(url=server_url + "/ok.yaml").read()
    assert nodes == [{"apiVersion": "v1", "kind": "Service", "metadata": {"name": "web"}}]


def test_http_reader_rejects_error_status(server_url):
    url = server_url + "/missing"
    with pytest.raises(OSError, match="invalid response code for") as info:
        HTTPReader(url=url).read()
    assert url in str(info.value)
    assert str(info.value).endswith("404")


def test_git_reader_runs_commands_and_cleans():
    with mock.patch("konjure.remote.subprocess.run") as run:
        reader = GitReader(repository="https://example.com/repo.git", context="deploy")
        nodes = reader.read()
        calls = [c.args[0] for c in run.call_args_list]
        cwds = {c.kwargs["cwd"] for c in run.call_args_list}

    assert calls == [
        ["git", "init"],
        ["git", "remote", "add", "origin", "https://example.com/repo.git"],
        ["git", "fetch", "--depth=1", "origin", "HEAD"],
        ["git", "checkout", "FETCH_HEAD"],
        ["git", "submodule", "update", "--init", "--recursive"],
    ]
    assert len(cwds) == 1
    checkout = cwds.pop()
    assert os.path.isdir(checkout)
    assert nodes == [get_rnode(File(path=os.path.join(checkout, "deploy")))]

    reader.clean()
    assert not os.path.exists(checkout)
    reader.clean()  # a second clean is harmless
    assert not os.path.exists(checkout)


def test_git_reader_uses_refspec_and_no_context():
    with mock.patch("konjure.remote.subprocess.run") as run:
        reader = GitReader(repository="https://example.com/repo.git", refspec="v1.0.0")
        nodes = reader.read()
        fetch = run.call_args_list[2].args[0]
        checkout = run.call_args_list[0].kwargs["cwd"]
    try:
        assert fetch == ["git", "fetch", "--depth=1", "origin", "v1.0.0"]
        assert nodes[0]["path"] == checkout
    finally:
        reader.clean()


def test_git_reader_propagates_failure():
    failure = subprocess.CalledProcessError(128, ["git", "fetch"])
    with mock.patch("konjure.remote.subprocess.run", side_effect=[None, None, failure]):
        reader = GitReader(repository="https://example.com/repo.git")
        with pytest.raises(subprocess.CalledProcessError):
            reader.read()
    path = reader._path
    reader.clean()
    assert not os.path.exists(path)